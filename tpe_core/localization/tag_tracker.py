"""
Tag Tracking Pipeline.

Wraps the estimation core for one tag: takes range samples one anchor at
a time, keeps the latest sample per anchor, and once every anchor has a
sample runs multilateration followed by the track filter.

Usage:
    anchors = create_anchor_positions(config.ANCHOR_CONFIG)
    tracker = create_default_tracker(anchors)

    # Called by the ranging-session collaborator for every reading
    estimate = tracker.ingest("A1", 3.92, timestamp)
    if estimate is not None:
        print(f"Position: {estimate.as_tuple()}")
"""

from typing import Dict, List, Mapping, Optional, Sequence
import logging
import threading
import time

from tpe_core.proto.range_sample import AnchorPosition, RangeSample, RangeSet
from tpe_core.proto.position import SmoothedPosition
from tpe_core.localization.multilaterator import Multilaterator
from tpe_core.localization.track_filter import FilterConfig, TrackFilter
from tpe_core.localization.range_gating import RangeGate, RangeGatingConfig
from tpe_core.localization.errors import (
    DegenerateAnchorsError,
    NumericError,
)
from tpe_core.metrics import get_metrics

logger = logging.getLogger(__name__)


class TagTracker:
    """
    Per-tag positioning pipeline.

    Pipeline stages:
    1. Validate sample (known anchor, finite non-negative distance)
    2. Range gating
    3. Store as latest sample for its anchor
    4. Multilaterate once all anchors have a sample
    5. Track filter update, emit SmoothedPosition

    Notes:
        - Fewer than three current samples is the normal waiting state,
          not an error: ingest() returns None
        - After the first complete set, every new sample yields a new fix
          using the latest sample of the other anchors
        - Calls are serialized with a lock so several ranging sessions
          may feed the same tracker
    """

    def __init__(
        self,
        anchors: Sequence[AnchorPosition],
        filter_config: Optional[FilterConfig] = None,
        gating_config: Optional[RangeGatingConfig] = None,
        tag_id: str = "T1",
    ):
        """
        Initialize tag tracker.

        Args:
            anchors: Exactly three anchor positions
            filter_config: Track filter configuration (defaults if None)
            gating_config: Range gating configuration (defaults if None)
            tag_id: Tag ID for logging/diagnostics
        """
        self.tag_id = tag_id
        self.metrics = get_metrics()

        self.multilaterator = Multilaterator(anchors)
        self.gate = RangeGate(gating_config)
        self.filter = TrackFilter(filter_config)
        self.ranges = RangeSet()

        self._anchor_ids = self.multilaterator.anchor_ids
        self._lock = threading.Lock()
        self._latest: Optional[SmoothedPosition] = None

    @property
    def anchor_ids(self) -> List[str]:
        return list(self._anchor_ids)

    @property
    def latest(self) -> Optional[SmoothedPosition]:
        """Last emitted estimate, or None."""
        return self._latest

    def ingest(
        self,
        anchor_id: str,
        distance_m: float,
        timestamp: Optional[float] = None,
    ) -> Optional[SmoothedPosition]:
        """
        Process one range reading.

        Args:
            anchor_id: Anchor that produced the reading
            distance_m: Measured distance (m)
            timestamp: Receive time (s); monotonic clock now if None

        Returns:
            SmoothedPosition if this reading produced a new estimate, else None
        """
        if timestamp is None:
            timestamp = time.monotonic()

        try:
            sample = RangeSample(anchor_id, float(distance_m), float(timestamp))
        except (TypeError, ValueError) as e:
            self.metrics.increment('range_samples_in')
            self.metrics.increment_drop('invalid_range')
            logger.debug("[%s] Dropped sample from %s: %s", self.tag_id, anchor_id, e)
            return None

        return self.ingest_sample(sample)

    def ingest_sample(self, sample: RangeSample) -> Optional[SmoothedPosition]:
        """Process one prebuilt RangeSample (see ingest())."""
        with self._lock:
            return self._process(sample)

    def forget_anchor(self, anchor_id: str):
        """
        Drop the stored sample for an anchor (e.g., its session disconnected).

        Fixes resume once a fresh sample from that anchor arrives.
        """
        with self._lock:
            if self.ranges.discard(anchor_id) is not None:
                logger.info("[%s] Forgot range sample for anchor %s", self.tag_id, anchor_id)

    def reset(self):
        """Reset pipeline state (ranges, filter, last estimate)."""
        with self._lock:
            self.ranges.clear()
            self.filter.reset()
            self._latest = None
        self.metrics.increment('tracker_resets')

    def get_statistics(self) -> dict:
        """Get pipeline statistics."""
        snapshot = self.metrics.snapshot()
        counters = snapshot.counters

        return {
            'samples_in': counters.get('range_samples_in', 0),
            'fix_attempts': counters.get('fix_attempts', 0),
            'fixes': counters.get('fixes', 0),
            'positions_emitted': counters.get('positions_emitted', 0),
            'dropped': snapshot.total_dropped(),
            'drop_rate_pct': snapshot.drop_rate(),
            'resets': counters.get('tracker_resets', 0),
            'gate_stats': self.gate.get_statistics(),
        }

    def _process(self, sample: RangeSample) -> Optional[SmoothedPosition]:
        self.metrics.increment('range_samples_in')

        if sample.anchor_id not in self._anchor_ids:
            self.metrics.increment_drop('unknown_anchor')
            logger.debug("[%s] Sample from unknown anchor %s", self.tag_id, sample.anchor_id)
            return None

        if not self.gate.check(sample):
            return None

        self.ranges.update(sample)

        if not self.ranges.is_complete_for(self._anchor_ids):
            # Still waiting for the other anchors
            return None

        try:
            fix = self.multilaterator.locate(self.ranges)
        except DegenerateAnchorsError as e:
            logger.debug("[%s] No fix: %s", self.tag_id, e)
            return None

        residuals = self.multilaterator.residuals(fix, self.ranges)
        self.metrics.record_histogram('fix_residual_m', max(abs(r) for r in residuals))

        timestamp = sample.timestamp if sample.timestamp is not None else time.monotonic()
        x, y = self.filter.update(fix, timestamp)

        error = self.filter.last_error
        if error is not None and not isinstance(error, NumericError):
            # Rejected by the filter; nothing new to emit
            return None

        estimate = SmoothedPosition(x=x, y=y, timestamp=timestamp)
        self._latest = estimate
        self.metrics.increment('positions_emitted')

        return estimate


def create_anchor_positions(anchor_config: Mapping[str, Mapping[str, float]]) -> List[AnchorPosition]:
    """
    Build anchor positions from a configuration dictionary.

    Args:
        anchor_config: {anchor_id: {"x": ..., "y": ...}} in pivot-first order

    Returns:
        List of AnchorPosition in configuration order
    """
    return [
        AnchorPosition(anchor_id, float(pos["x"]), float(pos["y"]))
        for anchor_id, pos in anchor_config.items()
    ]


def create_default_tracker(
    anchors: Sequence[AnchorPosition],
    tag_id: str = "T1",
    filter_values: Optional[Dict] = None,
    gating_values: Optional[Dict] = None,
) -> TagTracker:
    """
    Create a tag tracker from anchors and optional configuration dictionaries.

    Args:
        anchors: Exactly three anchors
        tag_id: Tag ID
        filter_values: FilterConfig fields (defaults if None)
        gating_values: RangeGatingConfig fields (defaults if None)

    Returns:
        Configured TagTracker
    """
    filter_config = FilterConfig.from_dict(filter_values or {})
    gating_config = RangeGatingConfig(**(gating_values or {}))

    return TagTracker(anchors, filter_config, gating_config, tag_id=tag_id)
