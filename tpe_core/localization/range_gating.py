"""
Range Gating for Tag Range Samples.

Sanity bounds applied to range samples before they enter the RangeSet.
With only 3 anchors there is no redundancy, so a wild range goes straight
into the fix; the gate lets a deployment bound plausible distances.

Defaults accept every non-negative distance, so the closed-form solver
sees exactly what the ranging session delivered.
"""

from typing import Dict, Optional
from dataclasses import dataclass
import logging

from tpe_core.proto.range_sample import RangeSample
from tpe_core.metrics import get_metrics

logger = logging.getLogger(__name__)


@dataclass
class RangeGatingConfig:
    """
    Configuration for range gating.

    Attributes:
        d_min_m: Minimum plausible distance (m)
        d_max_m: Maximum operational distance (m), None for no upper bound
    """

    d_min_m: float = 0.0
    d_max_m: Optional[float] = None

    def __post_init__(self):
        """Validate configuration."""
        if self.d_min_m < 0:
            raise ValueError(f"d_min_m cannot be negative: {self.d_min_m}")
        if self.d_max_m is not None and self.d_max_m <= self.d_min_m:
            raise ValueError(
                f"d_max_m ({self.d_max_m}) must be greater than d_min_m ({self.d_min_m})"
            )


class RangeGate:
    """
    Gate range samples against plausible distance bounds.

    Usage:
        gate = RangeGate(RangeGatingConfig(d_max_m=30.0))

        if gate.check(sample):
            ranges.update(sample)
        else:
            reason = gate.get_rejection_reason(sample.anchor_id)
    """

    def __init__(self, config: Optional[RangeGatingConfig] = None):
        """
        Initialize range gate.

        Args:
            config: Gating configuration (uses defaults if None)
        """
        self.config = config or RangeGatingConfig()
        self.metrics = get_metrics()

        # Last rejection reason per anchor (for debugging)
        self._last_rejection: Dict[str, str] = {}

    def check(self, sample: RangeSample) -> bool:
        """
        Check if a sample passes the distance bounds.

        Args:
            sample: Range sample to validate

        Returns:
            True if accepted
        """
        distance = sample.distance_m

        if distance < self.config.d_min_m:
            self._reject(sample, "too_close")
            return False

        if self.config.d_max_m is not None and distance > self.config.d_max_m:
            self._reject(sample, "too_far")
            return False

        self.metrics.increment('ranges_accepted')
        self._last_rejection.pop(sample.anchor_id, None)
        return True

    def get_rejection_reason(self, anchor_id: str) -> Optional[str]:
        """
        Get reason the anchor's last sample was rejected.

        Returns:
            Rejection reason, or None if its last sample was accepted
        """
        return self._last_rejection.get(anchor_id)

    def _reject(self, sample: RangeSample, reason: str):
        self._last_rejection[sample.anchor_id] = reason
        self.metrics.increment('ranges_rejected')
        self.metrics.increment_drop('range_gated')
        logger.debug(
            "Range %.3f m from %s rejected: %s", sample.distance_m, sample.anchor_id, reason
        )

    def get_statistics(self) -> dict:
        """Get gating statistics for diagnostics."""
        return {
            'accepted_total': self.metrics.get_counter('ranges_accepted'),
            'rejected_total': self.metrics.get_counter('ranges_rejected'),
        }
