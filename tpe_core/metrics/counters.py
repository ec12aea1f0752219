"""
Pipeline Metrics.

Accounts for every range sample between intake and emission. A sample
that does not lead to a new position is either waiting for the other
anchors (not a drop) or counted under exactly one drop reason.

Two reasons do not fit that rule:
- parse_error is counted before a sample exists
- singular_innovation and non_finite_state still emit the predicted position

Histograms keep a bounded window of the most recent values (fix residuals,
filter innovations) for the end-of-run summary.
"""

import logging
import threading
import time
from collections import Counter, deque
from dataclasses import dataclass
from typing import Deque, Dict, List, Optional

import numpy as np

logger = logging.getLogger(__name__)

# Always reported, even at zero
STANDARD_COUNTERS = (
    'range_samples_in',
    'fix_attempts',
    'fixes',
    'filter_bootstraps',
    'filter_updates',
    'positions_emitted',
)

# Reason code -> description
DROP_REASONS = {
    'parse_error': 'Malformed inbound sample, failed to parse',
    'unknown_anchor': 'Sample from an anchor that is not configured',
    'invalid_range': 'Negative or non-finite distance',
    'range_gated': 'Distance outside the configured gate',
    'degenerate_geometry': 'Anchors collinear, no fix this cycle',
    'non_positive_interval': 'Timestamp not after the last filter update',
    'non_finite_measurement': 'Fix or timestamp is NaN/inf',
    'singular_innovation': 'Innovation covariance not invertible, correction skipped',
    'non_finite_state': 'Correction overflowed, correction skipped',
}

DEFAULT_HISTOGRAM_CAPACITY = 10000


@dataclass
class CounterSnapshot:
    """Point-in-time copy of all metrics."""

    timestamp: float
    counters: Dict[str, int]
    drop_reasons: Dict[str, int]
    histograms: Dict[str, List[float]]

    def total_dropped(self) -> int:
        return sum(self.drop_reasons.values())

    def drop_rate(self) -> float:
        """Drops as a percentage of range samples received (0 with no samples)."""
        samples = self.counters.get('range_samples_in', 0)
        if samples == 0:
            return 0.0
        return 100.0 * self.total_dropped() / samples


class MetricsCollector:
    """
    Thread-safe counters, drop reasons and bounded histograms.

    Usage:
        metrics = get_metrics()
        metrics.increment('fixes')
        metrics.increment_drop('range_gated')
        metrics.record_histogram('fix_residual_m', 0.03)

        print(metrics.format_summary())
    """

    DROP_REASONS = DROP_REASONS

    def __init__(self, histogram_capacity: int = DEFAULT_HISTOGRAM_CAPACITY):
        """
        Initialize metrics collector.

        Args:
            histogram_capacity: Most recent values kept per histogram
        """
        if histogram_capacity < 1:
            raise ValueError(f"histogram_capacity must be positive: {histogram_capacity}")

        self._lock = threading.Lock()
        self._histogram_capacity = histogram_capacity
        self._clear()

    def _clear(self):
        # Caller holds the lock (or is __init__)
        self._counters = Counter(dict.fromkeys(STANDARD_COUNTERS, 0))
        self._drops = Counter(dict.fromkeys(DROP_REASONS, 0))
        self._histograms: Dict[str, Deque[float]] = {}
        self._started = time.monotonic()

    def increment(self, counter_name: str, value: int = 1):
        with self._lock:
            self._counters[counter_name] += value

    def increment_drop(self, reason: str, value: int = 1):
        """
        Count a dropped cycle under a reason code.

        Unknown codes are still counted, with a warning.
        """
        if reason not in DROP_REASONS:
            logger.warning("Unknown drop reason '%s'", reason)

        with self._lock:
            self._drops[reason] += value

    def get_counter(self, counter_name: str) -> int:
        """Current value of a counter (0 if never incremented)."""
        with self._lock:
            return self._counters[counter_name]

    def get_drop_count(self, reason: str) -> int:
        with self._lock:
            return self._drops[reason]

    def total_dropped(self) -> int:
        with self._lock:
            return sum(self._drops.values())

    def record_histogram(self, histogram_name: str, value: float):
        """Append a value; the oldest value falls out once the window is full."""
        with self._lock:
            window = self._histograms.get(histogram_name)
            if window is None:
                window = deque(maxlen=self._histogram_capacity)
                self._histograms[histogram_name] = window
            window.append(float(value))

    def get_histogram_stats(self, histogram_name: str) -> Optional[Dict[str, float]]:
        """
        Summary statistics of a histogram window.

        Returns:
            Dict with count, min, max, mean, median, p95, p99;
            None if nothing was recorded
        """
        with self._lock:
            values = np.array(list(self._histograms.get(histogram_name, ())), dtype=float)

        if values.size == 0:
            return None

        median, p95, p99 = np.percentile(values, [50, 95, 99])
        return {
            'count': int(values.size),
            'min': float(values.min()),
            'max': float(values.max()),
            'mean': float(values.mean()),
            'median': float(median),
            'p95': float(p95),
            'p99': float(p99),
        }

    def snapshot(self) -> CounterSnapshot:
        with self._lock:
            return CounterSnapshot(
                timestamp=time.time(),
                counters=dict(self._counters),
                drop_reasons=dict(self._drops),
                histograms={name: list(window) for name, window in self._histograms.items()},
            )

    def reset(self):
        """Zero everything and restart the uptime clock."""
        with self._lock:
            self._clear()

    def get_uptime(self) -> float:
        """Seconds since creation or the last reset."""
        return time.monotonic() - self._started

    def format_summary(self) -> str:
        """Human-readable summary of counters, drops and histograms."""
        snapshot = self.snapshot()

        lines = [f"Metrics after {self.get_uptime():.1f}s", "Counters:"]
        for name, value in sorted(snapshot.counters.items()):
            lines.append(f"  {name:<26} {value:>8d}")

        lines.append(
            f"Dropped: {snapshot.total_dropped()} "
            f"({snapshot.drop_rate():.1f}% of range samples)"
        )
        for reason, count in sorted(snapshot.drop_reasons.items()):
            if count:
                lines.append(f"  {reason:<26} {count:>8d}")

        if snapshot.histograms:
            lines.append("Histograms:")
            for name in sorted(snapshot.histograms):
                stats = self.get_histogram_stats(name)
                if stats:
                    lines.append(
                        f"  {name}: n={stats['count']} mean={stats['mean']:.4f} "
                        f"p95={stats['p95']:.4f} max={stats['max']:.4f}"
                    )

        return "\n".join(lines)

    def print_summary(self):
        print(self.format_summary())
