"""
Metrics Module: Diagnostics, counters, histograms.

Usage:
    from tpe_core.metrics import get_metrics

    metrics = get_metrics()
    metrics.increment('range_samples_in')
    metrics.increment_drop('degenerate_geometry')
    metrics.record_histogram('fix_residual_m', 0.12)
"""

from .counters import DROP_REASONS, MetricsCollector, CounterSnapshot

# Global singleton for easy access
_global_metrics = None


def get_metrics() -> MetricsCollector:
    """
    Get the global metrics collector singleton.

    Returns:
        MetricsCollector instance
    """
    global _global_metrics
    if _global_metrics is None:
        _global_metrics = MetricsCollector()
    return _global_metrics


def reset_metrics():
    """Reset global metrics (for testing)."""
    global _global_metrics
    _global_metrics = MetricsCollector()


__all__ = ['DROP_REASONS', 'MetricsCollector', 'CounterSnapshot', 'get_metrics', 'reset_metrics']
