"""
Unit tests for pipeline metrics.

Tests cover:
- Accounting of range samples through a TagTracker (emitted, waiting, dropped)
- Drop reason codes raised by the pipeline
- Bounded histogram windows and their statistics
- Snapshot, reset and the global collector
- Concurrent updates and the printed summary
"""

import logging
import threading

import pytest

from tpe_core.localization import (
    DegenerateAnchorsError,
    NonFiniteMeasurementError,
    NonFiniteStateError,
    NonPositiveIntervalError,
    RangeGatingConfig,
    SingularInnovationCovarianceError,
    TagTracker,
)
from tpe_core.metrics import DROP_REASONS, MetricsCollector, get_metrics, reset_metrics
from tests.conftest import ranges_to


# =============================================================================
# Pipeline Accounting
# =============================================================================


class TestPipelineAccounting:
    """Every range sample ends up emitted, waiting or under one drop reason."""

    @pytest.fixture
    def tracker(self, right_angle_anchors):
        return TagTracker(right_angle_anchors, gating_config=RangeGatingConfig(d_max_m=20.0))

    def test_mixed_stream(self, tracker, right_angle_anchors):
        """Test counters after a stream with every kind of intake drop."""
        for i, (aid, d) in enumerate(ranges_to(right_angle_anchors, (1.0, 1.0)).items()):
            tracker.ingest(aid, d, 0.1 * i)         # 2 waiting, 1 emitted

        tracker.ingest("A7", 2.0, 1.0)              # unknown_anchor
        tracker.ingest("A0", -1.0, 1.1)             # invalid_range
        tracker.ingest("A1", 99.0, 1.2)             # range_gated
        tracker.ingest("A2", 4.0, 0.2)              # non_positive_interval

        snapshot = get_metrics().snapshot()

        assert snapshot.counters['range_samples_in'] == 7
        assert snapshot.counters['fix_attempts'] == 2
        assert snapshot.counters['positions_emitted'] == 1
        assert snapshot.total_dropped() == 4
        for reason in ('unknown_anchor', 'invalid_range', 'range_gated', 'non_positive_interval'):
            assert snapshot.drop_reasons[reason] == 1

        assert snapshot.drop_rate() == pytest.approx(100.0 * 4 / 7)
        assert tracker.get_statistics()['drop_rate_pct'] == pytest.approx(100.0 * 4 / 7)

    def test_waiting_samples_are_not_drops(self, tracker):
        tracker.ingest("A0", 3.0, 0.0)
        tracker.ingest("A1", 4.0, 0.1)

        metrics = get_metrics()
        assert metrics.get_counter('range_samples_in') == 2
        assert metrics.total_dropped() == 0
        assert metrics.snapshot().drop_rate() == 0.0

    def test_residual_and_innovation_histograms(self, tracker, right_angle_anchors):
        t = 0.0
        for k in range(3):
            for aid, d in ranges_to(right_angle_anchors, (1.0, 1.0 + 0.1 * k)).items():
                t += 0.05
                tracker.ingest(aid, d, t)

        # 7 complete sets; the first one bootstraps the filter

        metrics = get_metrics()
        assert metrics.get_histogram_stats('fix_residual_m')['count'] == 7
        assert metrics.get_histogram_stats('filter_innovation_m')['count'] == 6


# =============================================================================
# Drop Reasons
# =============================================================================


class TestDropReasons:
    """Tests for the reason code table."""

    @pytest.mark.parametrize("error", [
        DegenerateAnchorsError,
        NonFiniteMeasurementError,
        NonFiniteStateError,
        NonPositiveIntervalError,
        SingularInnovationCovarianceError,
    ])
    def test_pipeline_errors_have_known_codes(self, error):
        assert error.drop_reason in DROP_REASONS

    def test_all_codes_reported_at_zero(self):
        snapshot = MetricsCollector().snapshot()

        assert set(snapshot.drop_reasons) == set(DROP_REASONS)
        assert snapshot.total_dropped() == 0

    def test_unknown_code_warns_and_counts(self, caplog):
        """Test that a misspelled reason is still counted."""
        collector = MetricsCollector()

        with caplog.at_level(logging.WARNING, logger='tpe_core.metrics.counters'):
            collector.increment_drop('degenrate_geometry')

        assert 'degenrate_geometry' in caplog.text
        assert collector.get_drop_count('degenrate_geometry') == 1
        assert collector.total_dropped() == 1

    def test_increment_by_value(self):
        collector = MetricsCollector()

        collector.increment_drop('parse_error', 3)
        collector.increment('range_samples_in', 5)

        assert collector.get_drop_count('parse_error') == 3
        assert collector.get_counter('range_samples_in') == 5
        assert collector.get_counter('never_touched') == 0


# =============================================================================
# Histograms
# =============================================================================


class TestHistogramWindow:
    """Tests for bounded histogram windows."""

    def test_window_keeps_most_recent_values(self):
        collector = MetricsCollector(histogram_capacity=5)

        for i in range(8):
            collector.record_histogram('fix_residual_m', float(i))

        stats = collector.get_histogram_stats('fix_residual_m')

        assert stats['count'] == 5
        assert stats['min'] == 3.0
        assert stats['max'] == 7.0
        assert stats['mean'] == pytest.approx(5.0)

    def test_percentiles(self):
        collector = MetricsCollector()

        for i in range(101):
            collector.record_histogram('filter_innovation_m', i / 100.0)

        stats = collector.get_histogram_stats('filter_innovation_m')

        assert stats['median'] == pytest.approx(0.5)
        assert stats['p95'] == pytest.approx(0.95)
        assert stats['p99'] == pytest.approx(0.99)

    def test_empty_histogram(self):
        assert MetricsCollector().get_histogram_stats('fix_residual_m') is None

    def test_invalid_capacity(self):
        with pytest.raises(ValueError):
            MetricsCollector(histogram_capacity=0)


# =============================================================================
# Snapshot, Reset, Global Collector
# =============================================================================


class TestLifecycle:
    """Tests for snapshot independence and resets."""

    def test_snapshot_is_detached(self):
        collector = MetricsCollector()
        collector.increment('fixes')
        collector.record_histogram('fix_residual_m', 0.1)

        snapshot = collector.snapshot()
        collector.increment('fixes')
        collector.record_histogram('fix_residual_m', 0.2)

        assert snapshot.counters['fixes'] == 1
        assert snapshot.histograms['fix_residual_m'] == [0.1]

    def test_reset_restores_standard_keys(self):
        collector = MetricsCollector()
        collector.increment('positions_emitted', 4)
        collector.increment_drop('range_gated')
        collector.record_histogram('fix_residual_m', 0.1)

        collector.reset()
        snapshot = collector.snapshot()

        assert snapshot.counters['positions_emitted'] == 0
        assert snapshot.total_dropped() == 0
        assert snapshot.histograms == {}
        assert collector.get_uptime() < 60.0

    def test_global_collector(self):
        """Test that components share one collector until reset_metrics()."""
        first = get_metrics()
        assert get_metrics() is first

        first.increment('fixes')
        reset_metrics()

        assert get_metrics() is not first
        assert get_metrics().get_counter('fixes') == 0


# =============================================================================
# Concurrency and Summary
# =============================================================================


class TestConcurrencyAndSummary:
    """Tests for thread safety and the printed summary."""

    def test_concurrent_updates(self):
        collector = MetricsCollector()
        per_thread = 500

        def worker():
            for i in range(per_thread):
                collector.increment('range_samples_in')
                collector.increment_drop('range_gated')
                collector.record_histogram('fix_residual_m', float(i))

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert collector.get_counter('range_samples_in') == 8 * per_thread
        assert collector.get_drop_count('range_gated') == 8 * per_thread
        assert collector.get_histogram_stats('fix_residual_m')['count'] == 8 * per_thread

    def test_summary(self, capsys):
        collector = MetricsCollector()
        collector.increment('range_samples_in', 10)
        collector.increment_drop('unknown_anchor', 2)
        collector.record_histogram('fix_residual_m', 0.05)

        collector.print_summary()
        out = capsys.readouterr().out

        assert 'range_samples_in' in out
        assert 'Dropped: 2 (20.0% of range samples)' in out
        assert 'unknown_anchor' in out
        assert 'fix_residual_m: n=1' in out
        # Zero-count reasons are left out
        assert 'singular_innovation' not in out
