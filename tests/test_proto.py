"""
Unit tests for the anchor, range sample and position schemas.
"""

import pytest

from tpe_core.proto import (
    AnchorPosition,
    PositionFix,
    RangeSample,
    RangeSet,
    SmoothedPosition,
)


class TestAnchorPosition:
    """Tests for AnchorPosition."""

    def test_distance_to(self):
        anchor = AnchorPosition("A1", 5.0, 0.0)

        assert anchor.position == (5.0, 0.0)
        assert anchor.distance_to(2.0, 4.0) == pytest.approx(5.0)

    @pytest.mark.parametrize("x, y", [(float('nan'), 0.0), (0.0, float('inf'))])
    def test_non_finite_coordinates_rejected(self, x, y):
        with pytest.raises(ValueError):
            AnchorPosition("A0", x, y)


class TestRangeSample:
    """Tests for RangeSample validation."""

    def test_valid_sample(self):
        sample = RangeSample("A0", 3.2, 12.5)

        assert sample.distance_m == 3.2
        assert sample.timestamp == 12.5

    def test_zero_distance_allowed(self):
        """Test that the tag may sit on an anchor."""
        assert RangeSample("A0", 0.0).timestamp is None

    @pytest.mark.parametrize("distance", [-0.01, float('nan'), float('inf'), float('-inf')])
    def test_invalid_distance_rejected(self, distance):
        with pytest.raises(ValueError):
            RangeSample("A0", distance)


class TestRangeSet:
    """Tests for the latest-sample-per-anchor container."""

    def test_newer_sample_replaces_older(self):
        ranges = RangeSet([RangeSample("A0", 3.0, 0.0)])

        ranges.update(RangeSample("A0", 3.5, 1.0))

        assert len(ranges) == 1
        assert ranges.get("A0").distance_m == 3.5

    def test_completeness(self):
        ranges = RangeSet([RangeSample("A0", 3.0), RangeSample("A1", 4.0)])

        assert not ranges.is_complete_for(["A0", "A1", "A2"])

        ranges.update(RangeSample("A2", 4.0))

        assert ranges.is_complete_for(["A0", "A1", "A2"])
        assert ranges.distances_for(["A2", "A0"]) == [4.0, 3.0]

    def test_distances_for_missing_anchor(self):
        with pytest.raises(KeyError):
            RangeSet().distances_for(["A0"])

    def test_discard_and_clear(self):
        ranges = RangeSet([RangeSample("A0", 3.0), RangeSample("A1", 4.0)])

        assert ranges.discard("A0").distance_m == 3.0
        assert ranges.discard("A0") is None
        assert "A0" not in ranges
        assert ranges.anchor_ids == ["A1"]

        ranges.clear()
        assert len(ranges) == 0

    def test_repr(self):
        assert repr(RangeSet([RangeSample("A0", 3.0)])) == "RangeSet(A0=3.000)"


class TestPositions:
    """Tests for PositionFix and SmoothedPosition."""

    def test_position_fix(self):
        assert PositionFix(1.8, 1.8).as_tuple() == (1.8, 1.8)

    def test_smoothed_position_to_dict(self):
        estimate = SmoothedPosition(x=1.0, y=2.0, timestamp=3.0)

        assert estimate.as_tuple() == (1.0, 2.0)
        assert estimate.to_dict() == {'x': 1.0, 'y': 2.0, 'timestamp': 3.0}

    def test_frozen(self):
        fix = PositionFix(1.0, 2.0)

        with pytest.raises(AttributeError):
            fix.x = 5.0
