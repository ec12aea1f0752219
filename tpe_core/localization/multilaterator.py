"""
Three-Anchor Multilaterator (Closed Form).

Solves the tag's 2D position from ranges to exactly three anchors by
subtracting the first circle equation from the other two:

    (x - xi)^2 + (y - yi)^2 = ri^2,   i = 1..3

which leaves a 2x2 linear system A [x, y]^T = C, solved with Cramer's rule.
The result is the intersection of the two radical lines through anchor 1;
it does not minimize the range residuals jointly, and the track filter
downstream smooths the remaining bias.
"""

from typing import Dict, List, Mapping, Sequence, Union
import logging

from tpe_core.proto.range_sample import AnchorPosition, RangeSample, RangeSet
from tpe_core.proto.position import PositionFix
from tpe_core.localization.errors import DegenerateAnchorsError, IncompleteRangeSetError
from tpe_core.metrics import get_metrics

logger = logging.getLogger(__name__)

# |det| at or below this means the anchors are collinear for practical purposes
DEGENERATE_DETERMINANT = 1e-6

RangeInput = Union[RangeSet, Mapping[str, Union[float, RangeSample]]]


def _sq(value: float) -> float:
    # Overflows to inf instead of raising like ** does
    return value * value


class Multilaterator:
    """
    Closed-form 2D multilateration for a fixed set of three anchors.

    Usage:
        anchors = [
            AnchorPosition("A0", 0.0, 0.0),
            AnchorPosition("A1", 5.0, 0.0),
            AnchorPosition("A2", 0.0, 5.0),
        ]
        multilaterator = Multilaterator(anchors)

        try:
            fix = multilaterator.locate(ranges)
        except DegenerateAnchorsError:
            # No fix this cycle; keep collecting samples
            ...

    Notes:
        - Stateless apart from the anchor geometry
        - Non-iterative, no retries
        - The first anchor is the pivot of the linearization
    """

    NUM_ANCHORS = 3

    def __init__(self, anchors: Sequence[AnchorPosition]):
        """
        Initialize multilaterator.

        Args:
            anchors: Exactly three anchors with distinct IDs

        Raises:
            ValueError: Wrong anchor count or duplicate IDs
        """
        anchors = tuple(anchors)
        if len(anchors) != self.NUM_ANCHORS:
            raise ValueError(
                f"Need exactly {self.NUM_ANCHORS} anchors, got {len(anchors)}"
            )

        ids = [a.anchor_id for a in anchors]
        if len(set(ids)) != len(ids):
            raise ValueError(f"Anchor IDs must be distinct: {ids}")

        self.anchors = anchors
        self.metrics = get_metrics()

        p1, p2, p3 = anchors
        # Coefficient matrix depends only on geometry
        self._a1 = 2.0 * (p2.x - p1.x)
        self._b1 = 2.0 * (p2.y - p1.y)
        self._a2 = 2.0 * (p3.x - p1.x)
        self._b2 = 2.0 * (p3.y - p1.y)
        self._det = self._a1 * self._b2 - self._a2 * self._b1

        if self.is_degenerate:
            logger.warning(
                "Anchor layout %s is degenerate (det=%.3e); no fixes will be produced",
                ids, self._det,
            )

    @property
    def anchor_ids(self) -> List[str]:
        return [a.anchor_id for a in self.anchors]

    @property
    def geometry_determinant(self) -> float:
        """Determinant of the linearized system (independent of ranges)."""
        return self._det

    @property
    def is_degenerate(self) -> bool:
        """True if the anchor layout can never yield a fix."""
        return abs(self._det) <= DEGENERATE_DETERMINANT

    def locate(self, ranges: RangeInput) -> PositionFix:
        """
        Compute a position fix from one range per anchor.

        Args:
            ranges: RangeSet, or mapping anchor_id -> distance (m) / RangeSample

        Returns:
            PositionFix in the anchors' frame

        Raises:
            IncompleteRangeSetError: A configured anchor has no range
            DegenerateAnchorsError: Anchors are collinear, no fix produced
        """
        r1, r2, r3 = self._distances(ranges)
        self.metrics.increment('fix_attempts')

        if self.is_degenerate:
            self.metrics.increment_drop('degenerate_geometry')
            raise DegenerateAnchorsError(self._det)

        p1, p2, p3 = self.anchors
        c1 = _sq(r1) - _sq(r2) + _sq(p2.x) - _sq(p1.x) + _sq(p2.y) - _sq(p1.y)
        c2 = _sq(r1) - _sq(r3) + _sq(p3.x) - _sq(p1.x) + _sq(p3.y) - _sq(p1.y)

        x = (c1 * self._b2 - c2 * self._b1) / self._det
        y = (self._a1 * c2 - self._a2 * c1) / self._det

        fix = PositionFix(x, y)
        self.metrics.increment('fixes')
        logger.debug("Fix (%.3f, %.3f) from ranges (%.3f, %.3f, %.3f)", x, y, r1, r2, r3)

        return fix

    def residuals(self, fix: PositionFix, ranges: RangeInput) -> List[float]:
        """
        Per-anchor range residuals |fix - anchor| - r (m).

        All three are ~0 when the ranges are mutually consistent.
        """
        distances = self._distances(ranges)
        return [
            anchor.distance_to(fix.x, fix.y) - r
            for anchor, r in zip(self.anchors, distances)
        ]

    def _distances(self, ranges: RangeInput) -> List[float]:
        """Extract distances in anchor order."""
        missing = [aid for aid in self.anchor_ids if aid not in ranges]
        if missing:
            raise IncompleteRangeSetError(missing)

        if isinstance(ranges, RangeSet):
            return ranges.distances_for(self.anchor_ids)

        distances = []
        for aid in self.anchor_ids:
            value = ranges[aid]
            if isinstance(value, RangeSample):
                value = value.distance_m
            distances.append(float(value))
        return distances


def locate(
    anchors: Sequence[AnchorPosition],
    ranges: RangeInput,
) -> PositionFix:
    """
    Stateless convenience wrapper around Multilaterator.locate().

    Args:
        anchors: Exactly three anchors
        ranges: One range per anchor

    Returns:
        PositionFix
    """
    return Multilaterator(anchors).locate(ranges)


def true_ranges(anchors: Sequence[AnchorPosition], x: float, y: float) -> Dict[str, float]:
    """Exact distances from (x, y) to each anchor, keyed by anchor ID."""
    return {a.anchor_id: a.distance_to(x, y) for a in anchors}
