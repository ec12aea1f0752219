"""
Anchor and Range Sample Schemas.

Defines the configured anchor geometry and the per-anchor range samples
delivered by the ranging-session collaborator.

Inbound tuple: (anchor_id, distance_m, timestamp)
"""

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional
import math


@dataclass(frozen=True)
class AnchorPosition:
    """
    Fixed reference point with known coordinates.

    Attributes:
        anchor_id: Stable anchor identifier (e.g., "A0")
        x: X coordinate in the local frame (m)
        y: Y coordinate in the local frame (m)

    Notes:
        - Supplied once at configuration time
        - Collinearity of the three anchors is detected by the
          multilaterator's determinant test, not here
    """

    anchor_id: str
    x: float
    y: float

    def __post_init__(self):
        """Validate anchor coordinates."""
        if not (math.isfinite(self.x) and math.isfinite(self.y)):
            raise ValueError(
                f"Anchor {self.anchor_id} coordinates must be finite: ({self.x}, {self.y})"
            )

    @property
    def position(self) -> tuple:
        """Get (x, y) in meters."""
        return (self.x, self.y)

    def distance_to(self, x: float, y: float) -> float:
        """Euclidean distance from this anchor to (x, y)."""
        return math.hypot(x - self.x, y - self.y)


@dataclass(frozen=True)
class RangeSample:
    """
    Range measurement from one anchor to the tag.

    Attributes:
        anchor_id: ID of the anchor that produced the reading
        distance_m: Measured distance in meters
        timestamp: Receive time in seconds (monotonic clock), if known

    Notes:
        - Distance must be finite and non-negative
        - No upper bound is enforced here (see RangeGate)
    """

    anchor_id: str
    distance_m: float
    timestamp: Optional[float] = None

    def __post_init__(self):
        """Validate range sample after initialization."""
        if not math.isfinite(self.distance_m):
            raise ValueError(f"Distance must be finite: {self.distance_m}")

        if self.distance_m < 0:
            raise ValueError(f"Distance cannot be negative: {self.distance_m}")


class RangeSet:
    """
    Latest range sample per anchor.

    At most one entry per anchor; a newer sample replaces the older one.
    A fix is attempted only when the set holds one sample for every
    configured anchor.

    Usage:
        ranges = RangeSet()
        ranges.update(RangeSample("A0", 3.0))

        if ranges.is_complete_for(["A0", "A1", "A2"]):
            fix = multilaterator.locate(ranges)
    """

    def __init__(self, samples: Iterable[RangeSample] = ()):
        self._samples: Dict[str, RangeSample] = {}
        for sample in samples:
            self.update(sample)

    def update(self, sample: RangeSample):
        """Store sample as the latest reading for its anchor."""
        self._samples[sample.anchor_id] = sample

    def discard(self, anchor_id: str) -> Optional[RangeSample]:
        """Drop the sample for anchor_id (e.g., its session went away)."""
        return self._samples.pop(anchor_id, None)

    def clear(self):
        self._samples.clear()

    def get(self, anchor_id: str) -> Optional[RangeSample]:
        return self._samples.get(anchor_id)

    def is_complete_for(self, anchor_ids: Iterable[str]) -> bool:
        """Check if there is a current sample for every anchor in anchor_ids."""
        return all(aid in self._samples for aid in anchor_ids)

    def distances_for(self, anchor_ids: Iterable[str]) -> List[float]:
        """
        Get distances in the order of anchor_ids.

        Raises:
            KeyError: If an anchor has no sample
        """
        return [self._samples[aid].distance_m for aid in anchor_ids]

    @property
    def anchor_ids(self) -> List[str]:
        return list(self._samples.keys())

    def __contains__(self, anchor_id: str) -> bool:
        return anchor_id in self._samples

    def __len__(self) -> int:
        return len(self._samples)

    def __repr__(self) -> str:
        readings = ", ".join(
            f"{aid}={s.distance_m:.3f}" for aid, s in self._samples.items()
        )
        return f"RangeSet({readings})"
