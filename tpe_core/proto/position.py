"""
Position Output Schemas.

PositionFix is the raw, instantaneous multilateration result.
SmoothedPosition is the filtered estimate handed to the presentation
collaborator, in the same frame as the configured anchors.
"""

from dataclasses import dataclass
from typing import Tuple


@dataclass(frozen=True)
class PositionFix:
    """
    Single 2D position fix from simultaneous range measurements.

    Attributes:
        x: X coordinate (m)
        y: Y coordinate (m)
    """

    x: float
    y: float

    def as_tuple(self) -> Tuple[float, float]:
        return (self.x, self.y)


@dataclass(frozen=True)
class SmoothedPosition:
    """
    Filtered tag position emitted once per successful fix-and-filter cycle.

    Attributes:
        x: X coordinate (m)
        y: Y coordinate (m)
        timestamp: Time of the range sample that completed the fix (s)
    """

    x: float
    y: float
    timestamp: float

    def as_tuple(self) -> Tuple[float, float]:
        """Get (x, y) in meters."""
        return (self.x, self.y)

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            'x': self.x,
            'y': self.y,
            'timestamp': self.timestamp,
        }
