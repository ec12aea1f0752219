"""
Protocol Module: Data schemas exchanged with the estimation core.

- Inbound: anchor configuration and per-anchor range samples
- Outbound: raw fixes and smoothed positions
"""

from .range_sample import (
    AnchorPosition,
    RangeSample,
    RangeSet,
)
from .position import (
    PositionFix,
    SmoothedPosition,
)

__all__ = [
    # Inbound
    'AnchorPosition',
    'RangeSample',
    'RangeSet',
    # Outbound
    'PositionFix',
    'SmoothedPosition',
]
