"""
Localization Module: Multilateration, track filtering, tag pipeline.

Key classes:
- Multilaterator: Closed-form 3-anchor 2D multilateration
- TrackFilter: Constant-velocity Kalman smoothing of fixes
- RangeGate: Distance sanity bounds for range samples
- TagTracker: Per-tag pipeline from range samples to smoothed positions
"""

from .errors import (
    TrackingError,
    GeometryError,
    DegenerateAnchorsError,
    InputError,
    NonPositiveIntervalError,
    NonFiniteMeasurementError,
    IncompleteRangeSetError,
    NumericError,
    SingularInnovationCovarianceError,
    NonFiniteStateError,
)
from .multilaterator import (
    Multilaterator,
    locate,
    true_ranges,
)
from .track_filter import (
    TrackFilter,
    FilterConfig,
    TrackState,
)
from .range_gating import (
    RangeGate,
    RangeGatingConfig,
)
from .tag_tracker import (
    TagTracker,
    create_anchor_positions,
    create_default_tracker,
)

__all__ = [
    # Errors
    'TrackingError',
    'GeometryError',
    'DegenerateAnchorsError',
    'InputError',
    'NonPositiveIntervalError',
    'NonFiniteMeasurementError',
    'IncompleteRangeSetError',
    'NumericError',
    'SingularInnovationCovarianceError',
    'NonFiniteStateError',
    # Multilateration
    'Multilaterator',
    'locate',
    'true_ranges',
    # Track filter
    'TrackFilter',
    'FilterConfig',
    'TrackState',
    # Pipeline
    'RangeGate',
    'RangeGatingConfig',
    'TagTracker',
    'create_anchor_positions',
    'create_default_tracker',
]
