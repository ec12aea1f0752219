"""
Error taxonomy for the position estimation pipeline.

None of these are fatal: the pipeline catches them, counts a drop reason
and produces no update for that cycle.
"""


class TrackingError(Exception):
    """Base class for all estimation pipeline errors."""

    drop_reason = 'tracking_error'


class GeometryError(TrackingError):
    """Anchor geometry cannot produce a fix."""


class DegenerateAnchorsError(GeometryError):
    """Anchors are (numerically) collinear or coincident."""

    drop_reason = 'degenerate_geometry'

    def __init__(self, determinant: float):
        super().__init__(f"Degenerate anchor geometry (det={determinant:.3e})")
        self.determinant = determinant


class InputError(TrackingError):
    """Caller supplied malformed input."""


class NonPositiveIntervalError(InputError):
    """New timestamp is not strictly after the last filter update."""

    drop_reason = 'non_positive_interval'

    def __init__(self, timestamp: float, last_timestamp: float):
        super().__init__(
            f"Timestamp {timestamp} is not after last update {last_timestamp}"
        )
        self.timestamp = timestamp
        self.last_timestamp = last_timestamp


class NonFiniteMeasurementError(InputError):
    """Fix coordinates or timestamp are NaN/inf."""

    drop_reason = 'non_finite_measurement'


class IncompleteRangeSetError(InputError, KeyError):
    """locate() called without a range for every configured anchor."""

    def __init__(self, missing):
        self.missing = sorted(missing)
        super().__init__(f"Missing ranges for anchors: {self.missing}")

    def __str__(self) -> str:
        return Exception.__str__(self)


class NumericError(TrackingError):
    """Floating-point breakdown inside the filter."""


class SingularInnovationCovarianceError(NumericError):
    """Innovation covariance S cannot be safely inverted."""

    drop_reason = 'singular_innovation'


class NonFiniteStateError(NumericError):
    """Correction step overflowed to inf/NaN."""

    drop_reason = 'non_finite_state'
