"""
Track Filter (Constant-Velocity Kalman Filter).

Fuses successive multilateration fixes into a smoothed 2D position.

State: [x, y, vx, vy] (2D position + velocity)
Motion model: constant velocity driven by continuous white-noise
acceleration with spectral density q, discretized per update interval:

    Q = q * | dt^4/4   0        dt^3/2   0      |
            | 0        dt^4/4   0        dt^3/2 |
            | dt^3/2   0        dt^2     0      |
            | 0        dt^3/2   0        dt^2   |

Only the position is observed; velocity is inferred from successive fixes.
"""

from typing import Mapping, Optional, Tuple
from dataclasses import dataclass, fields
import logging
import math

import numpy as np

from tpe_core.proto.position import PositionFix
from tpe_core.localization.errors import (
    InputError,
    NonFiniteMeasurementError,
    NonFiniteStateError,
    NonPositiveIntervalError,
    NumericError,
    SingularInnovationCovarianceError,
    TrackingError,
)
from tpe_core.metrics import get_metrics

logger = logging.getLogger(__name__)

# det(S / trace(S)) at or below this is treated as singular
SINGULAR_DETERMINANT_RATIO = 1e-12

# Observation model: position components only
H = np.array([
    [1.0, 0.0, 0.0, 0.0],
    [0.0, 1.0, 0.0, 0.0],
])


@dataclass(frozen=True)
class FilterConfig:
    """
    Construction-time configuration for the track filter.

    Attributes:
        initial_position: Prior position (x, y) in meters
        initial_velocity: Prior velocity (vx, vy) in m/s
        initial_position_variance: Prior position variance (m²)
        initial_velocity_variance: Prior velocity variance (m²/s²)
        measurement_noise_std: Std dev of a fix on each axis (m)
        process_noise_intensity: White-noise acceleration spectral density (m²/s³)
    """

    initial_position: Tuple[float, float] = (0.0, 0.0)
    initial_velocity: Tuple[float, float] = (0.0, 0.0)
    initial_position_variance: float = 1.0
    initial_velocity_variance: float = 1.0
    measurement_noise_std: float = 0.05
    process_noise_intensity: float = 1e-3

    def __post_init__(self):
        """Validate configuration."""
        for name in ('initial_position', 'initial_velocity'):
            value = getattr(self, name)
            if len(value) != 2 or not all(math.isfinite(v) for v in value):
                raise ValueError(f"{name} must be two finite numbers: {value}")

        for name in (
            'initial_position_variance',
            'initial_velocity_variance',
            'process_noise_intensity',
        ):
            value = getattr(self, name)
            if not math.isfinite(value) or value < 0:
                raise ValueError(f"{name} must be finite and non-negative: {value}")

        if not math.isfinite(self.measurement_noise_std) or self.measurement_noise_std <= 0:
            raise ValueError(
                f"measurement_noise_std must be positive: {self.measurement_noise_std}"
            )

    @classmethod
    def from_dict(cls, values: Mapping) -> 'FilterConfig':
        """
        Build a config from a configuration dictionary.

        Args:
            values: Mapping of field name -> value (missing keys use defaults)

        Raises:
            ValueError: Unknown key or invalid value
        """
        known = {f.name for f in fields(cls)}
        unknown = set(values) - known
        if unknown:
            raise ValueError(f"Unknown filter config keys: {sorted(unknown)}")

        kwargs = dict(values)
        for name in ('initial_position', 'initial_velocity'):
            if name in kwargs:
                kwargs[name] = tuple(float(v) for v in kwargs[name])

        return cls(**kwargs)


@dataclass
class TrackState:
    """
    Filter state owned by a single TrackFilter.

    Attributes:
        mean: State vector [x, y, vx, vy]
        covariance: 4x4 state covariance
        last_timestamp: Time of the last accepted update (None before the first fix)
    """

    mean: np.ndarray
    covariance: np.ndarray
    last_timestamp: Optional[float] = None

    def copy(self) -> 'TrackState':
        return TrackState(
            mean=self.mean.copy(),
            covariance=self.covariance.copy(),
            last_timestamp=self.last_timestamp,
        )


def transition_matrix(dt: float) -> np.ndarray:
    """Constant-velocity state transition over dt seconds."""
    return np.array([
        [1.0, 0.0, dt, 0.0],
        [0.0, 1.0, 0.0, dt],
        [0.0, 0.0, 1.0, 0.0],
        [0.0, 0.0, 0.0, 1.0],
    ])


def process_noise(dt: float, intensity: float) -> np.ndarray:
    """Discretized white-noise acceleration covariance over dt seconds."""
    dt2 = dt * dt
    q_pos = intensity * dt2 * dt2 / 4.0
    q_cross = intensity * dt2 * dt / 2.0
    q_vel = intensity * dt2

    return np.array([
        [q_pos, 0.0, q_cross, 0.0],
        [0.0, q_pos, 0.0, q_cross],
        [q_cross, 0.0, q_vel, 0.0],
        [0.0, q_cross, 0.0, q_vel],
    ])


def innovation_is_singular(S: np.ndarray) -> bool:
    """
    Check whether an innovation covariance is unsafe to invert.

    Scale-free: S is normalized by its trace before the determinant test,
    so very small (or very large) but well-conditioned matrices pass.
    """
    if not np.all(np.isfinite(S)):
        return True

    scale = float(np.trace(S))
    if not scale > 0:
        return True

    return abs(float(np.linalg.det(S / scale))) <= SINGULAR_DETERMINANT_RATIO


class TrackFilter:
    """
    Constant-velocity Kalman filter for tag position smoothing.

    Usage:
        track = TrackFilter(FilterConfig(measurement_noise_std=0.05))

        x, y = track.update(fix, timestamp)

    Behavior:
    - First update seeds the position and returns the raw fix unchanged
    - Later updates predict over dt, then correct with the fix
    - A non-increasing or non-finite timestamp, or a non-finite fix, is
      rejected: state is untouched and the previous position is returned
    - If the innovation covariance is singular, or the correction overflows,
      the correction is skipped and the predicted position is returned

    Notes:
        - Not thread-safe; one filter per tag, calls serialized by the caller
        - update() never raises for bad input; the reason is kept in last_error
    """

    def __init__(self, config: Optional[FilterConfig] = None):
        """
        Initialize track filter.

        Args:
            config: Filter configuration (uses defaults if None)
        """
        self.config = config or FilterConfig()
        self.metrics = get_metrics()

        self._state = self._initial_state()
        variance = self.config.measurement_noise_std * self.config.measurement_noise_std
        self._measurement_cov = np.diag([variance, variance])

        # Reason the most recent update was degraded, if it was
        self.last_error: Optional[TrackingError] = None

    def is_initialized(self) -> bool:
        """Check if the filter has accepted its first fix."""
        return self._state.last_timestamp is not None

    @property
    def last_timestamp(self) -> Optional[float]:
        return self._state.last_timestamp

    @property
    def position(self) -> Tuple[float, float]:
        """Current position estimate (x, y)."""
        return (float(self._state.mean[0]), float(self._state.mean[1]))

    @property
    def velocity(self) -> Tuple[float, float]:
        """Current velocity estimate (vx, vy)."""
        return (float(self._state.mean[2]), float(self._state.mean[3]))

    def snapshot(self) -> TrackState:
        """Get a copy of the current state (for diagnostics)."""
        return self._state.copy()

    def update(self, fix: PositionFix, timestamp: float) -> Tuple[float, float]:
        """
        Update filter with a multilateration fix.

        Args:
            fix: Raw position fix
            timestamp: Time of the fix (s), strictly increasing per filter

        Returns:
            Smoothed (x, y)
        """
        self.last_error = None

        try:
            self._check_measurement(fix, timestamp)

            if not self.is_initialized():
                return self._bootstrap(fix, timestamp)

            dt = self._interval(timestamp)
        except InputError as e:
            self._record_degraded(e)
            return self.position

        mean, covariance = self._predict(dt)

        try:
            mean, covariance = self._correct(mean, covariance, fix)
        except NumericError as e:
            self._record_degraded(e)

            if not np.all(np.isfinite(mean)):
                return self.position
            if not np.all(np.isfinite(covariance)):
                # Keep the last usable covariance rather than propagate inf/NaN
                covariance = self._state.covariance

        self._state = TrackState(mean=mean, covariance=covariance, last_timestamp=timestamp)
        self.metrics.increment('filter_updates')

        return self.position

    def predict_position(self, timestamp: float) -> Optional[Tuple[float, float]]:
        """
        Extrapolate position to a given time without updating state.

        Args:
            timestamp: Time to predict to

        Returns:
            Predicted (x, y), or None if not initialized
        """
        if not self.is_initialized() or not math.isfinite(timestamp):
            return None

        dt = timestamp - self._state.last_timestamp
        predicted = transition_matrix(dt) @ self._state.mean

        return (float(predicted[0]), float(predicted[1]))

    def reset(self):
        """Reset filter to its construction-time priors."""
        self._state = self._initial_state()
        self.last_error = None
        self.metrics.increment('filter_resets')

    def _initial_state(self) -> TrackState:
        """Build the prior state from config."""
        cfg = self.config
        mean = np.array([
            cfg.initial_position[0],
            cfg.initial_position[1],
            cfg.initial_velocity[0],
            cfg.initial_velocity[1],
        ], dtype=float)

        covariance = np.diag([
            cfg.initial_position_variance,
            cfg.initial_position_variance,
            cfg.initial_velocity_variance,
            cfg.initial_velocity_variance,
        ]).astype(float)

        return TrackState(mean=mean, covariance=covariance)

    def _check_measurement(self, fix: PositionFix, timestamp: float):
        if not (math.isfinite(fix.x) and math.isfinite(fix.y) and math.isfinite(timestamp)):
            raise NonFiniteMeasurementError(
                f"Non-finite fix ({fix.x}, {fix.y}) at t={timestamp}"
            )

    def _bootstrap(self, fix: PositionFix, timestamp: float) -> Tuple[float, float]:
        """Seed position from the first fix; velocity and covariance keep their priors."""
        mean = self._state.mean.copy()
        mean[0] = fix.x
        mean[1] = fix.y

        self._state = TrackState(
            mean=mean,
            covariance=self._state.covariance,
            last_timestamp=timestamp,
        )

        self.metrics.increment('filter_bootstraps')
        logger.debug("Track filter seeded at (%.3f, %.3f), t=%.3f", fix.x, fix.y, timestamp)

        return (fix.x, fix.y)

    def _interval(self, timestamp: float) -> float:
        dt = timestamp - self._state.last_timestamp
        if dt <= 0:
            raise NonPositiveIntervalError(timestamp, self._state.last_timestamp)
        return dt

    def _predict(self, dt: float) -> Tuple[np.ndarray, np.ndarray]:
        """Propagate mean and covariance forward by dt seconds."""
        F = transition_matrix(dt)
        Q = process_noise(dt, self.config.process_noise_intensity)

        mean = F @ self._state.mean
        covariance = F @ self._state.covariance @ F.T + Q

        return mean, covariance

    def _correct(
        self,
        mean: np.ndarray,
        covariance: np.ndarray,
        fix: PositionFix,
    ) -> Tuple[np.ndarray, np.ndarray]:
        """
        Measurement update with a position fix.

        Raises:
            SingularInnovationCovarianceError: S cannot be inverted safely
            NonFiniteStateError: Corrected mean or covariance is inf/NaN
        """
        z = np.array([fix.x, fix.y])

        # Overflow is checked explicitly below
        with np.errstate(over='ignore', invalid='ignore'):
            y = z - H @ mean  # Innovation
            S = H @ covariance @ H.T + self._measurement_cov

            if innovation_is_singular(S):
                raise SingularInnovationCovarianceError(f"Innovation covariance not invertible: {S.tolist()}")

            K = covariance @ H.T @ np.linalg.inv(S)

            mean = mean + K @ y
            covariance = (np.eye(4) - K @ H) @ covariance

        if not (np.all(np.isfinite(mean)) and np.all(np.isfinite(covariance))):
            raise NonFiniteStateError(f"Correction with fix ({fix.x}, {fix.y}) is not finite")

        self.metrics.record_histogram('filter_innovation_m', float(np.linalg.norm(y)))

        return mean, covariance

    def _record_degraded(self, error: TrackingError):
        """Count and log an update that did not go through cleanly."""
        self.last_error = error
        self.metrics.increment_drop(error.drop_reason)

        if isinstance(error, NonPositiveIntervalError):
            # Routine when several anchors report with the same timestamp
            logger.debug("Track filter update rejected: %s", error)
        else:
            logger.warning("Track filter update degraded: %s", error)
