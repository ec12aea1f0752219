"""
Tag position estimator configuration.
"""

# Anchor layout in the local frame (meters). Order matters: the first
# anchor is the pivot of the linearized solve.
ANCHOR_CONFIG = {
    "A0": {"x": 0.0, "y": 0.0},
    "A1": {"x": 5.0, "y": 0.0},
    "A2": {"x": 0.0, "y": 5.0},
}

# Track filter tuning
FILTER_CONFIG = {
    "initial_position": (0.0, 0.0),
    "initial_velocity": (0.0, 0.0),
    "initial_position_variance": 1.0,     # m²
    "initial_velocity_variance": 1.0,     # m²/s²
    "measurement_noise_std": 0.05,        # m
    "process_noise_intensity": 1e-3,      # m²/s³
}

# Range gating (None = no upper bound)
RANGE_GATING_CONFIG = {
    "d_min_m": 0.0,
    "d_max_m": None,
}

# Simulated tag for the demo run
SIMULATION_CONFIG = {
    "tag_id": "T1",
    "duration_s": 10.0,
    "sample_interval_s": 0.05,    # Mean gap between range readings
    "interval_jitter_s": 0.02,    # Uniform +/- jitter on that gap
    "range_noise_std_m": 0.05,
    "path_center": (1.5, 1.5),
    "path_radius_m": 1.0,
    "path_speed_m_s": 0.5,
}

# Output
OUTPUT_CONFIG = {
    "print_interval": 10,         # Print every Nth estimate
}

# Logging
LOGGING_CONFIG = {
    "level": "INFO",
    "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
}
