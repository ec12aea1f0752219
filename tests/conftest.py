"""
Pytest configuration and shared fixtures for tag position estimator tests.

Provides anchor layouts, range helpers and a clean metrics collector for
every test.
"""

import sys
import math
from pathlib import Path
from typing import Dict, List, Tuple

import pytest

# Add project root to path for imports
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from tpe_core.proto import AnchorPosition
from tpe_core.metrics import reset_metrics


# =============================================================================
# Metrics
# =============================================================================


@pytest.fixture(autouse=True)
def fresh_metrics():
    """Give every test its own global metrics collector."""
    reset_metrics()
    yield


# =============================================================================
# Anchor Configuration Fixtures
# =============================================================================


@pytest.fixture
def right_angle_anchors() -> List[AnchorPosition]:
    """
    Right-angle anchor layout used by the reference deployment.

    - A0 at origin
    - A1 at 5m along x
    - A2 at 5m along y
    """
    return [
        AnchorPosition("A0", 0.0, 0.0),
        AnchorPosition("A1", 5.0, 0.0),
        AnchorPosition("A2", 0.0, 5.0),
    ]


@pytest.fixture
def equilateral_anchors() -> List[AnchorPosition]:
    """Equilateral triangle with 10m sides, offset from the origin."""
    return [
        AnchorPosition("A0", 2.0, -1.0),
        AnchorPosition("A1", 12.0, -1.0),
        AnchorPosition("A2", 7.0, 7.66),
    ]


@pytest.fixture
def collinear_anchors() -> List[AnchorPosition]:
    """Three anchors on a line (degenerate geometry)."""
    return [
        AnchorPosition("A0", 0.0, 0.0),
        AnchorPosition("A1", 1.0, 0.0),
        AnchorPosition("A2", 2.0, 0.0),
    ]


@pytest.fixture
def anchor_config() -> Dict[str, Dict[str, float]]:
    """Anchor configuration dictionary as found in config.py."""
    return {
        "A0": {"x": 0.0, "y": 0.0},
        "A1": {"x": 5.0, "y": 0.0},
        "A2": {"x": 0.0, "y": 5.0},
    }


# =============================================================================
# Helper Functions
# =============================================================================


def calculate_distance_2d(
    p1: Tuple[float, float], p2: Tuple[float, float]
) -> float:
    """
    Calculate Euclidean distance between two 2D points.

    Args:
        p1: First point (x, y).
        p2: Second point (x, y).

    Returns:
        Distance in the same units as input.
    """
    return math.sqrt((p1[0] - p2[0]) ** 2 + (p1[1] - p2[1]) ** 2)


def ranges_to(anchors: List[AnchorPosition], point: Tuple[float, float]) -> Dict[str, float]:
    """Exact ranges from point to each anchor, keyed by anchor ID."""
    return {
        a.anchor_id: calculate_distance_2d((a.x, a.y), point)
        for a in anchors
    }
