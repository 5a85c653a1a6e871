"""
Pytest configuration and fixtures for pysfc tests.

This module provides shared fixtures for testing:
- Path fixtures
- Obstacle fixtures
- Decomposer fixtures
- Configuration file fixtures
"""

from __future__ import annotations

from pathlib import Path
from typing import List

import numpy as np
import pytest


# =============================================================================
# Path Fixtures
# =============================================================================


@pytest.fixture
def l_path() -> List[np.ndarray]:
    """L-shaped 2D path with two segments."""
    return [np.array([0.0, 0.0]), np.array([4.0, 0.0]), np.array([4.0, 4.0])]


@pytest.fixture
def long_path() -> List[np.ndarray]:
    """Zig-zag 2D path with nine segments, more than the worker count."""
    return [np.array([2.0 * i, 1.0 + (i % 2)]) for i in range(10)]


@pytest.fixture
def path_3d() -> List[np.ndarray]:
    """3D path with three segments."""
    return [
        np.array([0.0, 0.0, 1.0]),
        np.array([3.0, 0.0, 1.0]),
        np.array([3.0, 3.0, 2.0]),
        np.array([6.0, 3.0, 2.0]),
    ]


# =============================================================================
# Obstacle Fixtures
# =============================================================================


@pytest.fixture
def corridor_obstacles() -> List[np.ndarray]:
    """Obstacle points on both sides of the x axis between x=0 and x=4."""
    xs = np.linspace(0.5, 3.5, 7)
    return [np.array([x, 1.0]) for x in xs] + [np.array([x, -1.5]) for x in xs]


# =============================================================================
# Decomposer Fixtures
# =============================================================================


@pytest.fixture
def decomp():
    """Decomposer without global bounding box."""
    from pysfc import EllipsoidDecomp

    return EllipsoidDecomp()


@pytest.fixture
def boxed_decomp():
    """Decomposer with a 10 x 10 global bounding box at the origin."""
    from pysfc import EllipsoidDecomp

    return EllipsoidDecomp(origin=np.zeros(2), dim=np.array([10.0, 10.0]))


# =============================================================================
# Temporary Files Fixtures
# =============================================================================


@pytest.fixture
def temp_config_file(tmp_path) -> Path:
    """Create a temporary configuration file."""
    import yaml

    config = {
        "decomposition": {
            "num_workers": 2,
            "offset_x": 0.5,
        },
        "bounding_box": {
            "global_origin": [0.0, 0.0],
            "global_dim": [10.0, 10.0],
            "local_bbox": [1.0, 2.0],
        },
    }

    config_path = tmp_path / "test_config.yml"
    with open(config_path, "w") as f:
        yaml.dump(config, f)

    return config_path


# =============================================================================
# Marker Registrations
# =============================================================================


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
