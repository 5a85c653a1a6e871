"""
pysfc - Safe Flight Corridors along a path.

This package turns a polyline path and a set of obstacle points into an
ordered sequence of convex regions, one per path segment, each described
by an ellipsoid and a polyhedron, and exports them as ``Ax <= b``
constraints for a trajectory optimizer.

Basic Usage:
    from pysfc import EllipsoidDecomp

    decomp = EllipsoidDecomp(origin=np.zeros(2), dim=np.array([10.0, 10.0]))
    decomp.set_obs(obstacles)
    decomp.set_local_bbox(np.array([1.0, 2.0]))
    decomp.decompose(path)
    constraints = decomp.get_constraints(clearance=0.2)

For more control:
    from pysfc.config import SFCConfig, ConfigManager
    from pysfc.logging import LOG_INFO, LOG_DEBUG, block_context, profile_scope
    from pysfc.exceptions import WorkerError
"""

from __future__ import annotations

__version__ = "0.1.0"

# =============================================================================
# Core API
# =============================================================================

from pysfc.geometry import (
    Hyperplane,
    Polyhedron,
    LinearConstraint,
    Ellipsoid,
    GeometricUtils,
)

from pysfc.line_segment import (
    DecompBase,
    LineSegment,
)

from pysfc.decomposition import (
    EllipsoidDecomp,
    IterativeDecomp,
    Segment,
    make_segments,
    partition_indices,
    tightened_polyhedron,
)

from pysfc.config import (
    create_default_config,
    load_config,
    SFCConfig,
    ConfigManager,
    get_config,
    init_config,
)

# =============================================================================
# Logging
# =============================================================================

from pysfc.logging import (
    LOG_DEBUG,
    LOG_INFO,
    block_context,
    profile_scope,
    get_logger,
    setup_logging,
    timed,
)

# =============================================================================
# Exceptions
# =============================================================================

from pysfc.exceptions import (
    PySFCError,
    ConfigurationError,
    ConfigNotFoundError,
    ConfigValidationError,
    DecompositionError,
    InvalidPathError,
    MissingObstaclesError,
    WorkerError,
    PolyhedronIndexError,
    ConstraintError,
    RuntimeLimitError,
    DecompositionTimeoutError,
)

# =============================================================================
# Public API
# =============================================================================

__all__ = [
    "__version__",
    # Geometry
    "Hyperplane",
    "Polyhedron",
    "LinearConstraint",
    "Ellipsoid",
    "GeometricUtils",
    "DecompBase",
    "LineSegment",
    # Decomposition
    "EllipsoidDecomp",
    "IterativeDecomp",
    "Segment",
    "make_segments",
    "partition_indices",
    "tightened_polyhedron",
    # Config
    "create_default_config",
    "load_config",
    "SFCConfig",
    "ConfigManager",
    "get_config",
    "init_config",
    # Logging
    "LOG_DEBUG",
    "LOG_INFO",
    "block_context",
    "profile_scope",
    "get_logger",
    "setup_logging",
    "timed",
    # Exceptions
    "PySFCError",
    "ConfigurationError",
    "ConfigNotFoundError",
    "ConfigValidationError",
    "DecompositionError",
    "InvalidPathError",
    "MissingObstaclesError",
    "WorkerError",
    "PolyhedronIndexError",
    "ConstraintError",
    "RuntimeLimitError",
    "DecompositionTimeoutError",
]
