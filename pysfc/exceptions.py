"""
pysfc Exception Hierarchy.

This module defines all custom exceptions used in the pysfc package.
Every error carries a human-readable message plus a ``details`` dictionary
so callers can log or inspect the context without parsing strings.
"""

from typing import Any, List, Optional, Sequence, Tuple


class PySFCError(Exception):
    """Base exception for all pysfc errors.

    Attributes:
        message: Human-readable error description.
        details: Optional dictionary with additional context.
    """

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({detail_str})"
        return self.message


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigurationError(PySFCError):
    """Error in configuration loading or validation."""

    pass


class ConfigNotFoundError(ConfigurationError):
    """Configuration file not found."""

    def __init__(self, config_path: str):
        super().__init__(
            f"Configuration file not found: {config_path}",
            details={"path": config_path},
        )


class ConfigValidationError(ConfigurationError):
    """Configuration validation failed."""

    def __init__(self, key: str, reason: str, value: Any = None):
        details = {"key": key, "reason": reason}
        if value is not None:
            details["value"] = str(value)
        super().__init__(
            f"Invalid configuration for '{key}': {reason}",
            details=details,
        )


# =============================================================================
# Decomposition Errors
# =============================================================================


class DecompositionError(PySFCError):
    """Base class for errors raised while building a corridor."""

    pass


class InvalidPathError(DecompositionError):
    """Path is too short or its points are malformed."""

    def __init__(self, reason: str, length: Optional[int] = None):
        details = {"reason": reason}
        if length is not None:
            details["length"] = length
        super().__init__(f"Invalid path: {reason}", details=details)


class MissingObstaclesError(DecompositionError):
    """Obstacle points are required but none were set."""

    def __init__(self):
        super().__init__("Obstacle set is empty. Call set_obs() before decompose().")


class WorkerError(DecompositionError):
    """One or more dilation workers failed.

    Attributes:
        failures: List of ``(block, segment, exception)`` tuples, one per
            failed block, in block order.
    """

    def __init__(self, failures: Sequence[Tuple[int, int, BaseException]]):
        self.failures: List[Tuple[int, int, BaseException]] = list(failures)
        summary = "; ".join(
            f"block {block} segment {segment}: {exc!r}" for block, segment, exc in self.failures
        )
        super().__init__(
            f"{len(self.failures)} dilation worker(s) failed: {summary}",
            details={"blocks": [block for block, _, _ in self.failures]},
        )


class PolyhedronIndexError(DecompositionError):
    """Polyhedron index out of range."""

    def __init__(self, index: int, count: int):
        super().__init__(
            f"Polyhedron index {index} out of range",
            details={"index": index, "count": count},
        )


class ConstraintError(DecompositionError):
    """Error while extracting or tightening constraints."""

    def __init__(self, reason: str):
        super().__init__(
            f"Constraint error: {reason}",
            details={"reason": reason},
        )


# =============================================================================
# Runtime Errors
# =============================================================================


class RuntimeLimitError(PySFCError):
    """Runtime limit exceeded."""

    def __init__(self, limit_type: str, limit_value: float, actual_value: float):
        super().__init__(
            f"{limit_type} limit exceeded: {actual_value} > {limit_value}",
            details={
                "limit_type": limit_type,
                "limit": limit_value,
                "actual": actual_value,
            },
        )


class DecompositionTimeoutError(RuntimeLimitError):
    """Dilation workers did not finish before the join deadline."""

    def __init__(self, timeout_seconds: float, elapsed_seconds: float):
        super().__init__("Timeout", timeout_seconds, elapsed_seconds)
