"""
Configuration management for pysfc.

This module provides:
- SFCConfig: Typed configuration dataclass
- ConfigManager: Central configuration management with environment support
- create_default_config: Factory function for the default configuration
- load_config: Load configuration from YAML files
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from pysfc.exceptions import ConfigNotFoundError, ConfigValidationError


# =============================================================================
# Configuration Dataclasses
# =============================================================================


@dataclass
class DecompositionConfig:
    """Settings of the parallel dilation pass."""

    num_workers: int = 4
    offset_x: float = 0.0
    paired_path: bool = False
    require_obstacles: bool = False
    join_timeout: Optional[float] = None

    def validate(self) -> None:
        """Validate decomposition configuration."""
        if self.num_workers < 1:
            raise ConfigValidationError(
                "decomposition.num_workers", "must be >= 1", self.num_workers
            )
        if self.offset_x < 0:
            raise ConfigValidationError(
                "decomposition.offset_x", "must be >= 0", self.offset_x
            )
        if self.join_timeout is not None and self.join_timeout <= 0:
            raise ConfigValidationError(
                "decomposition.join_timeout", "must be > 0", self.join_timeout
            )


@dataclass
class BoundingBoxConfig:
    """Global and local bounding boxes.

    The global box spans ``global_origin`` to ``global_origin + global_dim``.
    Leaving both unset (or zero) disables it.
    """

    global_origin: Optional[List[float]] = None
    global_dim: Optional[List[float]] = None
    local_bbox: Optional[List[float]] = None

    def validate(self) -> None:
        """Validate bounding box configuration."""
        if (self.global_origin is None) != (self.global_dim is None):
            raise ConfigValidationError(
                "bounding_box", "global_origin and global_dim must be set together"
            )
        for key in ("global_origin", "global_dim", "local_bbox"):
            value = getattr(self, key)
            if value is not None and len(value) not in (2, 3):
                raise ConfigValidationError(
                    f"bounding_box.{key}", "must have 2 or 3 components", value
                )
        if self.global_origin is not None and len(self.global_origin) != len(self.global_dim):
            raise ConfigValidationError(
                "bounding_box.global_dim", "must match global_origin dimension", self.global_dim
            )
        if self.global_dim is not None and any(d < 0 for d in self.global_dim):
            raise ConfigValidationError(
                "bounding_box.global_dim", "must be non-negative", self.global_dim
            )
        if self.local_bbox is not None and any(d < 0 for d in self.local_bbox):
            raise ConfigValidationError(
                "bounding_box.local_bbox", "must be non-negative", self.local_bbox
            )


@dataclass
class ConstraintConfig:
    """Constraint extraction settings."""

    clearance: float = 0.0

    def validate(self) -> None:
        """Validate constraint configuration."""
        if self.clearance < 0:
            raise ConfigValidationError("constraints.clearance", "must be >= 0", self.clearance)


@dataclass
class SFCConfig:
    """Complete corridor configuration."""

    decomposition: DecompositionConfig = field(default_factory=DecompositionConfig)
    bounding_box: BoundingBoxConfig = field(default_factory=BoundingBoxConfig)
    constraints: ConstraintConfig = field(default_factory=ConstraintConfig)

    def validate(self) -> None:
        """Validate all configuration settings."""
        self.decomposition.validate()
        self.bounding_box.validate()
        self.constraints.validate()

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary format."""
        return {
            "decomposition": {
                "num_workers": self.decomposition.num_workers,
                "offset_x": self.decomposition.offset_x,
                "paired_path": self.decomposition.paired_path,
                "require_obstacles": self.decomposition.require_obstacles,
                "join_timeout": self.decomposition.join_timeout,
            },
            "bounding_box": {
                "global_origin": self.bounding_box.global_origin,
                "global_dim": self.bounding_box.global_dim,
                "local_bbox": self.bounding_box.local_bbox,
            },
            "constraints": {
                "clearance": self.constraints.clearance,
            },
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SFCConfig":
        """Create SFCConfig from dictionary."""
        decomp_data = data.get("decomposition") or {}
        bbox_data = data.get("bounding_box") or {}
        constraint_data = data.get("constraints") or {}

        return cls(
            decomposition=DecompositionConfig(
                num_workers=int(decomp_data.get("num_workers", 4)),
                offset_x=float(decomp_data.get("offset_x", 0.0)),
                paired_path=bool(decomp_data.get("paired_path", False)),
                require_obstacles=bool(decomp_data.get("require_obstacles", False)),
                join_timeout=decomp_data.get("join_timeout"),
            ),
            bounding_box=BoundingBoxConfig(
                global_origin=bbox_data.get("global_origin"),
                global_dim=bbox_data.get("global_dim"),
                local_bbox=bbox_data.get("local_bbox"),
            ),
            constraints=ConstraintConfig(
                clearance=float(constraint_data.get("clearance", 0.0)),
            ),
        )


# =============================================================================
# Configuration Manager
# =============================================================================


class ConfigManager:
    """Central configuration management with environment variable support.

    Environment variables take precedence over config files.
    Config files take precedence over defaults.

    Environment variable format: PYSFC_<SECTION>__<KEY>
    Example: PYSFC_DECOMPOSITION__NUM_WORKERS=8
    """

    ENV_PREFIX = "PYSFC"
    NESTING_SEPARATOR = "__"

    def __init__(self, config_path: Optional[Union[str, Path]] = None):
        """Initialize configuration manager.

        Args:
            config_path: Optional path to YAML configuration file.
        """
        self._config: Optional[SFCConfig] = None
        self._config_path = Path(config_path) if config_path else None
        self._raw_config: Dict[str, Any] = {}

    def load(self, validate: bool = True) -> SFCConfig:
        """Load and return configuration.

        Args:
            validate: Whether to validate configuration after loading.

        Returns:
            Loaded SFCConfig instance.
        """
        self._raw_config = create_default_config()

        if self._config_path:
            self._load_from_file(self._config_path)

        self._load_from_env()

        self._config = SFCConfig.from_dict(self._raw_config)

        if validate:
            self._config.validate()

        return self._config

    def _load_from_file(self, path: Path) -> None:
        """Load configuration from YAML file."""
        if not path.exists():
            raise ConfigNotFoundError(str(path))

        with open(path, "r") as f:
            file_config = yaml.safe_load(f)

        if file_config:
            self._deep_update(self._raw_config, file_config)

    def _load_from_env(self) -> None:
        """Load configuration from environment variables."""
        prefix = f"{self.ENV_PREFIX}_"
        for key, value in os.environ.items():
            if key.startswith(prefix) and self.NESTING_SEPARATOR in key:
                config_key = key[len(prefix):].lower()
                self._set_nested_value(config_key, value)

    def _set_nested_value(self, key: str, value: str) -> None:
        """Set a nested configuration value from environment variable."""
        parts = key.split(self.NESTING_SEPARATOR)
        target = self._raw_config

        for part in parts[:-1]:
            if not isinstance(target.get(part), dict):
                target[part] = {}
            target = target[part]

        target[parts[-1]] = self._parse_value(value)

    @staticmethod
    def _parse_value(value: str) -> Any:
        """Parse string value to appropriate Python type."""
        if value.lower() in ("true", "yes"):
            return True
        if value.lower() in ("false", "no"):
            return False

        try:
            return int(value)
        except ValueError:
            pass

        try:
            return float(value)
        except ValueError:
            pass

        # Lists such as "0,0,10" for bounding boxes
        if "," in value:
            try:
                return [float(v) for v in value.split(",")]
            except ValueError:
                pass

        return value

    @staticmethod
    def _deep_update(base: dict, update: dict) -> dict:
        """Deep merge update into base dictionary."""
        for key, value in update.items():
            if key in base and isinstance(base[key], dict) and isinstance(value, dict):
                ConfigManager._deep_update(base[key], value)
            else:
                base[key] = value
        return base

    @property
    def config(self) -> SFCConfig:
        """Get current configuration (loads if not already loaded)."""
        if self._config is None:
            self.load()
        return self._config

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value by dotted key path.

        Args:
            key: Dotted key path (e.g., "decomposition.num_workers").
            default: Default value if key not found.

        Returns:
            Configuration value or default.
        """
        parts = key.split(".")
        value = self._raw_config

        for part in parts:
            if isinstance(value, dict) and part in value:
                value = value[part]
            else:
                return default

        return value


# =============================================================================
# Factory Functions
# =============================================================================


def create_default_config() -> Dict[str, Any]:
    """Create default configuration dictionary."""
    return SFCConfig().to_dict()


def load_config(path: Union[str, Path], validate: bool = True) -> SFCConfig:
    """Load configuration from YAML file.

    Args:
        path: Path to YAML configuration file.
        validate: Whether to validate configuration.

    Returns:
        Loaded SFCConfig.
    """
    manager = ConfigManager(path)
    return manager.load(validate=validate)


_global_config: Optional[ConfigManager] = None


def get_config() -> ConfigManager:
    """Get global configuration manager instance."""
    global _global_config
    if _global_config is None:
        _global_config = ConfigManager()
    return _global_config


def init_config(path: Optional[Union[str, Path]] = None) -> ConfigManager:
    """Initialize global configuration from file.

    Args:
        path: Optional path to configuration file.

    Returns:
        Initialized ConfigManager instance.
    """
    global _global_config
    _global_config = ConfigManager(path)
    _global_config.load()
    return _global_config
