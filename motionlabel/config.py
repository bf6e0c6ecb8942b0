from __future__ import annotations
from dataclasses import dataclass, fields, replace as dc_replace
from pathlib import Path
from typing import Any, Dict, Optional, Union
import logging

import yaml

from .errors import InvalidConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).with_name("detection.yaml")


@dataclass(frozen=True)
class DetectionConfig:
    """Parameters of one auto-detection run (detector + tracker)."""
    min_area: float = 100.0
    max_jump_distance: float = 100.0
    max_misses: int = 15
    smooth_alpha: float = 0.5
    history: int = 500
    var_threshold: float = 25.0
    detect_shadows: bool = True
    blur_kernel: int = 5
    morph_kernel: int = 5
    dilate_iterations: int = 2

    def validate(self) -> "DetectionConfig":
        """Raise InvalidConfigurationError for nonsensical values; returns self."""
        if self.min_area <= 0:
            raise InvalidConfigurationError(f"min_area must be > 0, got {self.min_area}")
        if self.history <= 0:
            raise InvalidConfigurationError(f"history must be > 0, got {self.history}")
        if self.var_threshold <= 0:
            raise InvalidConfigurationError(f"var_threshold must be > 0, got {self.var_threshold}")
        if self.max_jump_distance <= 0:
            raise InvalidConfigurationError(f"max_jump_distance must be > 0, got {self.max_jump_distance}")
        if self.max_misses < 0:
            raise InvalidConfigurationError(f"max_misses must be >= 0, got {self.max_misses}")
        if not 0.0 <= self.smooth_alpha <= 1.0:
            raise InvalidConfigurationError(f"smooth_alpha must be within [0, 1], got {self.smooth_alpha}")
        for name in ("blur_kernel", "morph_kernel"):
            k = getattr(self, name)
            if k <= 0 or k % 2 == 0:
                raise InvalidConfigurationError(f"{name} must be a positive odd number, got {k}")
        if self.dilate_iterations < 0:
            raise InvalidConfigurationError(f"dilate_iterations must be >= 0, got {self.dilate_iterations}")
        return self

    def replace(self, **overrides: Any) -> "DetectionConfig":
        """Copy with overrides applied; None values are ignored (unset CLI flags)."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        return dc_replace(self, **changes)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DetectionConfig":
        known = {f.name for f in fields(cls)}
        values: Dict[str, Any] = {}
        for key, value in data.items():
            if key not in known:
                logger.warning("Ignoring unknown detection config key: %s", key)
                continue
            values[key] = value
        try:
            return cls(**_coerce(values))
        except (TypeError, ValueError) as e:
            raise InvalidConfigurationError(f"Invalid detection config: {e}") from e


def _strict_bool(value: Any) -> bool:
    if not isinstance(value, bool):
        raise InvalidConfigurationError(f"Expected true or false, got {value!r}")
    return value


def _coerce(values: Dict[str, Any]) -> Dict[str, Any]:
    """Cast YAML scalars to the field types (YAML reads `100` as int, etc.)."""
    casts = {
        "min_area": float,
        "max_jump_distance": float,
        "smooth_alpha": float,
        "var_threshold": float,
        "max_misses": int,
        "history": int,
        "blur_kernel": int,
        "morph_kernel": int,
        "dilate_iterations": int,
        "detect_shadows": _strict_bool,
    }
    return {k: casts[k](v) for k, v in values.items()}


def _read_yaml(path: Path) -> Dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            loaded = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise InvalidConfigurationError(f"Malformed config file {path}: {e}") from e
    if not isinstance(loaded, dict):
        raise InvalidConfigurationError(f"Config file {path} must contain a mapping")
    section = loaded.get("detection", {})
    if section is None:
        return {}
    if not isinstance(section, dict):
        raise InvalidConfigurationError(f"'detection' in {path} must be a mapping")
    return section


def load_config(path: Optional[Union[str, Path]] = None) -> DetectionConfig:
    """
    Load detection config.
    The packaged detection.yaml provides defaults; keys from `path` (if given)
    override them. A missing user file is an error, a missing packaged file is not.
    """
    merged: Dict[str, Any] = {}
    if DEFAULT_CONFIG_PATH.exists():
        merged.update(_read_yaml(DEFAULT_CONFIG_PATH))
    if path is not None:
        user_path = Path(path)
        if not user_path.exists():
            raise InvalidConfigurationError(f"Config file not found: {user_path}")
        merged.update(_read_yaml(user_path))
    return DetectionConfig.from_dict(merged).validate()
