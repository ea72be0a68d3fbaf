"""Configuration loading for the calibration and overlay programs."""

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

import yaml

from ar_app.exceptions import ConfigError
from ar_app.log_config.logger import get_logger, is_valid_level
from ar_app.overlay.shapes import SHAPES

logger = get_logger(__name__)

Color = Tuple[int, int, int]


@dataclass(frozen=True)
class TargetSettings:
    rows: int = 6
    cols: int = 9


@dataclass(frozen=True)
class DetectorSettings:
    subpix_window: Tuple[int, int] = (5, 5)
    subpix_max_iterations: int = 40
    subpix_epsilon: float = 0.001


@dataclass(frozen=True)
class CalibrationSettings:
    min_samples: int = 5
    fix_aspect_ratio: bool = True
    max_iterations: int = 200  # cap on residual evaluations
    tolerance: float = 1e-8  # relative tolerance on parameter and cost change


@dataclass(frozen=True)
class PoseSettings:
    min_points: int = 4
    max_iterations: int = 100
    log_every: int = 5  # log the pose every N frames


@dataclass(frozen=True)
class OverlaySettings:
    shape: str = "fish_school"
    # BGR, OpenCV channel order.
    palette: Tuple[Color, ...] = ((0, 0, 255), (0, 255, 0), (255, 0, 0))
    thickness: int = 2


@dataclass(frozen=True)
class SessionSettings:
    output_path: str = "calibration.txt"
    frames_dir: Optional[str] = None
    device: int = 0


@dataclass(frozen=True)
class LoopSettings:
    window_name: str = "Video"
    wait_ms: int = 10
    max_consecutive_failures: int = 30


@dataclass(frozen=True)
class LoggingSettings:
    level: str = "INFO"
    file: Optional[str] = None


@dataclass(frozen=True)
class AppConfig:
    target: TargetSettings = field(default_factory=TargetSettings)
    detector: DetectorSettings = field(default_factory=DetectorSettings)
    calibration: CalibrationSettings = field(default_factory=CalibrationSettings)
    pose: PoseSettings = field(default_factory=PoseSettings)
    overlay: OverlaySettings = field(default_factory=OverlaySettings)
    session: SessionSettings = field(default_factory=SessionSettings)
    loop: LoopSettings = field(default_factory=LoopSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _coerce(name: str, default: Any, value: Any) -> Any:
    """Convert a YAML value to the type of the dataclass default."""
    if value is None:
        if default is None:
            return None
        raise ConfigError(f"{name}: a value is required")
    if isinstance(default, bool):
        if not isinstance(value, bool):
            raise ConfigError(f"{name}: expected true/false, got {value!r}")
        return value
    if isinstance(default, int):
        if isinstance(value, bool) or not isinstance(value, int):
            raise ConfigError(f"{name}: expected an integer, got {value!r}")
        return value
    if isinstance(default, float):
        # PyYAML reads "1e-8" (no dot) as a string.
        if isinstance(value, bool):
            raise ConfigError(f"{name}: expected a number, got {value!r}")
        try:
            return float(value)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"{name}: expected a number, got {value!r}") from e
    if isinstance(default, tuple):
        if not isinstance(value, (list, tuple)):
            raise ConfigError(f"{name}: expected a list, got {value!r}")
        return tuple(tuple(v) if isinstance(v, list) else v for v in value)
    if isinstance(default, str) or default is None:
        if not isinstance(value, str):
            raise ConfigError(f"{name}: expected a string, got {value!r}")
        return value
    return value


def _apply_section(section_name: str, current: Any, data: Any) -> Any:
    if not isinstance(data, dict):
        raise ConfigError(f"section '{section_name}' must be a mapping")
    known = {f.name: f for f in fields(current)}
    updates: Dict[str, Any] = {}
    for key, value in data.items():
        if key not in known:
            raise ConfigError(f"unknown key '{section_name}.{key}'")
        updates[key] = _coerce(f"{section_name}.{key}", getattr(current, key), value)
    return replace(current, **updates)


def validate_config(config: AppConfig) -> None:
    """Check value ranges that the dataclass types cannot express."""
    if config.target.rows < 2 or config.target.cols < 2:
        raise ConfigError("target.rows and target.cols must be >= 2")
    if config.calibration.min_samples < 1:
        raise ConfigError("calibration.min_samples must be >= 1")
    if config.calibration.max_iterations < 1:
        raise ConfigError("calibration.max_iterations must be >= 1")
    if not 0.0 < config.calibration.tolerance < 1.0:
        raise ConfigError("calibration.tolerance must be in (0, 1)")
    if config.pose.min_points < 4:
        raise ConfigError("pose.min_points must be >= 4")
    if config.pose.log_every < 1:
        raise ConfigError("pose.log_every must be >= 1")
    window = config.detector.subpix_window
    if len(window) != 2 or not all(_is_int(v) and v > 0 for v in window):
        raise ConfigError(f"detector.subpix_window must hold two positive integers, got {window!r}")
    if config.detector.subpix_max_iterations < 1:
        raise ConfigError("detector.subpix_max_iterations must be >= 1")
    palette = config.overlay.palette
    if not palette or not all(
        isinstance(c, tuple) and len(c) == 3 and all(_is_int(v) and 0 <= v <= 255 for v in c)
        for c in palette
    ):
        raise ConfigError(
            f"overlay.palette must be a non-empty list of [b, g, r] integer triples in 0..255, got {palette!r}"
        )
    if config.overlay.thickness < 1:
        raise ConfigError("overlay.thickness must be >= 1")
    if config.overlay.shape not in SHAPES:
        raise ConfigError(f"overlay.shape must be one of {sorted(SHAPES)}, got {config.overlay.shape!r}")
    if config.loop.wait_ms < 1:
        raise ConfigError("loop.wait_ms must be >= 1")
    if config.loop.max_consecutive_failures < 0:
        raise ConfigError("loop.max_consecutive_failures must be >= 0")
    if not is_valid_level(config.logging.level):
        raise ConfigError(f"logging.level '{config.logging.level}' is not a known log level")


def load_config(path: Optional[Union[str, Path]] = None) -> AppConfig:
    """
    Load configuration from an optional YAML file.

    Each top-level section overrides the matching defaults; missing sections keep them.

    Args:
        path: YAML file path, or None for the built-in defaults.

    Returns:
        Validated AppConfig.
    """
    config = AppConfig()
    if path is None:
        return config

    config_path = Path(path)
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except OSError as e:
        raise ConfigError(f"cannot read config file {config_path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid YAML in {config_path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"{config_path}: top level must be a mapping")

    updates: Dict[str, Any] = {}
    for section_name, section_data in data.items():
        if not hasattr(config, section_name):
            raise ConfigError(f"unknown config section '{section_name}'")
        updates[section_name] = _apply_section(
            section_name, getattr(config, section_name), section_data
        )
    config = replace(config, **updates)
    validate_config(config)
    logger.debug(f"Loaded configuration from {config_path}")
    return config


__all__ = [
    "AppConfig",
    "TargetSettings",
    "DetectorSettings",
    "CalibrationSettings",
    "PoseSettings",
    "OverlaySettings",
    "SessionSettings",
    "LoopSettings",
    "LoggingSettings",
    "load_config",
    "validate_config",
]
