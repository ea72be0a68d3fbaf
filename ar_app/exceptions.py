"""
Exception hierarchy for the calibration and overlay pipeline.
"""

from __future__ import annotations

from typing import Optional


class ArAppError(Exception):
    """Base exception for all ar_app errors."""

    pass


class FrameSourceError(ArAppError):
    """Raised when a camera, video or image cannot be opened."""

    def __init__(self, message: str, source: Optional[str] = None):
        self.source = source
        super().__init__(message)


class FrameReadError(ArAppError):
    """Raised when a single frame could not be read from an open source."""

    pass


class UnsupportedMediaError(ArAppError):
    """Raised when a media path has an extension that is neither image nor video."""

    pass


class CalibrationError(ArAppError):
    """Base exception for calibration-related errors."""

    pass


class InsufficientDataError(CalibrationError):
    """Raised when too few samples or points are available for a fit."""

    def __init__(self, message: str, available: int = 0, required: int = 0):
        self.available = available
        self.required = required
        super().__init__(message)


class MalformedCalibrationFileError(ArAppError):
    """Raised when a calibration parameter file cannot be opened or parsed."""

    def __init__(self, message: str, path: Optional[str] = None):
        self.path = path
        super().__init__(f"{path}: {message}" if path else message)


class ConfigError(ArAppError):
    """Raised for invalid configuration files or values."""

    pass


class SessionError(ArAppError):
    """Raised when a calibration session is used after it has terminated."""

    pass


__all__ = [
    "ArAppError",
    "FrameSourceError",
    "FrameReadError",
    "UnsupportedMediaError",
    "CalibrationError",
    "InsufficientDataError",
    "MalformedCalibrationFileError",
    "ConfigError",
    "SessionError",
]
