"""
Frame sources: live camera, video file and still image behind one interface.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional, Tuple, Union

import cv2
import numpy as np

from ar_app.exceptions import FrameReadError, FrameSourceError, UnsupportedMediaError
from ar_app.log_config.logger import get_logger

logger = get_logger(__name__)

IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".ppm", ".tif", ".tiff")
VIDEO_EXTENSIONS = (".mp4", ".m4v", ".mov", ".avi")


class FrameSource(ABC):
    """
    Produces BGR frames on demand.

    `next()` returns a frame, or None at end of stream, and raises
    FrameReadError when a single read fails but the source stays usable.
    """

    # A still source yields one frame; the loop keeps it on screen afterwards.
    still: bool = False

    @abstractmethod
    def next(self) -> Optional[np.ndarray]:
        ...

    def release(self) -> None:
        pass

    @property
    def frame_size(self) -> Optional[Tuple[int, int]]:
        """(width, height) if known before the first frame."""
        return None

    def __enter__(self) -> "FrameSource":
        return self

    def __exit__(self, *exc) -> None:
        self.release()


class _CaptureFrameSource(FrameSource):
    """Shared cv2.VideoCapture handling."""

    def __init__(self, capture: cv2.VideoCapture, name: str):
        self._cap = capture
        self.name = name
        if not self._cap.isOpened():
            raise FrameSourceError(f"Could not open {name}", source=name)
        w = int(self._cap.get(cv2.CAP_PROP_FRAME_WIDTH))
        h = int(self._cap.get(cv2.CAP_PROP_FRAME_HEIGHT))
        self._size = (w, h) if w > 0 and h > 0 else None
        logger.info(f"Opened {name}, expected size: {w} {h}")

    @property
    def frame_size(self) -> Optional[Tuple[int, int]]:
        return self._size

    def release(self) -> None:
        if self._cap is not None:
            self._cap.release()
            self._cap = None


class CameraFrameSource(_CaptureFrameSource):
    """Live video device; a failed read is transient."""

    def __init__(self, device: int = 0):
        super().__init__(cv2.VideoCapture(device), f"video device {device}")

    def next(self) -> Optional[np.ndarray]:
        ok, frame = self._cap.read()
        if not ok or frame is None:
            raise FrameReadError(f"Failed to read a frame from {self.name}")
        return frame


class VideoFileFrameSource(_CaptureFrameSource):
    """Pre-recorded video; a failed read means the file is exhausted."""

    def __init__(self, video_path: Union[str, Path]):
        super().__init__(cv2.VideoCapture(str(video_path)), f"video file {video_path}")

    def next(self) -> Optional[np.ndarray]:
        ok, frame = self._cap.read()
        if not ok or frame is None:
            return None
        return frame


class ImageFrameSource(FrameSource):
    """A single image file, delivered once."""

    still = True

    def __init__(self, image_path: Union[str, Path]):
        self.name = f"image file {image_path}"
        self._image = cv2.imread(str(image_path))
        if self._image is None:
            raise FrameSourceError(f"Unable to read image {image_path}", source=str(image_path))
        self._delivered = False
        logger.info(f"Opened {self.name}")

    @property
    def frame_size(self) -> Optional[Tuple[int, int]]:
        h, w = self._image.shape[:2]
        return (w, h)

    def next(self) -> Optional[np.ndarray]:
        if self._delivered:
            return None
        self._delivered = True
        return self._image.copy()


def media_kind(path: Union[str, Path]) -> str:
    """
    Classify a media path by extension (case-insensitive).

    Returns:
        "image" or "video".
    """
    suffix = Path(path).suffix.lower()
    if suffix in IMAGE_EXTENSIONS:
        return "image"
    if suffix in VIDEO_EXTENSIONS:
        return "video"
    raise UnsupportedMediaError(f"Not a valid image or video extension: {path}")


def open_media_source(path: Union[str, Path]) -> FrameSource:
    """Open an image or video file, dispatching on its extension."""
    if media_kind(path) == "image":
        return ImageFrameSource(path)
    return VideoFileFrameSource(path)


__all__ = [
    "IMAGE_EXTENSIONS",
    "VIDEO_EXTENSIONS",
    "FrameSource",
    "CameraFrameSource",
    "VideoFileFrameSource",
    "ImageFrameSource",
    "media_kind",
    "open_media_source",
]
