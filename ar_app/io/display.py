"""
Display sinks: where annotated frames go and where key presses come from.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

import cv2
import numpy as np


class DisplaySink(ABC):
    @abstractmethod
    def show(self, image: np.ndarray) -> None:
        ...

    @abstractmethod
    def poll_key(self) -> Optional[str]:
        """Return the key pressed since the last poll, or None."""

    def close(self) -> None:
        pass


class OpenCVDisplay(DisplaySink):
    """HighGUI window; `poll_key` waits `wait_ms` for a key press."""

    def __init__(self, window_name: str = "Video", wait_ms: int = 10):
        self.window_name = window_name
        self.wait_ms = int(wait_ms)
        cv2.namedWindow(self.window_name, cv2.WINDOW_AUTOSIZE)

    def show(self, image: np.ndarray) -> None:
        cv2.imshow(self.window_name, image)

    def poll_key(self) -> Optional[str]:
        code = cv2.waitKey(self.wait_ms)
        if code < 0:
            return None
        code &= 0xFF
        return chr(code) if code else None

    def close(self) -> None:
        cv2.destroyWindow(self.window_name)


__all__ = ["DisplaySink", "OpenCVDisplay"]
