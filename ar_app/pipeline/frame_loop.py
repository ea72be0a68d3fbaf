"""
The single-threaded acquire -> process -> display -> poll loop.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

import numpy as np

from ar_app.config.settings import LoopSettings
from ar_app.exceptions import FrameReadError
from ar_app.io.display import DisplaySink
from ar_app.io.video_io import FrameSource
from ar_app.log_config.logger import get_logger

logger = get_logger(__name__)

QUIT_KEY = "q"


class FrameProcessor(ABC):
    """Per-frame work plugged into the loop."""

    @abstractmethod
    def process(self, frame: np.ndarray) -> np.ndarray:
        """Run detection/pose/overlay on `frame`; return the image to display."""

    def on_key(self, key: str) -> bool:
        """Handle a key press; return False to stop the loop."""
        return key != QUIT_KEY


@dataclass
class LoopStats:
    frames: int = 0
    read_failures: int = 0
    stopped_by_user: bool = False


class FrameLoop:
    """
    Runs one processor over one frame source.

    Every iteration finishes (read, process, show, poll) before the next frame is
    read, so what is displayed always reflects that frame's own detection.
    """

    def __init__(
        self,
        source: FrameSource,
        display: DisplaySink,
        processor: FrameProcessor,
        settings: LoopSettings | None = None,
    ):
        self.source = source
        self.display = display
        self.processor = processor
        self.settings = settings or LoopSettings()

    def _poll(self) -> bool:
        key = self.display.poll_key()
        if key is None:
            return True
        return self.processor.on_key(key)

    def run(self) -> LoopStats:
        stats = LoopStats()
        consecutive_failures = 0
        last_shown: Optional[np.ndarray] = None

        while True:
            try:
                frame = self.source.next()
            except FrameReadError as e:
                stats.read_failures += 1
                consecutive_failures += 1
                logger.warning(str(e))
                if consecutive_failures > self.settings.max_consecutive_failures:
                    logger.error(
                        f"Giving up after {consecutive_failures} consecutive frame read failures"
                    )
                    break
                if not self._poll():
                    stats.stopped_by_user = True
                    break
                continue

            if frame is None:
                if self.source.still and last_shown is not None:
                    # Keep the annotated still on screen until the user quits.
                    while self._poll():
                        pass
                    stats.stopped_by_user = True
                else:
                    logger.info(f"End of stream after {stats.frames} frames")
                break

            consecutive_failures = 0
            stats.frames += 1
            annotated = self.processor.process(frame)
            self.display.show(annotated)
            last_shown = annotated

            if not self._poll():
                stats.stopped_by_user = True
                break

        return stats


__all__ = ["QUIT_KEY", "FrameProcessor", "LoopStats", "FrameLoop"]
