"""
Per-frame processors for the overlay and calibration programs.
"""

from __future__ import annotations

from typing import Optional, Tuple

import numpy as np

from ar_app.calib.chessboard import ChessboardDetector
from ar_app.calib.target import build_model_points
from ar_app.config.settings import PoseSettings
from ar_app.core.data_structures import Correspondence, Detection, ExtrinsicPose, IntrinsicModel
from ar_app.geometry.pnp import solve_pose
from ar_app.log_config.logger import get_logger
from ar_app.overlay.render import OverlayStyle, RenderContext, draw_shape
from ar_app.overlay.shapes import ShapeTemplate
from ar_app.pipeline.frame_loop import QUIT_KEY, FrameProcessor
from ar_app.session.calibration_session import CalibrationSession

logger = get_logger(__name__)

SAVE_SAMPLE_KEY = "s"
CALIBRATE_KEY = "c"
WRITE_FILE_KEY = "f"


class PoseOverlayProcessor(FrameProcessor):
    """Detect the board, solve its pose and draw a shape on it."""

    def __init__(
        self,
        detector: ChessboardDetector,
        intrinsics: IntrinsicModel,
        shape: ShapeTemplate,
        style: OverlayStyle,
        settings: PoseSettings | None = None,
    ):
        self.detector = detector
        self.intrinsics = intrinsics
        self.shape = shape
        self.style = style
        self.settings = settings or PoseSettings()
        self.model_points = build_model_points(detector.geometry)
        self.frame_count = 0
        # Pose of the most recent frame only; None when that frame had no board.
        self.last_pose: Optional[ExtrinsicPose] = None

    def process(self, frame: np.ndarray) -> np.ndarray:
        self.frame_count += 1
        self.last_pose = None

        detection = self.detector.detect(frame)
        if not detection.found:
            logger.debug(f"Frame {self.frame_count}: chessboard not found")
        else:
            pose = solve_pose(
                Correspondence(self.model_points, detection.image_points),
                self.intrinsics,
                self.settings,
            )
            if pose is not None:
                draw_shape(RenderContext(frame, self.style), self.shape, pose, self.intrinsics)
                self.last_pose = pose

        if self.frame_count % self.settings.log_every == 0:
            if self.last_pose is None:
                logger.info(f"frame {self.frame_count}: no pose")
            else:
                with np.printoptions(precision=4, suppress=True):
                    logger.info(
                        f"frame {self.frame_count}: rvec {self.last_pose.rvec} "
                        f"tvec {self.last_pose.tvec}"
                    )
        return frame


class CalibrationProcessor(FrameProcessor):
    """
    Show detected corners and drive a CalibrationSession from key presses.

    Keys: s = keep the current detection, c = calibrate, f = write the
    calibration file, q = quit.
    """

    def __init__(
        self,
        detector: ChessboardDetector,
        session: CalibrationSession,
        output_path: str,
        image_size: Optional[Tuple[int, int]] = None,
    ):
        self.detector = detector
        self.session = session
        self.output_path = output_path
        self._detection: Optional[Detection] = None
        self._clean_frame: Optional[np.ndarray] = None
        # (width, height); known up front for most sources, else taken from the first frame.
        self._image_size: Optional[Tuple[int, int]] = image_size

    def process(self, frame: np.ndarray) -> np.ndarray:
        h, w = frame.shape[:2]
        self._image_size = (w, h)
        self._detection = self.detector.detect(frame)
        self._clean_frame = frame.copy() if self._detection.found else None
        return self.detector.draw(frame, self._detection)

    def on_key(self, key: str) -> bool:
        if key == SAVE_SAMPLE_KEY:
            if self._detection is None or not self._detection.found:
                logger.warning("No chessboard in the current frame; sample not saved")
            else:
                self.session.add_sample(self._detection.image_points, self._clean_frame)
        elif key == CALIBRATE_KEY:
            if self._image_size is None:
                logger.warning("No frame seen yet; cannot calibrate")
            else:
                self.session.calibrate(self._image_size)
        elif key == WRITE_FILE_KEY:
            self.session.save(self.output_path)
        elif key == QUIT_KEY:
            self.session.quit()
            return False
        return True


__all__ = [
    "SAVE_SAMPLE_KEY",
    "CALIBRATE_KEY",
    "WRITE_FILE_KEY",
    "PoseOverlayProcessor",
    "CalibrationProcessor",
]
