"""
Chessboard corner detection with sub-pixel refinement.
"""

from __future__ import annotations

import cv2
import numpy as np

from ar_app.config.settings import DetectorSettings
from ar_app.core.data_structures import Detection, TargetGeometry
from ar_app.log_config.logger import get_logger

logger = get_logger(__name__)


class ChessboardDetector:
    """
    Finds the inner corners of a chessboard in BGR or grayscale frames.

    Corners come back in OpenCV's row-major order, which matches the order of
    `build_model_points` for the same geometry.
    """

    def __init__(self, geometry: TargetGeometry, settings: DetectorSettings | None = None):
        self.geometry = geometry
        self.settings = settings or DetectorSettings()
        self._criteria = (
            cv2.TERM_CRITERIA_EPS + cv2.TERM_CRITERIA_MAX_ITER,
            int(self.settings.subpix_max_iterations),
            float(self.settings.subpix_epsilon),
        )

    def detect(self, image: np.ndarray) -> Detection:
        """
        Look for the chessboard in one frame.

        Args:
            image: Frame as (H, W, 3) BGR or (H, W) grayscale, dtype=uint8.

        Returns:
            Detection with (rows * cols, 2) sub-pixel corners when found.
        """
        if image.ndim == 3:
            gray = cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)
        else:
            gray = image

        found, corners = cv2.findChessboardCorners(gray, self.geometry.pattern_size)
        if not found or corners is None:
            return Detection(found=False)

        corners = cv2.cornerSubPix(
            gray,
            corners.astype(np.float32),
            tuple(int(v) for v in self.settings.subpix_window),
            (-1, -1),
            self._criteria,
        )
        points = corners.reshape(-1, 2).astype(np.float64)
        if points.shape[0] != self.geometry.num_points:
            logger.warning(
                f"Detector returned {points.shape[0]} corners, expected {self.geometry.num_points}"
            )
            return Detection(found=False)
        return Detection(found=True, image_points=points)

    def draw(self, image: np.ndarray, detection: Detection) -> np.ndarray:
        """Draw detected corners into `image` in place and return it."""
        if detection.found:
            corners = detection.image_points.reshape(-1, 1, 2).astype(np.float32)
            cv2.drawChessboardCorners(image, self.geometry.pattern_size, corners, True)
        return image


__all__ = ["ChessboardDetector"]
