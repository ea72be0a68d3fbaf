"""
Interactive calibration session: collect samples, calibrate, save.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple, Union

import cv2
import numpy as np

from ar_app.calib.estimator import calibrate_camera, log_calibration_result
from ar_app.calib.target import build_model_points
from ar_app.config.settings import CalibrationSettings
from ar_app.core.data_structures import (
    CalibrationResult,
    CalibrationSample,
    Correspondence,
    TargetGeometry,
)
from ar_app.exceptions import InsufficientDataError, SessionError
from ar_app.io.calib_io import save_calibration
from ar_app.log_config.logger import get_logger

logger = get_logger(__name__)

Estimator = Callable[[Sequence[CalibrationSample], Tuple[int, int], CalibrationSettings], CalibrationResult]


class SessionState(Enum):
    COLLECTING = "collecting"
    CALIBRATED = "calibrated"
    TERMINAL = "terminal"


class CalibrationSession:
    """
    Owns the ordered list of calibration samples for one interactive run.

    States:
        COLLECTING -> add_sample -> COLLECTING
        COLLECTING -> calibrate (enough samples) -> CALIBRATED
        CALIBRATED -> save -> CALIBRATED (file written)
        any -> quit -> TERMINAL

    Samples may still be added after calibrating; every calibrate() call refits
    from scratch over all samples and replaces the previous result.
    """

    def __init__(
        self,
        geometry: TargetGeometry,
        settings: CalibrationSettings | None = None,
        frames_dir: Optional[Union[str, Path]] = None,
        estimator: Estimator = calibrate_camera,
    ):
        self.geometry = geometry
        self.settings = settings or CalibrationSettings()
        self.frames_dir = Path(frames_dir) if frames_dir is not None else None
        self._estimator = estimator
        # Built once and shared by every sample.
        self.model_points = build_model_points(geometry)
        self.samples: List[CalibrationSample] = []
        self.result: Optional[CalibrationResult] = None
        self.state = SessionState.COLLECTING
        self._frames_saved = 0

    def _require_active(self, action: str) -> None:
        if self.state is SessionState.TERMINAL:
            raise SessionError(f"Cannot {action}: session has terminated")

    @property
    def num_samples(self) -> int:
        return len(self.samples)

    def add_sample(self, image_points: np.ndarray, frame: Optional[np.ndarray] = None) -> CalibrationSample:
        """
        Store one detection as a calibration sample.

        Args:
            image_points: (rows * cols, 2) corners in target order.
            frame: Optional frame, written to `frames_dir` when configured.
        """
        self._require_active("add a sample")
        sample = Correspondence(self.model_points, image_points)
        self.samples.append(sample)
        logger.info(f"Saved calibration sample {len(self.samples)}")

        if frame is not None and self.frames_dir is not None:
            self.frames_dir.mkdir(parents=True, exist_ok=True)
            path = self.frames_dir / f"calibration_frame_{self._frames_saved}.jpg"
            if cv2.imwrite(str(path), frame):
                self._frames_saved += 1
            else:
                logger.warning(f"Could not write calibration frame {path}")
        return sample

    def calibrate(self, image_size: Tuple[int, int]) -> Optional[CalibrationResult]:
        """
        Fit intrinsics over all samples collected so far.

        Returns:
            The new result, or None (state unchanged) when there are not enough samples.
        """
        self._require_active("calibrate")
        if len(self.samples) < self.settings.min_samples:
            logger.warning(
                f"Need at least {self.settings.min_samples} samples to calibrate, "
                f"have {len(self.samples)}"
            )
            return None

        try:
            result = self._estimator(list(self.samples), image_size, self.settings)
        except InsufficientDataError as e:
            logger.warning(f"Calibration skipped: {e}")
            return None

        self.result = result
        self.state = SessionState.CALIBRATED
        log_calibration_result(result)
        return result

    def save(self, output_path: Union[str, Path]) -> bool:
        """Write the current intrinsics; a no-op before the first calibration."""
        self._require_active("save")
        if self.state is not SessionState.CALIBRATED or self.result is None:
            logger.warning("No calibration to save yet; calibrate first")
            return False
        save_calibration(output_path, self.result.intrinsics)
        return True

    def quit(self) -> None:
        self.state = SessionState.TERMINAL
        logger.info(f"Calibration session finished with {len(self.samples)} samples")


__all__ = ["SessionState", "CalibrationSession"]
