"""
Camera calibration from several views of the chessboard target.
"""

from __future__ import annotations

from typing import List, Sequence, Tuple

import cv2
import numpy as np

from ar_app.ba.bundle_adjustment import run_bundle_adjustment
from ar_app.config.settings import CalibrationSettings, PoseSettings
from ar_app.core.data_structures import (
    CalibrationResult,
    CalibrationSample,
    ExtrinsicPose,
    IntrinsicModel,
)
from ar_app.exceptions import InsufficientDataError
from ar_app.geometry.pnp import solve_pose
from ar_app.geometry.projection import reprojection_rms
from ar_app.log_config.logger import get_logger

logger = get_logger(__name__)


def initial_intrinsics(
    samples: Sequence[CalibrationSample],
    image_size: Tuple[int, int],
) -> IntrinsicModel:
    """
    Starting intrinsics: principal point at the image centre, fx == fy, no distortion.

    The focal length comes from the closed-form homography estimate of
    cv2.initCameraMatrix2D; if that is unusable, max(width, height) is used.
    """
    w, h = int(image_size[0]), int(image_size[1])
    cx, cy = (w - 1) * 0.5, (h - 1) * 0.5
    focal = float(max(w, h))

    try:
        K0 = cv2.initCameraMatrix2D(
            [s.model_points.astype(np.float32) for s in samples],
            [s.image_points.astype(np.float32) for s in samples],
            (w, h),
            1.0,
        )
        estimate = float(K0[1, 1])
        if np.isfinite(estimate) and estimate > 0.0:
            focal = estimate
        else:
            logger.warning(f"Initial focal estimate {estimate} unusable; using {focal}")
    except cv2.error as e:
        logger.warning(f"initCameraMatrix2D failed ({e}); using focal {focal}")

    return IntrinsicModel.from_params(focal, focal, cx, cy)


def calibrate_camera(
    samples: Sequence[CalibrationSample],
    image_size: Tuple[int, int],
    settings: CalibrationSettings | None = None,
) -> CalibrationResult:
    """
    Estimate intrinsics, distortion and one pose per sample.

    - Rejects the call when fewer than `settings.min_samples` samples are given
    - Builds an initial camera matrix and per-sample poses (PnP)
    - Runs a joint nonlinear least-squares fit over all samples
    - Reports the RMS reprojection error of the fitted model

    A fit that hits the evaluation cap is still returned, with
    `converged=False`; the caller judges the error.

    Args:
        samples: Calibration samples (model points paired with detections).
        image_size: (width, height) of the calibration frames in pixels.
        settings: Calibration settings.

    Returns:
        CalibrationResult for the samples that could be used.
    """
    settings = settings or CalibrationSettings()
    if len(samples) < settings.min_samples:
        raise InsufficientDataError(
            f"Calibration needs at least {settings.min_samples} samples, got {len(samples)}",
            available=len(samples),
            required=settings.min_samples,
        )

    K0 = initial_intrinsics(samples, image_size)
    logger.debug(f"Initial camera matrix:\n{K0.camera_matrix}")

    used_samples: List[CalibrationSample] = []
    used_indices: List[int] = []
    initial_poses: List[ExtrinsicPose] = []
    for idx, sample in enumerate(samples):
        pose = solve_pose(sample, K0, PoseSettings())
        if pose is None:
            logger.warning(f"Sample {idx}: no initial pose, dropping it from the fit")
            continue
        used_samples.append(sample.valid())
        used_indices.append(idx)
        initial_poses.append(pose)

    if len(used_samples) < settings.min_samples:
        raise InsufficientDataError(
            f"Only {len(used_samples)} usable samples, need {settings.min_samples}",
            available=len(used_samples),
            required=settings.min_samples,
        )

    intrinsics, poses, result = run_bundle_adjustment(
        used_samples, K0, initial_poses, settings
    )

    converged = bool(result.status > 0)
    if not converged:
        logger.warning(
            f"Calibration did not converge within {settings.max_iterations} evaluations "
            f"(status {result.status}); returning best solution"
        )

    per_sample = [
        reprojection_rms(s.model_points, s.image_points, pose, intrinsics)
        for s, pose in zip(used_samples, poses)
    ]
    n_points = sum(len(s) for s in used_samples)
    rms = float(np.sqrt(2.0 * result.cost / n_points))

    return CalibrationResult(
        intrinsics=intrinsics,
        poses=poses,
        rms_error=rms,
        per_sample_rms=per_sample,
        converged=converged,
        nfev=int(result.nfev),
        image_size=(int(image_size[0]), int(image_size[1])),
        sample_indices=used_indices,
    )


def log_calibration_result(result: CalibrationResult) -> None:
    """Log camera matrix, distortion coefficients and reprojection error."""
    with np.printoptions(precision=5, suppress=True):
        logger.info(f"Camera matrix:\n{result.intrinsics.camera_matrix}")
        logger.info(f"Distortion coefficients: {result.intrinsics.dist_coeffs}")
    logger.info(
        f"Re-projection error: {result.rms_error:.4f} px over {len(result.poses)} samples "
        f"(converged={result.converged}, nfev={result.nfev})"
    )


__all__ = ["initial_intrinsics", "calibrate_camera", "log_calibration_result"]
