"""
Bundle adjustment for refining intrinsics and per-sample target poses jointly.
"""

from __future__ import annotations

from typing import Dict, List, Sequence, Tuple

import numpy as np
from scipy.optimize import OptimizeResult, least_squares

from ar_app.config.settings import CalibrationSettings
from ar_app.core.data_structures import (
    MIN_DIST_COEFFS,
    CalibrationSample,
    ExtrinsicPose,
    IntrinsicModel,
)
from ar_app.geometry.projection import project_with_params
from ar_app.log_config.logger import get_logger

logger = get_logger(__name__)


def pack_parameters(
    intrinsics: IntrinsicModel,
    poses: Sequence[ExtrinsicPose],
    fix_aspect_ratio: bool = True,
) -> Tuple[np.ndarray, Dict]:
    """
    Pack intrinsics, distortion and all sample poses into a 1D parameter vector.

    Args:
        intrinsics: Starting camera matrix and distortion.
        poses: Starting target pose for every sample.
        fix_aspect_ratio: Keep fx / fy at its starting value (one focal parameter).

    Returns:
        Tuple of (params, meta) where:
        - params: 1D array of all parameters.
        - meta: Dictionary with slice information for unpacking:
            - meta["focal_slice"] -> f, or fx and fy
            - meta["center_slice"] -> cx, cy
            - meta["dist_slice"] -> k1, k2, p1, p2, k3
            - meta["pose_slice"][k] -> rvec (3) + tvec (3) of sample k
            - meta["aspect_ratio"]: fixed fx / fy when fix_aspect_ratio is set
    """
    param_list: List[float] = []
    meta: Dict = {
        "fix_aspect_ratio": bool(fix_aspect_ratio),
        "aspect_ratio": intrinsics.fx / intrinsics.fy,
        "pose_slice": [],
    }

    start = len(param_list)
    if fix_aspect_ratio:
        param_list.append(intrinsics.fy)
    else:
        param_list.extend([intrinsics.fx, intrinsics.fy])
    meta["focal_slice"] = slice(start, len(param_list))

    start = len(param_list)
    param_list.extend([intrinsics.cx, intrinsics.cy])
    meta["center_slice"] = slice(start, len(param_list))

    start = len(param_list)
    dist = np.zeros(MIN_DIST_COEFFS)
    n = min(MIN_DIST_COEFFS, intrinsics.dist_coeffs.size)
    dist[:n] = intrinsics.dist_coeffs[:n]
    param_list.extend(dist.tolist())
    meta["dist_slice"] = slice(start, len(param_list))

    # Pack pose parameters (6 per sample: rvec (3) + t (3))
    for pose in poses:
        start = len(param_list)
        param_list.extend(pose.rvec.tolist())
        param_list.extend(pose.tvec.tolist())
        meta["pose_slice"].append(slice(start, len(param_list)))

    params = np.array(param_list, dtype=np.float64)
    return params, meta


def _camera_params(params: np.ndarray, meta: Dict) -> Tuple[float, float, float, float, np.ndarray]:
    focal = params[meta["focal_slice"]]
    if meta["fix_aspect_ratio"]:
        fy = float(focal[0])
        fx = fy * meta["aspect_ratio"]
    else:
        fx, fy = float(focal[0]), float(focal[1])
    cx, cy = params[meta["center_slice"]]
    dist = params[meta["dist_slice"]]
    return fx, fy, float(cx), float(cy), dist


def unpack_parameters(
    params: np.ndarray,
    meta: Dict,
) -> Tuple[IntrinsicModel, List[ExtrinsicPose]]:
    """
    Unpack an optimized parameter vector.

    Args:
        params: 1D array of optimized parameters.
        meta: Dictionary with slice information from pack_parameters.

    Returns:
        Tuple of (intrinsics, poses).
    """
    fx, fy, cx, cy, dist = _camera_params(params, meta)
    intrinsics = IntrinsicModel.from_params(fx, fy, cx, cy, dist.copy())

    poses = []
    for pose_slice in meta["pose_slice"]:
        pose_params = params[pose_slice]
        poses.append(ExtrinsicPose(pose_params[:3], pose_params[3:6]))
    return intrinsics, poses


def reprojection_residuals(
    params: np.ndarray,
    samples: Sequence[CalibrationSample],
    meta: Dict,
) -> np.ndarray:
    """
    Compute reprojection residuals for every corner of every sample.

    Args:
        params: 1D parameter vector (intrinsics + sample poses).
        samples: Calibration samples, in the order their poses were packed.
        meta: Dictionary with slice information for unpacking.

    Returns:
        1D array of residuals (2 per corner: [du, dv]).
    """
    fx, fy, cx, cy, dist = _camera_params(params, meta)
    residuals = []
    for sample, pose_slice in zip(samples, meta["pose_slice"]):
        pose_params = params[pose_slice]
        projected = project_with_params(
            sample.model_points, pose_params[:3], pose_params[3:6], fx, fy, cx, cy, dist
        )
        residuals.append((projected - sample.image_points).ravel())
    return np.concatenate(residuals)


def run_bundle_adjustment(
    samples: Sequence[CalibrationSample],
    intrinsics: IntrinsicModel,
    poses: Sequence[ExtrinsicPose],
    settings: CalibrationSettings | None = None,
) -> Tuple[IntrinsicModel, List[ExtrinsicPose], OptimizeResult]:
    """
    Refine camera intrinsics, distortion and every sample pose simultaneously.

    Args:
        samples: Calibration samples (model points + detected corners).
        intrinsics: Initial intrinsic guess.
        poses: Initial pose per sample.
        settings: Aspect-ratio constraint, tolerance and evaluation cap.

    Returns:
        Tuple of (intrinsics, poses, result) where `result` is scipy's
        OptimizeResult; `result.status == 0` means the evaluation cap was hit.
    """
    settings = settings or CalibrationSettings()
    if len(samples) != len(poses):
        raise ValueError(f"{len(samples)} samples but {len(poses)} poses")

    params, meta = pack_parameters(intrinsics, poses, settings.fix_aspect_ratio)

    n_obs = sum(len(s) for s in samples)
    logger.info(
        f"Starting bundle adjustment with {len(samples)} samples, "
        f"{n_obs} corners, {params.size} parameters, "
        f"max_nfev={settings.max_iterations}"
    )

    result = least_squares(
        reprojection_residuals,
        params,
        args=(samples, meta),
        method="trf",
        x_scale="jac",
        xtol=settings.tolerance,
        ftol=settings.tolerance,
        max_nfev=settings.max_iterations,
    )

    logger.info(
        f"Bundle adjustment done. Status={result.status}, nfev={result.nfev}, "
        f"final_cost={result.cost:.3e}"
    )

    refined_intrinsics, refined_poses = unpack_parameters(result.x, meta)
    return refined_intrinsics, refined_poses, result


__all__ = [
    "pack_parameters",
    "unpack_parameters",
    "reprojection_residuals",
    "run_bundle_adjustment",
]
