"""
Perspective-n-Point (PnP) pose estimation for a calibrated camera.
"""

from __future__ import annotations

from typing import Optional, Tuple

import cv2
import numpy as np
from scipy.optimize import least_squares

from ar_app.config.settings import PoseSettings
from ar_app.core.data_structures import Correspondence, ExtrinsicPose, IntrinsicModel
from ar_app.geometry.projection import project_with_params
from ar_app.log_config.logger import get_logger

logger = get_logger(__name__)

# Relative singular-value thresholds.
COLLINEAR_TOL = 1e-9
PLANAR_TOL = 1e-6
DLT_RANK_TOL = 1e-10


def _hartley_normalize(pts: np.ndarray) -> Optional[Tuple[np.ndarray, np.ndarray]]:
    """Translate to the centroid and scale to mean distance sqrt(2)."""
    mean = pts.mean(axis=0)
    d = np.sqrt(np.sum((pts - mean) ** 2, axis=1)).mean()
    if not np.isfinite(d) or d <= 0.0:
        return None
    s = np.sqrt(2.0) / d
    T = np.array(
        [[s, 0.0, -s * mean[0]], [0.0, s, -s * mean[1]], [0.0, 0.0, 1.0]],
        dtype=np.float64,
    )
    return (pts - mean) * s, T


def homography_dlt(src: np.ndarray, dst: np.ndarray) -> Optional[np.ndarray]:
    """
    Estimate the homography mapping 2D `src` to 2D `dst` with the normalized DLT.

    Args:
        src: Source points (N, 2), N >= 4.
        dst: Destination points (N, 2).

    Returns:
        3x3 homography, or None when the linear system does not have a unique
        solution (fewer than 4 points, collinear or coincident points).
    """
    if src.shape[0] < 4:
        return None
    norm_src = _hartley_normalize(src)
    norm_dst = _hartley_normalize(dst)
    if norm_src is None or norm_dst is None:
        return None
    src_n, T_src = norm_src
    dst_n, T_dst = norm_dst

    n = src.shape[0]
    x, y = src_n[:, 0], src_n[:, 1]
    u, v = dst_n[:, 0], dst_n[:, 1]
    zeros = np.zeros(n)
    ones = np.ones(n)
    A = np.zeros((2 * n, 9), dtype=np.float64)
    A[0::2] = np.stack([-x, -y, -ones, zeros, zeros, zeros, u * x, u * y, u], axis=1)
    A[1::2] = np.stack([zeros, zeros, zeros, -x, -y, -ones, v * x, v * y, v], axis=1)

    _, s, Vt = np.linalg.svd(A)
    # The nullspace must be exactly one-dimensional: rank(A) == 8.
    s_full = np.zeros(9)
    s_full[: s.size] = s
    if s_full[0] <= 0.0 or s_full[7] <= DLT_RANK_TOL * s_full[0]:
        return None

    H_n = Vt[-1].reshape(3, 3)
    H = np.linalg.inv(T_dst) @ H_n @ T_src
    if not np.all(np.isfinite(H)):
        return None
    return H


def _pose_from_plane_homography(H: np.ndarray) -> Optional[Tuple[np.ndarray, np.ndarray]]:
    """Decompose a plane-to-normalized-image homography into (R, t)."""
    h1, h2, h3 = H[:, 0], H[:, 1], H[:, 2]
    scale = 0.5 * (np.linalg.norm(h1) + np.linalg.norm(h2))
    if scale <= 0.0 or not np.isfinite(scale):
        return None
    lam = 1.0 / scale
    # The plane origin must lie in front of the camera.
    if h3[2] * lam < 0.0:
        lam = -lam

    r1 = lam * h1
    r2 = lam * h2
    r3 = np.cross(r1, r2)
    U, _, Vt = np.linalg.svd(np.column_stack([r1, r2, r3]))
    R = U @ Vt
    if np.linalg.det(R) < 0.0:
        U[:, -1] *= -1.0
        R = U @ Vt
    t = lam * h3
    return R, t


def initial_pose_dlt(
    model_points: np.ndarray,
    image_points: np.ndarray,
    intrinsics: IntrinsicModel,
) -> Optional[Tuple[np.ndarray, np.ndarray]]:
    """
    Closed-form pose guess for coplanar (or general) model points.

    Coplanar points: homography DLT between plane coordinates and undistorted
    normalized image coordinates, decomposed into (R, t). Non-coplanar points
    fall back to EPnP.

    Returns:
        (rvec (3,), tvec (3,)) or None when the configuration is degenerate.
    """
    centroid = model_points.mean(axis=0)
    centered = model_points - centroid
    _, s, Vt = np.linalg.svd(centered, full_matrices=True)
    s_full = np.zeros(3)
    s_full[: s.size] = s
    if s_full[0] <= 0.0 or s_full[1] <= COLLINEAR_TOL * s_full[0]:
        logger.debug("Model points are collinear or coincident; no pose")
        return None

    if s_full[2] > PLANAR_TOL * s_full[0]:
        ok, rvec, tvec = cv2.solvePnP(
            model_points.reshape(-1, 1, 3).copy(),
            image_points.reshape(-1, 1, 2).copy(),
            intrinsics.camera_matrix,
            intrinsics.dist_coeffs,
            flags=cv2.SOLVEPNP_EPNP,
        )
        if not ok:
            return None
        return rvec.ravel(), tvec.ravel()

    # Orthonormal plane basis (e1, e2, n) with det +1.
    B = Vt.copy()
    if np.linalg.det(B) < 0.0:
        B[2] *= -1.0
    plane_xy = centered @ B[:2].T

    normalized = cv2.undistortPoints(
        image_points.reshape(-1, 1, 2),
        intrinsics.camera_matrix,
        intrinsics.dist_coeffs,
    ).reshape(-1, 2)

    H = homography_dlt(plane_xy, normalized)
    if H is None:
        logger.debug("Homography system is degenerate; no pose")
        return None
    decomposed = _pose_from_plane_homography(H)
    if decomposed is None:
        return None
    R_plane, t_plane = decomposed

    R = R_plane @ B
    t = t_plane - R @ centroid
    rvec, _ = cv2.Rodrigues(R)
    return rvec.ravel(), t


def solve_pose(
    correspondence: Correspondence,
    intrinsics: IntrinsicModel,
    settings: PoseSettings | None = None,
) -> Optional[ExtrinsicPose]:
    """
    Estimate the target-to-camera pose from one frame's correspondences.

    A direct-linear-transform guess is refined with Levenberg-Marquardt on the
    pixel reprojection residual. No random sampling is involved, so identical
    inputs give identical poses.

    Args:
        correspondence: Model points and their detections, index-aligned.
        intrinsics: Known camera matrix and distortion coefficients.
        settings: Minimum point count and iteration cap.

    Returns:
        ExtrinsicPose, or None when fewer than `min_points` valid points are
        available or the configuration is degenerate.
    """
    settings = settings or PoseSettings()
    valid = correspondence.valid()
    if len(valid) < settings.min_points:
        logger.warning(
            f"Pose needs at least {settings.min_points} valid points, got {len(valid)}"
        )
        return None

    model = valid.model_points
    image = valid.image_points

    guess = initial_pose_dlt(model, image, intrinsics)
    if guess is None:
        return None
    rvec0, tvec0 = guess

    fx, fy, cx, cy = intrinsics.fx, intrinsics.fy, intrinsics.cx, intrinsics.cy
    dist = intrinsics.dist_coeffs

    def residuals(params: np.ndarray) -> np.ndarray:
        projected = project_with_params(model, params[:3], params[3:], fx, fy, cx, cy, dist)
        return (projected - image).ravel()

    x0 = np.concatenate([rvec0, tvec0])
    n_params = x0.size
    result = least_squares(
        residuals,
        x0,
        method="lm",
        # "lm" counts the finite-difference evaluations too.
        max_nfev=int(settings.max_iterations) * (n_params + 1),
    )
    if not np.all(np.isfinite(result.x)):
        logger.warning("Pose refinement produced non-finite parameters")
        return None

    pose = ExtrinsicPose(result.x[:3], result.x[3:])

    C = pose.camera_center()
    logger.debug(
        f"Pose: center {np.round(C, 3)} norm {float(np.linalg.norm(C)):.3f} "
        f"status {result.status} nfev {result.nfev}"
    )
    return pose


__all__ = ["homography_dlt", "initial_pose_dlt", "solve_pose"]
