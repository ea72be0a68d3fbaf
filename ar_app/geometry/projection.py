"""
Projection of target-space 3D points into distorted image pixels.
"""

from __future__ import annotations

import cv2
import numpy as np

from ar_app.core.data_structures import MAX_DIST_COEFFS, ExtrinsicPose, IntrinsicModel


def _full_dist(dist_coeffs: np.ndarray) -> np.ndarray:
    dist = np.zeros(MAX_DIST_COEFFS, dtype=np.float64)
    d = np.asarray(dist_coeffs, dtype=np.float64).ravel()
    dist[: d.size] = d
    return dist


def distort_normalized(x: np.ndarray, y: np.ndarray, dist_coeffs: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    """
    Apply radial and tangential distortion to normalized coordinates (x=X/Z, y=Y/Z).

    Coefficient order follows OpenCV: k1, k2, p1, p2, k3[, k4, k5, k6], where
    k4..k6 form the denominator of the rational radial model.
    """
    k1, k2, p1, p2, k3, k4, k5, k6 = _full_dist(dist_coeffs)
    r2 = x * x + y * y
    r4 = r2 * r2
    r6 = r4 * r2
    radial = (1.0 + k1 * r2 + k2 * r4 + k3 * r6) / (1.0 + k4 * r2 + k5 * r4 + k6 * r6)
    xy = x * y
    xd = x * radial + 2.0 * p1 * xy + p2 * (r2 + 2.0 * x * x)
    yd = y * radial + p1 * (r2 + 2.0 * y * y) + 2.0 * p2 * xy
    return xd, yd


def project_with_params(
    points: np.ndarray,
    rvec: np.ndarray,
    tvec: np.ndarray,
    fx: float,
    fy: float,
    cx: float,
    cy: float,
    dist_coeffs: np.ndarray,
) -> np.ndarray:
    """
    Project points given raw parameters; used directly by the optimizers.

    Points with camera-space Z == 0 are not divided (same convention as
    cv2.projectPoints), so the camera origin maps to the principal point.
    """
    points = np.asarray(points, dtype=np.float64).reshape(-1, 3)
    R, _ = cv2.Rodrigues(np.asarray(rvec, dtype=np.float64).reshape(3, 1))
    XYZ = points @ R.T + np.asarray(tvec, dtype=np.float64).reshape(1, 3)

    Z = XYZ[:, 2]
    safe_Z = np.where(Z != 0.0, Z, 1.0)
    x = XYZ[:, 0] / safe_Z
    y = XYZ[:, 1] / safe_Z
    xd, yd = distort_normalized(x, y, dist_coeffs)

    uv = np.empty((points.shape[0], 2), dtype=np.float64)
    uv[:, 0] = fx * xd + cx
    uv[:, 1] = fy * yd + cy
    return uv


def project_points(
    points: np.ndarray,
    pose: ExtrinsicPose,
    intrinsics: IntrinsicModel,
) -> np.ndarray:
    """
    Map target-space 3D points to image pixel coordinates.

    Args:
        points: 3D points in target coordinates (N, 3).
        pose: Target-to-camera rotation and translation.
        intrinsics: Camera matrix and distortion coefficients.

    Returns:
        Projected 2D points (N, 2) in pixels.
    """
    return project_with_params(
        points,
        pose.rvec,
        pose.tvec,
        intrinsics.fx,
        intrinsics.fy,
        intrinsics.cx,
        intrinsics.cy,
        intrinsics.dist_coeffs,
    )


def reprojection_rms(
    model_points: np.ndarray,
    image_points: np.ndarray,
    pose: ExtrinsicPose,
    intrinsics: IntrinsicModel,
) -> float:
    """Root-mean-square pixel distance between observed and reprojected points."""
    projected = project_points(model_points, pose, intrinsics)
    d2 = np.sum((projected - np.asarray(image_points, dtype=np.float64)) ** 2, axis=1)
    return float(np.sqrt(np.mean(d2))) if d2.size else 0.0


__all__ = ["distort_normalized", "project_with_params", "project_points", "reprojection_rms"]
