"""
Shared core data structures for calibration and pose estimation.

These dataclasses are the containers passed between:
- the chessboard detector
- the calibration estimator and pose solver
- the overlay projector and the parameter store
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

import cv2
import numpy as np

MIN_DIST_COEFFS = 5
MAX_DIST_COEFFS = 8


@dataclass(frozen=True)
class TargetGeometry:
    """Number of inner corners along each axis of a planar chessboard."""

    rows: int
    cols: int

    def __post_init__(self) -> None:
        if int(self.rows) < 2 or int(self.cols) < 2:
            raise ValueError(
                f"target needs at least 2x2 inner corners, got rows={self.rows} cols={self.cols}"
            )

    @property
    def num_points(self) -> int:
        return self.rows * self.cols

    @property
    def pattern_size(self) -> Tuple[int, int]:
        """OpenCV pattern size: (points per row, points per column)."""
        return (self.cols, self.rows)


@dataclass(frozen=True)
class Correspondence:
    """
    Index-aligned pairing of target model points and their image detections.

    Row k of `model_points` (N, 3) is observed at row k of `image_points` (N, 2).
    The arrays are only ever built together, so the ordering cannot drift apart.
    """

    model_points: np.ndarray
    image_points: np.ndarray

    def __post_init__(self) -> None:
        model = np.asarray(self.model_points, dtype=np.float64)
        image = np.asarray(self.image_points, dtype=np.float64)
        # Accept OpenCV's (N, 1, C) layout.
        if model.ndim == 3 and model.shape[1] == 1:
            model = model[:, 0, :]
        if image.ndim == 3 and image.shape[1] == 1:
            image = image[:, 0, :]
        if model.ndim != 2 or model.shape[1] != 3:
            raise ValueError(f"model points must have shape (N, 3), got {model.shape}")
        if image.ndim != 2 or image.shape[1] != 2:
            raise ValueError(f"image points must have shape (N, 2), got {image.shape}")
        if model.shape[0] != image.shape[0]:
            raise ValueError(
                f"{model.shape[0]} model points but {image.shape[0]} image points"
            )
        object.__setattr__(self, "model_points", model)
        object.__setattr__(self, "image_points", image)

    def __len__(self) -> int:
        return int(self.model_points.shape[0])

    def valid(self) -> "Correspondence":
        """Return the rows whose model and image coordinates are all finite."""
        mask = np.all(np.isfinite(self.model_points), axis=1) & np.all(
            np.isfinite(self.image_points), axis=1
        )
        if np.all(mask):
            return self
        return Correspondence(self.model_points[mask], self.image_points[mask])


# One snapshot kept by the interactive calibration session.
CalibrationSample = Correspondence


@dataclass(frozen=True)
class IntrinsicModel:
    """Pinhole camera matrix plus OpenCV-ordered distortion coefficients."""

    camera_matrix: np.ndarray
    dist_coeffs: np.ndarray

    def __post_init__(self) -> None:
        K = np.asarray(self.camera_matrix, dtype=np.float64)
        dist = np.asarray(self.dist_coeffs, dtype=np.float64).reshape(-1)
        if K.shape != (3, 3):
            raise ValueError(f"camera matrix must be 3x3, got {K.shape}")
        if not np.all(np.isfinite(K)):
            raise ValueError("camera matrix contains non-finite values")
        if K[0, 1] != 0.0 or K[1, 0] != 0.0 or K[2, 0] != 0.0 or K[2, 1] != 0.0 or K[2, 2] != 1.0:
            raise ValueError("camera matrix must be upper-triangular with bottom row 0 0 1 and no skew")
        if K[0, 0] <= 0.0 or K[1, 1] <= 0.0:
            raise ValueError("focal lengths must be positive")
        if not MIN_DIST_COEFFS <= dist.size <= MAX_DIST_COEFFS:
            raise ValueError(
                f"expected {MIN_DIST_COEFFS}..{MAX_DIST_COEFFS} distortion coefficients, got {dist.size}"
            )
        if not np.all(np.isfinite(dist)):
            raise ValueError("distortion coefficients contain non-finite values")
        object.__setattr__(self, "camera_matrix", K)
        object.__setattr__(self, "dist_coeffs", dist)

    @classmethod
    def from_params(
        cls,
        fx: float,
        fy: float,
        cx: float,
        cy: float,
        dist: Optional[Sequence[float]] = None,
    ) -> "IntrinsicModel":
        K = np.array([[fx, 0.0, cx], [0.0, fy, cy], [0.0, 0.0, 1.0]], dtype=np.float64)
        if dist is None:
            dist = np.zeros(MIN_DIST_COEFFS, dtype=np.float64)
        return cls(K, np.asarray(dist, dtype=np.float64))

    @property
    def fx(self) -> float:
        return float(self.camera_matrix[0, 0])

    @property
    def fy(self) -> float:
        return float(self.camera_matrix[1, 1])

    @property
    def cx(self) -> float:
        return float(self.camera_matrix[0, 2])

    @property
    def cy(self) -> float:
        return float(self.camera_matrix[1, 2])


@dataclass(frozen=True)
class ExtrinsicPose:
    """Rotation (Rodrigues vector) and translation from target to camera coordinates."""

    rvec: np.ndarray
    tvec: np.ndarray

    def __post_init__(self) -> None:
        rvec = np.asarray(self.rvec, dtype=np.float64).reshape(3)
        tvec = np.asarray(self.tvec, dtype=np.float64).reshape(3)
        object.__setattr__(self, "rvec", rvec)
        object.__setattr__(self, "tvec", tvec)

    @classmethod
    def from_matrix(cls, R: np.ndarray, t: np.ndarray) -> "ExtrinsicPose":
        rvec, _ = cv2.Rodrigues(np.asarray(R, dtype=np.float64))
        return cls(rvec.ravel(), np.asarray(t, dtype=np.float64).ravel())

    def rotation_matrix(self) -> np.ndarray:
        R, _ = cv2.Rodrigues(self.rvec.reshape(3, 1))
        return R

    def camera_center(self) -> np.ndarray:
        """Camera centre in target coordinates: C = -R^T t."""
        R = self.rotation_matrix()
        return -R.T @ self.tvec


@dataclass(frozen=True)
class Detection:
    """Result of looking for the target in one frame."""

    found: bool
    # (N, 2) sub-pixel corners in row-major target order; empty when not found.
    image_points: np.ndarray = field(default_factory=lambda: np.zeros((0, 2)))


@dataclass
class CalibrationResult:
    """Everything produced by one calibration run."""

    intrinsics: IntrinsicModel
    # One pose per calibration sample that took part in the fit.
    poses: List[ExtrinsicPose]
    # RMS distance in pixels between detected and reprojected corners.
    rms_error: float
    per_sample_rms: List[float]
    converged: bool
    nfev: int
    image_size: Tuple[int, int]
    # Indices into the input sample list of the samples used for the fit.
    sample_indices: List[int] = field(default_factory=list)


__all__ = [
    "TargetGeometry",
    "Correspondence",
    "CalibrationSample",
    "IntrinsicModel",
    "ExtrinsicPose",
    "Detection",
    "CalibrationResult",
    "MIN_DIST_COEFFS",
    "MAX_DIST_COEFFS",
]
