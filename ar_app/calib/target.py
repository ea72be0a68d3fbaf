"""
Canonical 3D corner coordinates of the planar chessboard target.
"""

from __future__ import annotations

import numpy as np

from ar_app.core.data_structures import TargetGeometry


def build_model_points(geometry: TargetGeometry) -> np.ndarray:
    """
    Build the 3D target-space points for the inner corners of a chessboard.

    Coordinates are in units of chessboard squares. Corners are emitted row by
    row; the point for row i, column j is (j, -i, 0), so the target's "up" points
    towards decreasing row index. Overlay shapes are authored in this frame.

    Args:
        geometry: Number of inner corners along each axis.

    Returns:
        Read-only (rows * cols, 3) float64 array.
    """
    ii, jj = np.meshgrid(
        np.arange(geometry.rows, dtype=np.float64),
        np.arange(geometry.cols, dtype=np.float64),
        indexing="ij",
    )
    points = np.zeros((geometry.num_points, 3), dtype=np.float64)
    points[:, 0] = jj.ravel()
    points[:, 1] = -ii.ravel()
    points.setflags(write=False)
    return points


__all__ = ["build_model_points"]
