"""
Visualization of calibration results using Plotly.
"""

from __future__ import annotations

import plotly.graph_objs as go
import numpy as np

from ar_app.core.data_structures import CalibrationResult


def plot_calibration_poses(result: CalibrationResult, model_points: np.ndarray) -> go.Figure:
    """
    Create a 3D Plotly view of the target and the camera positions of each sample.

    Args:
        result: Calibration result holding one pose per used sample.
        model_points: (N, 3) target corner positions in target coordinates.

    Returns:
        Plotly Figure with the board corners and camera centers, in target units.
    """
    board = np.asarray(model_points, dtype=np.float64).reshape(-1, 3)

    # Camera centers in target coordinates: C = -R^T @ t
    if result.poses:
        camera_centers = np.array([pose.camera_center() for pose in result.poses])
    else:
        camera_centers = np.array([]).reshape(0, 3)

    labels = [
        f"Sample {idx} (rms {rms:.3f} px)"
        for idx, rms in zip(result.sample_indices, result.per_sample_rms)
    ]

    fig = go.Figure()

    fig.add_trace(
        go.Scatter3d(
            x=board[:, 0],
            y=board[:, 1],
            z=board[:, 2],
            mode="markers",
            marker=dict(size=3, color="black", opacity=0.8),
            name="Target corners",
            text=[f"Corner {i}" for i in range(len(board))],
        )
    )

    if len(camera_centers) > 0:
        fig.add_trace(
            go.Scatter3d(
                x=camera_centers[:, 0],
                y=camera_centers[:, 1],
                z=camera_centers[:, 2],
                mode="markers",
                marker=dict(
                    size=8,
                    color="red",
                    symbol="diamond",
                ),
                name="Camera Centers",
                text=labels,
            )
        )

    fig.update_layout(
        title=f"Calibration views (rms {result.rms_error:.3f} px)",
        scene=dict(
            xaxis_title="X",
            yaxis_title="Y",
            zaxis_title="Z",
            aspectmode="data",
        ),
        width=800,
        height=600,
    )

    return fig


__all__ = ["plot_calibration_poses"]
