from __future__ import annotations

import cv2
import numpy as np
import pytest

from ar_app.core.data_structures import ExtrinsicPose, IntrinsicModel
from ar_app.geometry.projection import project_points, reprojection_rms


def test_origin_maps_to_principal_point(intrinsics: IntrinsicModel) -> None:
    pose = ExtrinsicPose(np.zeros(3), np.zeros(3))

    uv = project_points(np.zeros((1, 3)), pose, intrinsics)

    np.testing.assert_allclose(uv, [[320.0, 240.0]])


def test_point_on_optical_axis(intrinsics: IntrinsicModel) -> None:
    pose = ExtrinsicPose(np.zeros(3), np.array([0.0, 0.0, 10.0]))

    uv = project_points(np.array([[1.0, 0.0, 0.0]]), pose, intrinsics)

    np.testing.assert_allclose(uv, [[320.0 + 80.0, 240.0]])


@pytest.mark.parametrize(
    "dist",
    [
        [0.0, 0.0, 0.0, 0.0, 0.0],
        [-0.2, 0.05, 0.001, -0.002, 0.01],
        [0.1, -0.03, 0.0005, 0.001, 0.002, 0.01, -0.005, 0.001],
    ],
)
def test_matches_opencv_project_points(model_points: np.ndarray, dist) -> None:
    intrinsics = IntrinsicModel.from_params(750.0, 760.0, 330.0, 250.0, dist)
    pose = ExtrinsicPose(np.array([0.2, -0.15, 0.05]), np.array([-4.0, 2.0, 15.0]))

    ours = project_points(model_points, pose, intrinsics)
    expected, _ = cv2.projectPoints(
        model_points.copy(),
        pose.rvec.reshape(3, 1),
        pose.tvec.reshape(3, 1),
        intrinsics.camera_matrix,
        intrinsics.dist_coeffs,
    )

    np.testing.assert_allclose(ours, expected.reshape(-1, 2), atol=1e-8)


def test_reprojection_rms_of_shifted_points(model_points: np.ndarray, intrinsics: IntrinsicModel) -> None:
    pose = ExtrinsicPose(np.array([0.1, 0.0, 0.0]), np.array([-4.0, 2.0, 20.0]))
    observed = project_points(model_points, pose, intrinsics) + np.array([3.0, 4.0])

    assert reprojection_rms(model_points, observed, pose, intrinsics) == pytest.approx(5.0)
