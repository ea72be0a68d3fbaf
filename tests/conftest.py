from __future__ import annotations

import numpy as np
import pytest

from ar_app.calib.target import build_model_points
from ar_app.core.data_structures import ExtrinsicPose, IntrinsicModel, TargetGeometry

# Target views used by the synthetic calibration tests.
VIEW_POSES = [
    ([0.3, 0.0, 0.0], [-4.0, 2.5, 16.0]),
    ([-0.3, 0.1, 0.0], [-4.5, 3.0, 15.0]),
    ([0.0, 0.35, 0.1], [-3.5, 2.0, 17.0]),
    ([0.1, -0.3, -0.1], [-4.0, 2.5, 16.0]),
    ([0.25, 0.25, 0.0], [-3.0, 3.0, 18.0]),
]


@pytest.fixture
def geometry() -> TargetGeometry:
    return TargetGeometry(rows=6, cols=9)


@pytest.fixture
def model_points(geometry: TargetGeometry) -> np.ndarray:
    return build_model_points(geometry)


@pytest.fixture
def intrinsics() -> IntrinsicModel:
    return IntrinsicModel.from_params(800.0, 800.0, 320.0, 240.0)


@pytest.fixture
def view_poses() -> list:
    return [ExtrinsicPose(np.array(r), np.array(t)) for r, t in VIEW_POSES]
