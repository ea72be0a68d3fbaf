from __future__ import annotations

from pathlib import Path

import numpy as np
import pytest

from ar_app.config.settings import CalibrationSettings
from ar_app.core.data_structures import CalibrationResult, ExtrinsicPose, IntrinsicModel
from ar_app.exceptions import SessionError
from ar_app.geometry.projection import project_points
from ar_app.io.calib_io import load_calibration
from ar_app.session.calibration_session import CalibrationSession, SessionState


class FakeEstimator:
    def __init__(self):
        self.calls = []

    def __call__(self, samples, image_size, settings) -> CalibrationResult:
        self.calls.append((len(samples), image_size))
        return CalibrationResult(
            intrinsics=IntrinsicModel.from_params(800.0, 800.0, 320.0, 240.0),
            poses=[ExtrinsicPose(np.zeros(3), np.array([0.0, 0.0, 10.0])) for _ in samples],
            rms_error=0.25,
            per_sample_rms=[0.25] * len(samples),
            converged=True,
            nfev=12,
            image_size=image_size,
            sample_indices=list(range(len(samples))),
        )


def _corners(geometry) -> np.ndarray:
    return np.random.default_rng(0).uniform(0, 400, size=(geometry.num_points, 2))


def test_samples_share_model_points(geometry) -> None:
    session = CalibrationSession(geometry, estimator=FakeEstimator())

    first = session.add_sample(_corners(geometry))
    second = session.add_sample(_corners(geometry))

    assert session.num_samples == 2
    assert first.model_points is second.model_points
    assert session.state is SessionState.COLLECTING


def test_calibrate_below_minimum_is_a_no_op(geometry) -> None:
    estimator = FakeEstimator()
    session = CalibrationSession(geometry, estimator=estimator)
    for _ in range(4):
        session.add_sample(_corners(geometry))

    assert session.calibrate((640, 480)) is None
    assert session.state is SessionState.COLLECTING
    assert estimator.calls == []


def test_calibrate_then_save(geometry, tmp_path: Path) -> None:
    estimator = FakeEstimator()
    session = CalibrationSession(geometry, estimator=estimator)
    for _ in range(5):
        session.add_sample(_corners(geometry))

    result = session.calibrate((640, 480))
    saved = session.save(tmp_path / "calibration.txt")

    assert result is not None
    assert session.state is SessionState.CALIBRATED
    assert estimator.calls == [(5, (640, 480))]
    assert saved is True
    assert load_calibration(tmp_path / "calibration.txt").fx == 800.0


def test_recalibration_uses_all_samples(geometry) -> None:
    estimator = FakeEstimator()
    session = CalibrationSession(geometry, CalibrationSettings(min_samples=2), estimator=estimator)
    for _ in range(2):
        session.add_sample(_corners(geometry))
    session.calibrate((640, 480))
    session.add_sample(_corners(geometry))
    session.calibrate((640, 480))

    assert [n for n, _ in estimator.calls] == [2, 3]


def test_save_before_calibration_is_a_no_op(geometry, tmp_path: Path) -> None:
    session = CalibrationSession(geometry, estimator=FakeEstimator())

    assert session.save(tmp_path / "calibration.txt") is False
    assert not (tmp_path / "calibration.txt").exists()


def test_terminal_session_rejects_changes(geometry, tmp_path: Path) -> None:
    session = CalibrationSession(geometry, estimator=FakeEstimator())
    session.quit()

    assert session.state is SessionState.TERMINAL
    with pytest.raises(SessionError):
        session.add_sample(_corners(geometry))
    with pytest.raises(SessionError):
        session.calibrate((640, 480))
    with pytest.raises(SessionError):
        session.save(tmp_path / "calibration.txt")


def test_selected_frames_are_written(geometry, tmp_path: Path) -> None:
    frames_dir = tmp_path / "frames"
    session = CalibrationSession(geometry, frames_dir=frames_dir, estimator=FakeEstimator())
    frame = np.full((48, 64, 3), 128, dtype=np.uint8)

    session.add_sample(_corners(geometry), frame)
    session.add_sample(_corners(geometry), frame)
    session.add_sample(_corners(geometry))

    assert sorted(p.name for p in frames_dir.iterdir()) == [
        "calibration_frame_0.jpg",
        "calibration_frame_1.jpg",
    ]


def test_full_session_with_real_estimator(geometry, model_points, intrinsics, view_poses, tmp_path: Path) -> None:
    session = CalibrationSession(geometry)
    rng = np.random.default_rng(11)
    for pose in view_poses:
        corners = project_points(model_points, pose, intrinsics)
        session.add_sample(corners + rng.uniform(-0.5, 0.5, size=corners.shape))

    result = session.calibrate((640, 480))
    assert session.save(tmp_path / "calibration.txt") is True
    loaded = load_calibration(tmp_path / "calibration.txt")

    assert session.state is SessionState.CALIBRATED
    assert result.rms_error < 1.0
    assert loaded.fx == pytest.approx(800.0, rel=0.05)
    np.testing.assert_array_equal(loaded.camera_matrix, result.intrinsics.camera_matrix)
    np.testing.assert_array_equal(loaded.dist_coeffs, result.intrinsics.dist_coeffs)
