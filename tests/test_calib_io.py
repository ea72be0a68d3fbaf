from __future__ import annotations

from pathlib import Path

import numpy as np
import pytest

from ar_app.core.data_structures import IntrinsicModel
from ar_app.exceptions import MalformedCalibrationFileError
from ar_app.io.calib_io import load_calibration, save_calibration

VALID_TEXT = "800.5 0 320.25\n0 801.0 240.75\n0 0 1\n-0.1 0.01 0.001 -0.002 0.0003\n"


def _write(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "calibration.txt"
    path.write_text(text)
    return path


def test_save_then_load_is_exact(tmp_path: Path) -> None:
    intrinsics = IntrinsicModel.from_params(
        812.3456789012345, 812.3456789012345, 319.123456789, 241.987654321,
        [-0.123456789, 0.0456, 1.5e-4, -2.25e-4, 0.0078],
    )
    path = tmp_path / "out" / "calibration.txt"
    path.parent.mkdir()

    save_calibration(path, intrinsics)
    loaded = load_calibration(path)

    np.testing.assert_array_equal(loaded.camera_matrix, intrinsics.camera_matrix)
    np.testing.assert_array_equal(loaded.dist_coeffs, intrinsics.dist_coeffs)


def test_saved_file_has_four_lines(tmp_path: Path) -> None:
    path = tmp_path / "calibration.txt"
    save_calibration(path, IntrinsicModel.from_params(800.0, 800.0, 320.0, 240.0))

    lines = path.read_text().splitlines()

    assert len(lines) == 4
    assert [float(v) for v in lines[2].split()] == [0.0, 0.0, 1.0]
    assert len(lines[3].split()) == 5


def test_load_valid_file(tmp_path: Path) -> None:
    loaded = load_calibration(_write(tmp_path, VALID_TEXT))

    assert loaded.fx == 800.5
    assert loaded.cy == 240.75
    np.testing.assert_allclose(loaded.dist_coeffs, [-0.1, 0.01, 0.001, -0.002, 0.0003])


def test_eight_distortion_values_are_accepted(tmp_path: Path) -> None:
    text = "800 0 320\n0 800 240\n0 0 1\n0 0 0 0 0 0.1 0.2 0.3\n"

    loaded = load_calibration(_write(tmp_path, text))

    assert loaded.dist_coeffs.shape == (8,)


def test_missing_file(tmp_path: Path) -> None:
    with pytest.raises(MalformedCalibrationFileError) as excinfo:
        load_calibration(tmp_path / "nope.txt")
    assert excinfo.value.path == str(tmp_path / "nope.txt")


@pytest.mark.parametrize(
    "text",
    [
        "800 0 320\n0 800 240\n",
        "800 0 320\n0 800 240\n0 0 1\n",
        "800 0 320\n0 800 240\n0 0 2\n0 0 0 0 0\n",
        "800 0 320\n0 800 240\n0 0 1\n0 0 0 0\n",
        "800 0 320\n0 800 240\n0 0 1\n0 0 0 0 0 0 0 0 0\n",
        "800 0 abc\n0 800 240\n0 0 1\n0 0 0 0 0\n",
        "800 0\n0 800 240\n0 0 1\n0 0 0 0 0\n",
        "800 0 320 5\n0 800 240\n0 0 1\n0 0 0 0 0\n",
        "800 0 320\n0 800 240\n0 0 1\n0 0 nan 0 0\n",
        "800 0 320\n0 800 240\n0 0 1\n0 0 0 0 0\nextra\n",
        "0 0 320\n0 800 240\n0 0 1\n0 0 0 0 0\n",
        "",
    ],
)
def test_malformed_files_are_rejected(tmp_path: Path, text: str) -> None:
    with pytest.raises(MalformedCalibrationFileError):
        load_calibration(_write(tmp_path, text))


def test_trailing_blank_lines_are_tolerated(tmp_path: Path) -> None:
    loaded = load_calibration(_write(tmp_path, VALID_TEXT + "\n\n"))

    assert loaded.fx == 800.5
