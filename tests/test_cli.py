from __future__ import annotations

from pathlib import Path

import pytest

from ar_app.cli import calibrate as calibrate_cli
from ar_app.cli import main as overlay_cli

VALID_CALIBRATION = "800 0 320\n0 800 240\n0 0 1\n0 0 0 0 0\n"


@pytest.fixture
def calib_file(tmp_path: Path) -> Path:
    path = tmp_path / "calibration.txt"
    path.write_text(VALID_CALIBRATION)
    return path


def test_missing_calibration_argument_exits_nonzero() -> None:
    with pytest.raises(SystemExit) as excinfo:
        overlay_cli.main([])
    assert excinfo.value.code != 0


def test_malformed_calibration_file(tmp_path: Path) -> None:
    path = tmp_path / "calibration.txt"
    path.write_text("800 0 320\n0 800 240\n")

    assert overlay_cli.main([str(path), "board.png"]) == 1


def test_missing_calibration_file(tmp_path: Path) -> None:
    assert overlay_cli.main([str(tmp_path / "nope.txt")]) == 1


def test_unsupported_media_extension(calib_file: Path, tmp_path: Path) -> None:
    media = tmp_path / "clip.gif"
    media.write_bytes(b"GIF89a")

    assert overlay_cli.main([str(calib_file), str(media)]) == 1


def test_unreadable_image(calib_file: Path, tmp_path: Path) -> None:
    assert overlay_cli.main([str(calib_file), str(tmp_path / "missing.png")]) == 1


def test_bad_config_file(calib_file: Path, tmp_path: Path) -> None:
    config = tmp_path / "config.yaml"
    config.write_text("target:\n  rows: 0\n")

    assert overlay_cli.main([str(calib_file), "--config", str(config)]) == 1


def test_unknown_shape_is_rejected_by_argparse(calib_file: Path) -> None:
    with pytest.raises(SystemExit):
        overlay_cli.main([str(calib_file), "--shape", "teapot"])


def test_overrides_apply_on_top_of_config(calib_file: Path) -> None:
    args = overlay_cli.build_parser().parse_args(
        [str(calib_file), "--rows", "7", "--cols", "10", "--device", "2", "--log-level", "debug"]
    )

    config = overlay_cli.apply_overrides(overlay_cli.load_config(None), args)

    assert (config.target.rows, config.target.cols) == (7, 10)
    assert config.session.device == 2
    assert config.logging.level == "DEBUG"


def test_calibrate_missing_video(tmp_path: Path) -> None:
    assert calibrate_cli.main(["--video", str(tmp_path / "missing.avi")]) == 1


def test_calibrate_degenerate_board(tmp_path: Path) -> None:
    assert calibrate_cli.main(["--rows", "1", "--video", str(tmp_path / "x.avi")]) == 1


@pytest.mark.parametrize("cli", [overlay_cli, calibrate_cli])
def test_unknown_log_level_is_rejected_by_argparse(cli, calib_file: Path) -> None:
    argv = [str(calib_file)] if cli is overlay_cli else []
    with pytest.raises(SystemExit) as excinfo:
        cli.main(argv + ["--log-level", "verbose"])
    assert excinfo.value.code != 0


@pytest.mark.parametrize(
    "text",
    [
        "overlay:\n  palette: [[a, b, c]]\n",
        "logging:\n  level: verbose\n",
        "detector:\n  subpix_window: [five, 5]\n",
    ],
)
def test_invalid_config_values_exit_with_one(calib_file: Path, tmp_path: Path, text: str) -> None:
    config = tmp_path / "config.yaml"
    config.write_text(text)

    assert overlay_cli.main([str(calib_file), str(tmp_path / "board.png"), "--config", str(config)]) == 1
    assert calibrate_cli.main(["--video", str(tmp_path / "x.avi"), "--config", str(config)]) == 1
