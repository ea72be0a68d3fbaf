"""
Calibration I/O utilities for saving and loading camera intrinsics.

File layout (plain text, whitespace-separated decimals):

    m00 m01 m02
    m10 m11 m12
    m20 m21 m22      <- must be 0 0 1
    d0 d1 d2 d3 d4 [d5 d6 d7]
"""

from __future__ import annotations

import math
from pathlib import Path
from typing import List, Union

import numpy as np

from ar_app.core.data_structures import MAX_DIST_COEFFS, MIN_DIST_COEFFS, IntrinsicModel
from ar_app.exceptions import MalformedCalibrationFileError
from ar_app.log_config.logger import get_logger

logger = get_logger(__name__)

PathLike = Union[str, Path]


def _format_row(values: np.ndarray) -> str:
    # repr() gives the shortest string that reads back to the same float.
    return " ".join(repr(float(v)) for v in values)


def save_calibration(output_path: PathLike, intrinsics: IntrinsicModel) -> None:
    """
    Save a camera matrix and distortion coefficients to a text file.

    Args:
        output_path: Path where the calibration will be written.
        intrinsics: Camera matrix (3x3) and distortion coefficients.
    """
    lines = [_format_row(row) for row in intrinsics.camera_matrix]
    lines.append(_format_row(intrinsics.dist_coeffs))
    Path(output_path).write_text("\n".join(lines) + "\n", encoding="utf-8")
    logger.info(f"Saved calibration to {output_path}")


def _parse_numbers(path: PathLike, line_no: int, line: str) -> List[float]:
    values = []
    for token in line.split():
        try:
            value = float(token)
        except ValueError:
            raise MalformedCalibrationFileError(
                f"line {line_no}: '{token}' is not a number", path=str(path)
            ) from None
        if not math.isfinite(value):
            raise MalformedCalibrationFileError(
                f"line {line_no}: non-finite value '{token}'", path=str(path)
            )
        values.append(value)
    return values


def load_calibration(input_path: PathLike) -> IntrinsicModel:
    """
    Load camera intrinsics written by `save_calibration`.

    Parsing is strict: nothing is defaulted, so a damaged file can never turn
    into a plausible-looking camera model.

    Args:
        input_path: Path to the calibration text file.

    Returns:
        IntrinsicModel read from the file.

    Raises:
        MalformedCalibrationFileError: the file cannot be read, a matrix row does
            not hold exactly three numbers, row 3 is not "0 0 1", the distortion
            line holds fewer than 5 (or more than 8) numbers, or extra content
            follows the distortion line.
    """
    try:
        text = Path(input_path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise MalformedCalibrationFileError(f"cannot read file: {e}", path=str(input_path)) from e

    lines = text.splitlines()
    # Trailing blank lines are tolerated; blank lines inside the block are not.
    while lines and not lines[-1].strip():
        lines.pop()

    if len(lines) < 4:
        raise MalformedCalibrationFileError(
            f"expected 4 lines (3 matrix rows + distortion), found {len(lines)}",
            path=str(input_path),
        )
    if len(lines) > 4:
        raise MalformedCalibrationFileError(
            f"unexpected content after line 4: '{lines[4].strip()}'", path=str(input_path)
        )

    rows = []
    for i in range(3):
        values = _parse_numbers(input_path, i + 1, lines[i])
        if len(values) != 3:
            raise MalformedCalibrationFileError(
                f"line {i + 1}: camera matrix row needs 3 numbers, found {len(values)}",
                path=str(input_path),
            )
        rows.append(values)
    K = np.array(rows, dtype=np.float64)

    if not np.array_equal(K[2], [0.0, 0.0, 1.0]):
        raise MalformedCalibrationFileError(
            f"line 3: last camera matrix row must be '0 0 1', found {K[2].tolist()}",
            path=str(input_path),
        )

    dist = _parse_numbers(input_path, 4, lines[3])
    if not MIN_DIST_COEFFS <= len(dist) <= MAX_DIST_COEFFS:
        raise MalformedCalibrationFileError(
            f"line 4: expected {MIN_DIST_COEFFS} to {MAX_DIST_COEFFS} distortion "
            f"coefficients, found {len(dist)}",
            path=str(input_path),
        )

    try:
        intrinsics = IntrinsicModel(K, np.array(dist, dtype=np.float64))
    except ValueError as e:
        raise MalformedCalibrationFileError(str(e), path=str(input_path)) from e

    logger.debug(f"Loaded calibration from {input_path}")
    return intrinsics


__all__ = ["save_calibration", "load_calibration"]
