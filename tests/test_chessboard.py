from __future__ import annotations

import cv2
import numpy as np

from ar_app.calib.chessboard import ChessboardDetector
from ar_app.core.data_structures import TargetGeometry

SQUARE_PX = 30
MARGIN_PX = 40


def _render_board(geometry: TargetGeometry) -> np.ndarray:
    """White-margined chessboard with (rows + 1) x (cols + 1) squares."""
    h = (geometry.rows + 1) * SQUARE_PX + 2 * MARGIN_PX
    w = (geometry.cols + 1) * SQUARE_PX + 2 * MARGIN_PX
    img = np.full((h, w), 255, dtype=np.uint8)
    for r in range(geometry.rows + 1):
        for c in range(geometry.cols + 1):
            if (r + c) % 2 == 0:
                y0 = MARGIN_PX + r * SQUARE_PX
                x0 = MARGIN_PX + c * SQUARE_PX
                img[y0 : y0 + SQUARE_PX, x0 : x0 + SQUARE_PX] = 0
    return cv2.cvtColor(img, cv2.COLOR_GRAY2BGR)


def _expected_corners(geometry: TargetGeometry) -> np.ndarray:
    return np.array(
        [
            [MARGIN_PX + (j + 1) * SQUARE_PX - 0.5, MARGIN_PX + (i + 1) * SQUARE_PX - 0.5]
            for i in range(geometry.rows)
            for j in range(geometry.cols)
        ]
    )


def test_detects_all_inner_corners(geometry: TargetGeometry) -> None:
    detector = ChessboardDetector(geometry)

    detection = detector.detect(_render_board(geometry))

    assert detection.found
    assert detection.image_points.shape == (geometry.num_points, 2)
    expected = _expected_corners(geometry)
    # The board's orientation is ambiguous, so match corners as a set.
    distances = np.linalg.norm(detection.image_points[:, None, :] - expected[None, :, :], axis=2)
    assert np.all(distances.min(axis=1) < 1.0)


def test_accepts_grayscale_frames(geometry: TargetGeometry) -> None:
    gray = cv2.cvtColor(_render_board(geometry), cv2.COLOR_BGR2GRAY)

    assert ChessboardDetector(geometry).detect(gray).found


def test_blank_frame_is_a_miss(geometry: TargetGeometry) -> None:
    detection = ChessboardDetector(geometry).detect(np.full((240, 320, 3), 200, dtype=np.uint8))

    assert not detection.found
    assert detection.image_points.shape == (0, 2)


def test_draw_marks_the_frame(geometry: TargetGeometry) -> None:
    detector = ChessboardDetector(geometry)
    frame = _render_board(geometry)
    detection = detector.detect(frame)
    before = frame.copy()

    drawn = detector.draw(frame, detection)

    assert drawn is frame
    assert np.any(drawn != before)
