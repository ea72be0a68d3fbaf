from __future__ import annotations

from pathlib import Path

import cv2
import numpy as np
import pytest

from ar_app.exceptions import FrameSourceError, UnsupportedMediaError
from ar_app.io.video_io import (
    ImageFrameSource,
    VideoFileFrameSource,
    media_kind,
    open_media_source,
)


@pytest.mark.parametrize("name", ["a.jpg", "b.PNG", "c.ppm", "d.tif", "e.JPEG"])
def test_image_extensions(name: str) -> None:
    assert media_kind(name) == "image"


@pytest.mark.parametrize("name", ["a.mp4", "b.m4v", "c.MOV", "d.mov", "e.avi"])
def test_video_extensions(name: str) -> None:
    assert media_kind(name) == "video"


@pytest.mark.parametrize("name", ["a.gif", "b.txt", "noext"])
def test_unsupported_extensions(name: str) -> None:
    with pytest.raises(UnsupportedMediaError):
        media_kind(name)
    with pytest.raises(UnsupportedMediaError):
        open_media_source(name)


def test_image_source_yields_one_frame(tmp_path: Path) -> None:
    path = tmp_path / "board.png"
    cv2.imwrite(str(path), np.full((20, 30, 3), 77, dtype=np.uint8))

    source = open_media_source(path)

    assert isinstance(source, ImageFrameSource)
    assert source.still is True
    assert source.frame_size == (30, 20)
    frame = source.next()
    assert frame.shape == (20, 30, 3)
    assert source.next() is None


def test_image_source_returns_a_copy(tmp_path: Path) -> None:
    path = tmp_path / "board.png"
    cv2.imwrite(str(path), np.zeros((10, 10, 3), dtype=np.uint8))
    source = ImageFrameSource(path)

    frame = source.next()
    frame[:] = 255

    assert not source._image.any()


def test_missing_image(tmp_path: Path) -> None:
    with pytest.raises(FrameSourceError):
        ImageFrameSource(tmp_path / "missing.png")


def test_missing_video(tmp_path: Path) -> None:
    with pytest.raises(FrameSourceError):
        VideoFileFrameSource(tmp_path / "missing.avi")
