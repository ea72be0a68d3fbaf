"""
Drawing projected shape templates into frames.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

import cv2
import numpy as np

from ar_app.config.settings import OverlaySettings
from ar_app.core.data_structures import ExtrinsicPose, IntrinsicModel
from ar_app.geometry.projection import project_points
from ar_app.overlay.shapes import ShapeTemplate

Color = Tuple[int, int, int]

# cv2.line takes int32 coordinates.
MAX_PIXEL_COORD = float(1 << 20)


@dataclass(frozen=True)
class OverlayStyle:
    """Line colours (BGR) indexed by palette slot, plus line thickness."""

    palette: Tuple[Color, ...] = ((0, 0, 255), (0, 255, 0), (255, 0, 0))
    thickness: int = 2

    @classmethod
    def from_settings(cls, settings: OverlaySettings) -> "OverlayStyle":
        return cls(
            palette=tuple(tuple(int(c) for c in color) for color in settings.palette),
            thickness=int(settings.thickness),
        )

    def color(self, slot: int) -> Color:
        return self.palette[slot % len(self.palette)]


@dataclass
class RenderContext:
    """Target image and style for a sequence of draw calls."""

    canvas: np.ndarray
    style: OverlayStyle


def draw_shape(
    ctx: RenderContext,
    shape: ShapeTemplate,
    pose: ExtrinsicPose,
    intrinsics: IntrinsicModel,
) -> int:
    """
    Project a template with the given pose and draw its segments.

    Args:
        ctx: Canvas and style to draw with.
        shape: Template in target coordinates.
        pose: Target-to-camera pose of the current frame.
        intrinsics: Camera model.

    Returns:
        Number of segments drawn; segments with non-finite or far
        out-of-range endpoints are skipped.
    """
    image_points = project_points(shape.points, pose, intrinsics)
    finite = np.all(np.isfinite(image_points), axis=1) & np.all(
        np.abs(image_points) < MAX_PIXEL_COORD, axis=1
    )
    drawn = 0
    for a, b, slot in shape.segments:
        if not (finite[a] and finite[b]):
            continue
        p1 = tuple(int(round(v)) for v in image_points[a])
        p2 = tuple(int(round(v)) for v in image_points[b])
        cv2.line(ctx.canvas, p1, p2, ctx.style.color(slot), ctx.style.thickness)
        drawn += 1
    return drawn


__all__ = ["OverlayStyle", "RenderContext", "draw_shape"]
