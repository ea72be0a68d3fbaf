"""
Static 3D line-drawing templates in target coordinates (units of squares).

Target frame: x along a chessboard row, y "up" (towards decreasing row index),
z out of the board plane.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, List, Sequence, Tuple

import numpy as np

# (start index, end index, palette slot)
Segment = Tuple[int, int, int]


@dataclass(frozen=True)
class ShapeTemplate:
    name: str
    points: np.ndarray  # (N, 3)
    segments: Tuple[Segment, ...]


def _loop(start: int, count: int, slot: int) -> List[Segment]:
    """Closed polygon through `count` consecutive points."""
    return [(start + k, start + (k + 1) % count, slot) for k in range(count)]


def axes_template() -> ShapeTemplate:
    """Unit triad at the target origin: x in slot 0, y in slot 1, z in slot 2."""
    points = np.array([[0, 0, 0], [1, 0, 0], [0, -1, 0], [0, 0, 1]], dtype=np.float64)
    return ShapeTemplate("axes", points, ((0, 1, 0), (0, 2, 1), (0, 3, 2)))


def box_template() -> ShapeTemplate:
    """4 x 1 x 3 rectangular prism standing on the board."""
    points = np.array(
        [
            [0, 0, 0], [0, 0, 3], [4, 0, 3], [4, 0, 0],
            [0, -1, 0], [0, -1, 3], [4, -1, 3], [4, -1, 0],
        ],
        dtype=np.float64,
    )
    segments = _loop(0, 4, 0)
    segments += [(k, k + 4, 1) for k in range(4)]
    segments += _loop(4, 4, 2)
    return ShapeTemplate("box", points, tuple(segments))


def fish_template(x: float, y: float, slot: int = 0, center_z: float = 0.5) -> ShapeTemplate:
    """
    Side-on fish silhouette hovering over the board at (x, y).

    Four quadrilaterals: body, upper fin, tail, lower fin.
    """
    z = center_z
    points = np.array(
        [
            # body
            [x, y, z], [x + 0.5, y, z + 0.4], [x + 1.1, y, z], [x + 0.6, y, z - 0.4],
            # upper fin
            [x + 0.4, y, z + 0.4], [x + 0.75, y, z + 0.7], [x + 1.1, y, z + 0.4], [x + 0.85, y, z + 0.1],
            # tail
            [x + 1.1, y, z], [x + 1.7, y, z + 0.4], [x + 1.4, y, z], [x + 1.7, y, z - 0.4],
            # lower fin
            [x + 0.6, y, z - 0.4], [x + 0.9, y, z - 0.2], [x + 1.1, y, z - 0.4], [x + 0.95, y, z - 0.5],
        ],
        dtype=np.float64,
    )
    segments: List[Segment] = []
    for part in range(4):
        segments += _loop(4 * part, 4, slot)
    return ShapeTemplate("fish", points, tuple(segments))


def combine(name: str, parts: Sequence[ShapeTemplate]) -> ShapeTemplate:
    """Merge several templates into one point list, re-indexing segments."""
    points = []
    segments: List[Segment] = []
    offset = 0
    for part in parts:
        points.append(part.points)
        segments += [(a + offset, b + offset, slot) for a, b, slot in part.segments]
        offset += part.points.shape[0]
    return ShapeTemplate(name, np.vstack(points), tuple(segments))


def fish_school_template() -> ShapeTemplate:
    """Three fish in palette slots 0, 1 and 2."""
    return combine(
        "fish_school",
        [fish_template(3, 0, slot=0), fish_template(1, -2, slot=1), fish_template(6, -4, slot=2)],
    )


SHAPES: Dict[str, Callable[[], ShapeTemplate]] = {
    "axes": axes_template,
    "box": box_template,
    "fish": lambda: fish_template(3, 0),
    "fish_school": fish_school_template,
}


def get_shape(name: str) -> ShapeTemplate:
    try:
        return SHAPES[name]()
    except KeyError:
        raise ValueError(f"Unknown shape '{name}', choose from {sorted(SHAPES)}") from None


__all__ = [
    "Segment",
    "ShapeTemplate",
    "axes_template",
    "box_template",
    "fish_template",
    "fish_school_template",
    "combine",
    "SHAPES",
    "get_shape",
]
