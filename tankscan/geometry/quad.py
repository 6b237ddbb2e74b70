"""Immutable points and quadrilaterals in image pixel coordinates.

A ``Quad`` is always stored in canonical top-left, top-right,
bottom-right, bottom-left order. Editing a corner returns a new
canonicalized ``Quad`` so a dragged corner can never scramble the order.
"""

import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from tankscan.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class Point:
    """A real-valued pixel coordinate."""

    x: float
    y: float

    def distance_to(self, other: "Point") -> float:
        return math.hypot(self.x - other.x, self.y - other.y)


@dataclass(frozen=True)
class Quad:
    """Four corner points ordered TL, TR, BR, BL."""

    top_left: Point
    top_right: Point
    bottom_right: Point
    bottom_left: Point

    @property
    def points(self) -> tuple[Point, Point, Point, Point]:
        return (self.top_left, self.top_right, self.bottom_right, self.bottom_left)

    @classmethod
    def from_bounds(cls, left: float, top: float, right: float, bottom: float) -> "Quad":
        """Build an axis-aligned quad from bounding box edges."""
        return cls(
            Point(left, top),
            Point(right, top),
            Point(right, bottom),
            Point(left, bottom),
        )

    def move_corner(self, index: int, point: Point) -> "Quad":
        """Return a new canonical quad with corner ``index`` replaced.

        Args:
            index: Corner index in TL, TR, BR, BL order.
            point: New position of the corner.

        Returns:
            A re-ordered quad; the corner may end up under another index.
        """
        if not 0 <= index < 4:
            raise IndexError(f"Quad corner index out of range: {index}")
        points = list(self.points)
        points[index] = point
        return order_points(points)

    def scaled(self, factor: float) -> "Quad":
        return Quad(*(Point(p.x * factor, p.y * factor) for p in self.points))

    def to_list(self) -> list[list[float]]:
        return [[p.x, p.y] for p in self.points]


def _as_point(value: Point | Sequence[float]) -> Point:
    if isinstance(value, Point):
        return value
    x, y = value
    return Point(float(x), float(y))


def order_points(points: Iterable[Point | Sequence[float]]) -> Quad:
    """Canonicalize four arbitrary points into TL/TR/BR/BL order.

    The smallest ``x + y`` is top-left and the largest is bottom-right;
    the smallest ``y - x`` is top-right and the largest is bottom-left.
    When two canonical corners coincide (duplicate inputs) the bounding
    box of the input points is returned instead.

    Args:
        points: Exactly four points, as ``Point`` or ``(x, y)`` pairs.

    Returns:
        Canonical quad.

    Raises:
        ValueError: If the number of points is not four.
    """
    pts = [_as_point(p) for p in points]
    if len(pts) != 4:
        raise ValueError(f"A quad needs exactly 4 points, got {len(pts)}")

    sums = [p.x + p.y for p in pts]
    diffs = [p.y - p.x for p in pts]
    tl = pts[sums.index(min(sums))]
    br = pts[sums.index(max(sums))]
    tr = pts[diffs.index(min(diffs))]
    bl = pts[diffs.index(max(diffs))]

    corners = (tl, tr, br, bl)
    if len(set(corners)) < 4:
        xs = [p.x for p in pts]
        ys = [p.y for p in pts]
        logger.debug("Degenerate corner ordering, falling back to bounding box")
        return Quad.from_bounds(min(xs), min(ys), max(xs), max(ys))

    return Quad(*corners)


def edge_lengths(quad: Quad) -> tuple[float, float, float, float]:
    """Return the top, right, bottom and left edge lengths of a quad."""
    return (
        quad.top_left.distance_to(quad.top_right),
        quad.top_right.distance_to(quad.bottom_right),
        quad.bottom_left.distance_to(quad.bottom_right),
        quad.top_left.distance_to(quad.bottom_left),
    )
