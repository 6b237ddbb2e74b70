"""Projective transform (homography) solving and inversion.

The forward transform maps source pixel coordinates (x, y) to
destination coordinates (u, v)::

    u = (h11*x + h12*y + h13) / (h31*x + h32*y + 1)
    v = (h21*x + h22*y + h23) / (h31*x + h32*y + 1)
"""

from dataclasses import dataclass

import numpy as np

from tankscan.utils.logger import get_logger

from .quad import Point, Quad

logger = get_logger(__name__)

_PIVOT_EPSILON = 1e-10
_DET_EPSILON = 1e-12


class GeometryError(ValueError):
    """Raised when a quad is too degenerate to define a transform.

    Attributes:
        kind: Short machine-readable failure kind, e.g. ``"degenerate"``.
    """

    def __init__(self, message: str, kind: str = "degenerate") -> None:
        super().__init__(message)
        self.kind = kind


@dataclass(frozen=True)
class ProjectiveTransform:
    """A 3x3 homography stored row-major with the last coefficient at 1."""

    coefficients: tuple[float, ...]

    def __post_init__(self) -> None:
        if len(self.coefficients) != 9:
            raise ValueError("A projective transform needs 9 coefficients")

    @property
    def matrix(self) -> np.ndarray:
        return np.array(self.coefficients, dtype=np.float64).reshape(3, 3)

    def apply(self, x: float, y: float) -> Point:
        """Map a single point through the transform."""
        h = self.coefficients
        w = h[6] * x + h[7] * y + h[8]
        return Point((h[0] * x + h[1] * y + h[2]) / w, (h[3] * x + h[4] * y + h[5]) / w)

    def apply_many(self, xs: np.ndarray, ys: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
        """Map coordinate arrays through the transform element-wise."""
        h = self.coefficients
        w = h[6] * xs + h[7] * ys + h[8]
        return (h[0] * xs + h[1] * ys + h[2]) / w, (h[3] * xs + h[4] * ys + h[5]) / w

    def inverse(self) -> "ProjectiveTransform":
        return invert(self)


def _solve_linear(a: list[list[float]], b: list[float]) -> list[float]:
    """Solve ``a @ x = b`` by Gaussian elimination with partial pivoting.

    Raises:
        GeometryError: If a pivot is numerically zero.
    """
    n = len(b)
    a = [row[:] for row in a]
    b = b[:]

    for col in range(n):
        pivot = max(range(col, n), key=lambda r: abs(a[r][col]))
        if abs(a[pivot][col]) < _PIVOT_EPSILON:
            raise GeometryError(
                "Singular system: quad is self-intersecting or collapsed"
            )
        if pivot != col:
            a[col], a[pivot] = a[pivot], a[col]
            b[col], b[pivot] = b[pivot], b[col]

        for row in range(col + 1, n):
            factor = a[row][col] / a[col][col]
            if factor == 0.0:
                continue
            for k in range(col, n):
                a[row][k] -= factor * a[col][k]
            b[row] -= factor * b[col]

    x = [0.0] * n
    for row in reversed(range(n)):
        acc = b[row] - sum(a[row][k] * x[k] for k in range(row + 1, n))
        x[row] = acc / a[row][row]
    return x


def solve_projective(src: Quad, dst: Quad) -> ProjectiveTransform:
    """Compute the homography mapping ``src`` corners onto ``dst`` corners.

    Builds the 8-equation system (two per corner correspondence) with
    h33 fixed at 1.

    Args:
        src: Source quad in image coordinates.
        dst: Destination quad, usually an upright rectangle.

    Returns:
        The forward projective transform.

    Raises:
        GeometryError: If the correspondence is degenerate.
    """
    rows: list[list[float]] = []
    rhs: list[float] = []
    for s, d in zip(src.points, dst.points):
        rows.append([s.x, s.y, 1.0, 0.0, 0.0, 0.0, -d.x * s.x, -d.x * s.y])
        rhs.append(d.x)
        rows.append([0.0, 0.0, 0.0, s.x, s.y, 1.0, -d.y * s.x, -d.y * s.y])
        rhs.append(d.y)

    h = _solve_linear(rows, rhs)
    transform = ProjectiveTransform(tuple(h) + (1.0,))
    logger.debug("Solved projective transform: %s", transform.coefficients)
    return transform


def invert(transform: ProjectiveTransform) -> ProjectiveTransform:
    """Invert a homography via its adjugate and determinant.

    The result is rescaled so that its bottom-right coefficient is 1.

    Raises:
        GeometryError: If the determinant is near zero.
    """
    a, b, c, d, e, f, g, h, i = transform.coefficients
    det = a * (e * i - f * h) - b * (d * i - f * g) + c * (d * h - e * g)
    if abs(det) < _DET_EPSILON:
        raise GeometryError("Projective transform is not invertible (det ~ 0)")

    adjugate = (
        e * i - f * h,
        c * h - b * i,
        b * f - c * e,
        f * g - d * i,
        a * i - c * g,
        c * d - a * f,
        d * h - e * g,
        b * g - a * h,
        a * e - b * d,
    )
    inverse = [v / det for v in adjugate]
    scale = inverse[8]
    if abs(scale) < _DET_EPSILON:
        raise GeometryError("Inverse transform maps points to infinity")
    return ProjectiveTransform(tuple(v / scale for v in inverse))
