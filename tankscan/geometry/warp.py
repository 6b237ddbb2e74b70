"""Perspective rectification of a quadrilateral image region."""

import numpy as np

from tankscan.utils.logger import get_logger

from .homography import invert, solve_projective
from .quad import Quad, edge_lengths

logger = get_logger(__name__)

_WHITE = 255


def output_size(quad: Quad, min_side: int = 900) -> tuple[int, int]:
    """Compute the ``(width, height)`` of the rectified image.

    Width is the longer of the top and bottom edges, height the longer of
    the left and right edges. Small regions are scaled up uniformly so the
    longer side reaches ``min_side``.
    """
    top, right, bottom, left = edge_lengths(quad)
    width = max(top, bottom)
    height = max(left, right)
    longest = max(width, height)
    if 0 < longest < min_side:
        scale = min_side / longest
        width *= scale
        height *= scale
    return max(int(round(width)), 1), max(int(round(height)), 1)


def rectify(image: np.ndarray, quad: Quad, min_side: int = 900) -> np.ndarray:
    """Warp the region bounded by ``quad`` into an upright rectangle.

    Every destination pixel is mapped through the inverse homography and
    sampled nearest-neighbour from the source. Samples falling outside the
    source are painted white.

    Args:
        image: Source image, H x W or H x W x C, dtype uint8.
        quad: Canonical quad in source pixel coordinates.
        min_side: Minimum length of the longer output side.

    Returns:
        Rectified image with the same channel layout as the input.

    Raises:
        GeometryError: If the quad is degenerate.
    """
    width, height = output_size(quad, min_side)
    destination = Quad.from_bounds(0.0, 0.0, float(width), float(height))
    forward = solve_projective(quad, destination)
    backward = invert(forward)

    us, vs = np.meshgrid(
        np.arange(width, dtype=np.float64), np.arange(height, dtype=np.float64)
    )
    xs, ys = backward.apply_many(us, vs)

    src_h, src_w = image.shape[:2]
    with np.errstate(invalid="ignore"):
        col = np.floor(xs + 0.5)
        row = np.floor(ys + 0.5)
        inside = (col >= 0) & (col < src_w) & (row >= 0) & (row < src_h)

    out_shape = (height, width) + image.shape[2:]
    result = np.full(out_shape, _WHITE, dtype=image.dtype)
    result[inside] = image[row[inside].astype(np.intp), col[inside].astype(np.intp)]

    logger.info(
        "Rectified %dx%d region to %dx%d (%.1f%% sampled inside source)",
        src_w,
        src_h,
        width,
        height,
        100.0 * float(inside.mean()) if inside.size else 0.0,
    )
    return result

