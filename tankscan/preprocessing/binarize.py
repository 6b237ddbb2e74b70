"""Otsu thresholding for receipt images.

The threshold is computed from a 256-bucket histogram so the same
routine serves both corner estimation and optional final binarization.
"""

import numpy as np

from tankscan.utils.logger import get_logger

logger = get_logger(__name__)


def histogram(gray: np.ndarray) -> np.ndarray:
    """Return the 256-bucket intensity histogram of a uint8 image."""
    return np.bincount(gray.ravel(), minlength=256)[:256]


def otsu_threshold(hist: np.ndarray) -> int:
    """Compute Otsu's threshold from an intensity histogram.

    Every split point ``t`` in 0-255 is evaluated, with levels ``<= t`` as
    background and ``> t`` as foreground. The split maximizing the
    between-class variance ``wB * wF * (mB - mF) ** 2`` wins.

    Args:
        hist: Histogram with 256 buckets.

    Returns:
        The first foreground level, so foreground pixels are those at or
        above the returned value. Returns 0 for an empty or single-level
        histogram.
    """
    counts = np.asarray(hist, dtype=np.float64)
    total = counts.sum()
    if total == 0:
        return 0

    levels = np.arange(counts.size, dtype=np.float64)
    weight_bg = np.cumsum(counts)
    weight_fg = total - weight_bg
    sum_bg = np.cumsum(counts * levels)
    sum_all = sum_bg[-1]

    with np.errstate(divide="ignore", invalid="ignore"):
        mean_bg = sum_bg / weight_bg
        mean_fg = (sum_all - sum_bg) / weight_fg
        between = weight_bg * weight_fg * (mean_bg - mean_fg) ** 2
    between = np.nan_to_num(between, nan=0.0, posinf=0.0, neginf=0.0)

    if between.max() <= 0.0:
        return 0

    split = int(np.argmax(between))
    logger.debug("Otsu split at %d (variance %.1f)", split, between[split])
    return split + 1


def binarize_otsu(gray: np.ndarray) -> np.ndarray:
    """Binarize a grayscale image with Otsu's threshold.

    Args:
        gray: Grayscale uint8 image.

    Returns:
        Binary image with pixel values 0 or 255.
    """
    threshold = otsu_threshold(histogram(gray))
    binary = np.where(gray >= threshold, 255, 0).astype(np.uint8)
    logger.debug("Applied Otsu binarization at threshold %d", threshold)
    return binary
