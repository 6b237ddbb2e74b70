"""Automatic receipt region guess from the image brightness profile.

Receipts are bright paper against a darker background, so the bounding
box of Otsu foreground pixels gives a usable first quad. The user may
still correct it; the confidence returned here is advisory only.
"""

from dataclasses import dataclass

import cv2
import numpy as np

from tankscan.geometry.quad import Quad
from tankscan.preprocessing.binarize import histogram, otsu_threshold
from tankscan.preprocessing.enhance import to_grayscale
from tankscan.utils.config import CornerConfig
from tankscan.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class CornerEstimate:
    """An estimated receipt quad with an advisory confidence."""

    quad: Quad
    confidence: float
    threshold: int
    fallback: bool = False


def _range_score(value: float, low: float, high: float) -> float:
    """1.0 inside ``[low, high]``, decaying linearly to 0 outside."""
    if low <= value <= high:
        return 1.0
    if value < low:
        return max(0.0, value / low) if low > 0 else 0.0
    return max(0.0, 1.0 - (value - high) / high) if high > 0 else 0.0


class CornerEstimator:
    """Estimates the receipt quad in a photo.

    Args:
        config: Corner estimation configuration.
    """

    def __init__(self, config: CornerConfig | None = None) -> None:
        self.config = config or CornerConfig()

    def estimate(self, image: np.ndarray) -> CornerEstimate:
        """Guess the receipt region of ``image``.

        Args:
            image: Source photo (RGB, RGBA or grayscale).

        Returns:
            Corner estimate in source image coordinates. Falls back to the
            full image bounds when no pixel clears the threshold.
        """
        src_h, src_w = image.shape[:2]
        full = Quad.from_bounds(0.0, 0.0, float(src_w - 1), float(src_h - 1))

        work, scale = self._downsample(image)
        gray = to_grayscale(work)
        threshold = otsu_threshold(histogram(gray))

        h, w = gray.shape
        margin_y = int(round(h * self.config.border_margin))
        margin_x = int(round(w * self.config.border_margin))
        inner = gray[margin_y : h - margin_y, margin_x : w - margin_x]

        if threshold == 0 or inner.size == 0:
            logger.warning("Flat brightness profile, using full image bounds")
            return CornerEstimate(full, 0.0, threshold, fallback=True)

        rows, cols = np.nonzero(inner >= threshold)
        if rows.size == 0:
            logger.warning("No pixels above threshold %d, using full image bounds", threshold)
            return CornerEstimate(full, 0.0, threshold, fallback=True)

        top = rows.min() + margin_y
        bottom = rows.max() + margin_y
        left = cols.min() + margin_x
        right = cols.max() + margin_x

        pad_x = (right - left + 1) * self.config.padding
        pad_y = (bottom - top + 1) * self.config.padding
        left = max(0.0, (left - pad_x) * scale)
        top = max(0.0, (top - pad_y) * scale)
        right = min(float(src_w - 1), (right + pad_x) * scale)
        bottom = min(float(src_h - 1), (bottom + pad_y) * scale)

        quad = Quad.from_bounds(left, top, right, bottom)
        confidence = self._confidence(right - left, bottom - top, src_w, src_h)
        logger.info(
            "Estimated receipt region (%.0f, %.0f)-(%.0f, %.0f), threshold %d, confidence %.2f",
            left,
            top,
            right,
            bottom,
            threshold,
            confidence,
        )
        return CornerEstimate(quad, confidence, threshold)

    def _downsample(self, image: np.ndarray) -> tuple[np.ndarray, float]:
        """Shrink to the working width; returns the image and the scale back."""
        w = image.shape[1]
        if w <= self.config.working_width:
            return image, 1.0
        scale = w / self.config.working_width
        h = max(int(round(image.shape[0] / scale)), 1)
        small = cv2.resize(
            image, (self.config.working_width, h), interpolation=cv2.INTER_AREA
        )
        return small, scale

    def _confidence(self, width: float, height: float, src_w: int, src_h: int) -> float:
        """Combine region coverage and aspect ratio plausibility."""
        if width <= 0 or height <= 0:
            return 0.0
        coverage = (width * height) / float(src_w * src_h)
        aspect = height / width
        coverage_score = _range_score(
            coverage, self.config.min_coverage, self.config.max_coverage
        )
        aspect_score = _range_score(aspect, self.config.min_aspect, self.config.max_aspect)
        return round((coverage_score + aspect_score) / 2.0, 3)
