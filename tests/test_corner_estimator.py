"""Tests for automatic receipt corner estimation."""

import numpy as np
import pytest

from tankscan.detection.corner_estimator import CornerEstimator, _range_score
from tankscan.geometry.quad import Quad
from tankscan.utils.config import CornerConfig


class TestRangeScore:
    """Tests for the plausibility score helper."""

    def test_inside_range(self) -> None:
        assert _range_score(0.5, 0.2, 1.2) == 1.0

    def test_below_range_decays(self) -> None:
        assert _range_score(0.1, 0.2, 1.2) == pytest.approx(0.5)

    def test_far_above_range_is_zero(self) -> None:
        assert _range_score(5.0, 0.2, 1.2) == 0.0


class TestCornerEstimator:
    """Tests for the Otsu bounding-box estimator."""

    def test_finds_bright_receipt(self, receipt_photo: np.ndarray) -> None:
        estimate = CornerEstimator().estimate(receipt_photo)
        assert not estimate.fallback
        quad = estimate.quad
        # Receipt spans rows 40-359 and columns 90-209, padded by 2%.
        assert quad.top_left.x == pytest.approx(87.6, abs=0.5)
        assert quad.top_left.y == pytest.approx(33.6, abs=0.5)
        assert quad.bottom_right.x == pytest.approx(211.4, abs=0.5)
        assert quad.bottom_right.y == pytest.approx(365.4, abs=0.5)
        assert 0.0 <= estimate.confidence <= 1.0

    def test_wide_receipt_has_full_confidence(self) -> None:
        image = np.full((300, 400), 20, dtype=np.uint8)
        image[60:240, 100:300] = 230
        estimate = CornerEstimator().estimate(image)
        assert estimate.confidence == 1.0

    def test_downsampled_estimate_in_source_coordinates(self) -> None:
        image = np.full((800, 1280), 20, dtype=np.uint8)
        image[100:700, 400:880] = 230
        estimate = CornerEstimator(CornerConfig(working_width=640)).estimate(image)
        assert estimate.quad.top_left.x == pytest.approx(390.4, abs=3.0)
        assert estimate.quad.bottom_right.y == pytest.approx(711.0, abs=3.0)

    def test_blank_image_falls_back_to_full_bounds(self) -> None:
        image = np.zeros((120, 90, 3), dtype=np.uint8)
        estimate = CornerEstimator().estimate(image)
        assert estimate.fallback
        assert estimate.confidence == 0.0
        assert estimate.quad == Quad.from_bounds(0.0, 0.0, 89.0, 119.0)
