"""Tests for image enhancement, Otsu thresholding and the pipeline."""

import numpy as np

from tankscan.preprocessing.binarize import binarize_otsu, histogram, otsu_threshold
from tankscan.preprocessing.enhance import (
    cap_resolution,
    stretch_contrast,
    to_grayscale,
    to_rgb,
    unsharp_mask,
)
from tankscan.preprocessing.pipeline import (
    PreprocessingPipeline,
    QualityMetrics,
    calculate_contrast,
    calculate_sharpness,
)
from tankscan.utils.config import PreprocessingConfig


def _two_level_image() -> np.ndarray:
    image = np.full((60, 80), 50, dtype=np.uint8)
    image[:, 40:] = 200
    return image


class TestCapResolution:
    """Tests for resolution capping."""

    def test_downscales_long_side(self) -> None:
        image = np.zeros((3000, 1500, 3), dtype=np.uint8)
        result = cap_resolution(image, max_side=2000)
        assert result.shape == (2000, 1000, 3)

    def test_never_upscales(self) -> None:
        image = np.zeros((100, 50), dtype=np.uint8)
        result = cap_resolution(image, max_side=2000)
        assert result is image


class TestGrayscale:
    """Tests for luminance conversion."""

    def test_rgb_weights(self) -> None:
        image = np.zeros((2, 2, 3), dtype=np.uint8)
        image[0, 0] = (255, 0, 0)
        image[0, 1] = (0, 255, 0)
        image[1, 0] = (0, 0, 255)
        image[1, 1] = (255, 255, 255)
        gray = to_grayscale(image)
        assert gray.dtype == np.uint8
        assert gray.tolist() == [[76, 150], [29, 255]]

    def test_alpha_ignored(self) -> None:
        image = np.full((3, 3, 4), 100, dtype=np.uint8)
        image[..., 3] = 0
        assert (to_grayscale(image) == 100).all()

    def test_grayscale_passthrough(self, sample_image: np.ndarray) -> None:
        assert to_grayscale(sample_image) is sample_image

    def test_to_rgb_replicates_channels(self, sample_image: np.ndarray) -> None:
        rgb = to_rgb(sample_image)
        assert rgb.shape == (200, 300, 3)
        assert (rgb[..., 0] == rgb[..., 2]).all()


class TestContrastAndSharpen:
    """Tests for contrast stretching and unsharp masking."""

    def test_stretch_spans_full_range(self) -> None:
        gray = np.tile(np.arange(100, 150, dtype=np.uint8), (10, 1))
        result = stretch_contrast(gray, clip_percent=0.0)
        assert result.min() == 0
        assert result.max() == 255

    def test_flat_image_unchanged(self) -> None:
        gray = np.full((20, 20), 128, dtype=np.uint8)
        np.testing.assert_array_equal(stretch_contrast(gray), gray)

    def test_unsharp_increases_edge_contrast(self) -> None:
        gray = _two_level_image()
        sharpened = unsharp_mask(gray, strength=1.5)
        assert sharpened[30, 39] < 50
        assert sharpened[30, 40] > 200
        assert sharpened[30, 10] == 50

    def test_unsharp_zero_strength_is_identity(self) -> None:
        gray = _two_level_image()
        np.testing.assert_array_equal(unsharp_mask(gray, strength=0.0), gray)


class TestOtsu:
    """Tests for Otsu's threshold."""

    def test_threshold_between_peaks(self) -> None:
        threshold = otsu_threshold(histogram(_two_level_image()))
        assert 50 < threshold <= 200

    def test_flat_histogram_returns_zero(self) -> None:
        gray = np.full((10, 10), 77, dtype=np.uint8)
        assert otsu_threshold(histogram(gray)) == 0

    def test_empty_histogram_returns_zero(self) -> None:
        assert otsu_threshold(np.zeros(256)) == 0

    def test_binarize_output_levels(self) -> None:
        binary = binarize_otsu(_two_level_image())
        assert set(np.unique(binary).tolist()) == {0, 255}
        assert binary[0, 0] == 0
        assert binary[0, 79] == 255


class TestQualityMetrics:
    """Tests for quality metric calculations."""

    def test_sharpness_positive(self, sample_image: np.ndarray) -> None:
        assert calculate_sharpness(sample_image) > 0

    def test_contrast_of_flat_image(self) -> None:
        assert calculate_contrast(np.full((10, 10), 9, dtype=np.uint8)) == 0.0


class TestPreprocessingPipeline:
    """Tests for the enhancement pipeline."""

    def test_produces_rgb_raster(self) -> None:
        image = np.stack([_two_level_image()] * 3, axis=2)
        pipeline = PreprocessingPipeline(PreprocessingConfig())
        result, metrics = pipeline.process(image)
        assert result.shape == (60, 80, 3)
        assert (result[..., 0] == result[..., 1]).all()
        assert isinstance(metrics, QualityMetrics)
        assert metrics.contrast_after >= metrics.contrast_before

    def test_binarize_enabled(self) -> None:
        pipeline = PreprocessingPipeline(PreprocessingConfig(binarize_enabled=True))
        result, _ = pipeline.process(_two_level_image())
        assert set(np.unique(result).tolist()) <= {0, 255}

    def test_all_steps_disabled(self) -> None:
        config = PreprocessingConfig(contrast_enabled=False, sharpen_enabled=False)
        gray = _two_level_image()
        result, _ = PreprocessingPipeline(config).process(gray)
        np.testing.assert_array_equal(result[..., 0], gray)
