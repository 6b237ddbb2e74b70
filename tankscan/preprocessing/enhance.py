"""Legibility enhancement for rectified receipt images.

Grayscale conversion, percentile contrast stretching and unsharp masking,
producing the flat R=G=B raster handed to the recognition engine.
"""

import cv2
import numpy as np

from tankscan.utils.logger import get_logger

logger = get_logger(__name__)

# ITU-R BT.601 luma weights, RGB order.
_LUMA_WEIGHTS = np.array([0.299, 0.587, 0.114], dtype=np.float32)


def cap_resolution(image: np.ndarray, max_side: int = 2000) -> np.ndarray:
    """Uniformly downscale so the longer side is at most ``max_side``.

    Args:
        image: Input image (any channel layout).
        max_side: Maximum allowed length of the longer side.

    Returns:
        The input unchanged if already small enough, else a resized copy.
        Never upscales.
    """
    h, w = image.shape[:2]
    longest = max(h, w)
    if longest <= max_side:
        return image

    scale = max_side / longest
    size = (max(int(round(w * scale)), 1), max(int(round(h * scale)), 1))
    logger.debug("Capping resolution %dx%d -> %dx%d", w, h, size[0], size[1])
    return cv2.resize(image, size, interpolation=cv2.INTER_AREA)


def to_grayscale(image: np.ndarray) -> np.ndarray:
    """Convert an RGB or RGBA image to an 8-bit luminance buffer.

    Alpha is ignored. Grayscale input is returned as-is.
    """
    if image.ndim == 2:
        return image
    rgb = image[..., :3].astype(np.float32)
    gray = rgb @ _LUMA_WEIGHTS
    return np.clip(np.rint(gray), 0, 255).astype(np.uint8)


def stretch_contrast(gray: np.ndarray, clip_percent: float = 2.0) -> np.ndarray:
    """Linearly remap intensities so the clipped range spans 0-255.

    The darkest and brightest ``clip_percent`` of pixels are ignored when
    choosing the range, which keeps isolated glare or shadow from
    dominating the stretch.

    Args:
        gray: Grayscale uint8 image.
        clip_percent: Percentage of pixels ignored at each tail.

    Returns:
        Contrast-stretched grayscale image.
    """
    hist = np.bincount(gray.ravel(), minlength=256)
    total = int(hist.sum())
    if total == 0:
        return gray

    cumulative = np.cumsum(hist)
    clip = total * clip_percent / 100.0
    low = int(np.searchsorted(cumulative, clip, side="right"))
    high = int(np.searchsorted(cumulative, total - clip, side="left"))
    low = min(low, 255)
    high = min(max(high, low), 255)

    if high <= low:
        logger.debug("Flat histogram, skipping contrast stretch")
        return gray

    lut = (np.arange(256, dtype=np.float32) - low) * (255.0 / (high - low))
    lut = np.clip(np.rint(lut), 0, 255).astype(np.uint8)
    logger.debug("Stretched contrast from [%d, %d] to [0, 255]", low, high)
    return lut[gray]


def unsharp_mask(gray: np.ndarray, strength: float = 1.5) -> np.ndarray:
    """Sharpen by pushing each pixel away from its 3x3 box-blurred neighbourhood.

    Args:
        gray: Grayscale uint8 image.
        strength: Multiplier applied to ``original - blurred``.

    Returns:
        Sharpened grayscale image clamped to [0, 255].
    """
    original = gray.astype(np.float32)
    blurred = cv2.blur(original, (3, 3), borderType=cv2.BORDER_REPLICATE)
    sharpened = original + strength * (original - blurred)
    return np.clip(np.rint(sharpened), 0, 255).astype(np.uint8)


def to_rgb(gray: np.ndarray) -> np.ndarray:
    """Expand a grayscale buffer to a three-channel R=G=B raster."""
    return np.repeat(gray[..., np.newaxis], 3, axis=2)
