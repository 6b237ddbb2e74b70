"""End-to-end receipt extraction pipeline.

Wires corner estimation, rectification, enhancement, recognition, field
parsing and consistency validation for a single receipt photo.
"""

import asyncio
import io
from dataclasses import dataclass
from pathlib import Path

import numpy as np
from PIL import Image, ImageOps

from tankscan.detection.corner_estimator import CornerEstimator
from tankscan.extraction.field_parser import FieldParser
from tankscan.geometry.homography import GeometryError
from tankscan.geometry.quad import Quad, order_points
from tankscan.geometry.warp import rectify
from tankscan.preprocessing.pipeline import PreprocessingPipeline, QualityMetrics
from tankscan.utils.config import AppConfig
from tankscan.utils.logger import get_logger
from tankscan.validation.consistency import ConsistencyValidator, ExtractionResult

from .recognition_service import RecognitionError, RecognitionService

logger = get_logger(__name__)


class PipelineError(Exception):
    """A receipt could not be processed.

    Attributes:
        stage: Pipeline step that failed.
    """

    stage = "pipeline"


class RectificationFailed(PipelineError):
    """The selected quad was degenerate; no warp was attempted."""

    stage = "rectification"


class ExtractionFailed(PipelineError):
    """The recognition engine failed or timed out."""

    stage = "recognition"


class ExtractionCancelled(PipelineError):
    """The caller cancelled the run between steps."""

    stage = "cancelled"


@dataclass(frozen=True)
class ReceiptScan:
    """Extraction result plus the diagnostics the caller may surface."""

    result: ExtractionResult
    quad: Quad
    corner_confidence: float | None
    raw_text: str
    ocr_confidence: float
    quality: QualityMetrics

    def to_dict(self) -> dict[str, object]:
        return {
            "fields": self.result.to_dict(),
            "quad": self.quad.to_list(),
            "corner_confidence": self.corner_confidence,
            "ocr_confidence": round(self.ocr_confidence, 3),
            "raw_text": self.raw_text,
        }


def load_image(source: Path | bytes) -> np.ndarray:
    """Decode a photo into an RGB array, honouring EXIF orientation.

    Args:
        source: Path to an image file, or raw file bytes.

    Returns:
        H x W x 3 uint8 array.
    """
    if isinstance(source, bytes):
        img = Image.open(io.BytesIO(source))
    else:
        img = Image.open(Path(source))
    img = ImageOps.exif_transpose(img)
    return np.array(img.convert("RGB"))


class ReceiptProcessor:
    """Receipt extraction pipeline.

    Each call to ``process`` owns its image buffers; only the injected
    recognition service is shared between calls.

    Args:
        config: Application configuration object.
        recognition: Recognition service. One is created from
            ``config.ocr`` when omitted.
    """

    def __init__(
        self, config: AppConfig, recognition: RecognitionService | None = None
    ) -> None:
        self.config = config
        self.corner_estimator = CornerEstimator(config.corners)
        self.preprocessing = PreprocessingPipeline(config.preprocessing)
        self.recognition = recognition or RecognitionService(config.ocr)
        self.parser = FieldParser(config.extraction, validation=config.validation)
        self.validator = ConsistencyValidator(config.validation, config.extraction)

    async def process(
        self,
        image: np.ndarray,
        quad: Quad | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> ReceiptScan:
        """Extract fuel purchase fields from a receipt photo.

        Args:
            image: Decoded photo (RGB, RGBA or grayscale).
            quad: User-adjusted receipt corners. Estimated when omitted.
            cancel_event: When set, the next step is not started.

        Returns:
            Extraction result with diagnostics.

        Raises:
            RectificationFailed: If the quad is degenerate.
            ExtractionFailed: If recognition fails or times out.
            ExtractionCancelled: If ``cancel_event`` was set between steps.
        """
        corner_confidence: float | None = None
        if quad is None:
            estimate = self.corner_estimator.estimate(image)
            quad = estimate.quad
            corner_confidence = estimate.confidence
        else:
            quad = order_points(quad.points)

        _check_cancelled(cancel_event, "rectification")
        try:
            rectified = rectify(image, quad, self.config.preprocessing.min_output_side)
        except GeometryError as exc:
            logger.error("Rectification failed: %s", exc)
            raise RectificationFailed("rectification failed") from exc

        _check_cancelled(cancel_event, "preprocessing")
        enhanced, quality = self.preprocessing.process(rectified)

        _check_cancelled(cancel_event, "recognition")
        try:
            ocr = await self.recognition.recognize(enhanced)
        except RecognitionError as exc:
            logger.error("Recognition failed: %s", exc)
            raise ExtractionFailed("extraction failed") from exc

        _check_cancelled(cancel_event, "parsing")
        candidates = self.parser.extract_candidates(ocr.text)
        result = self.validator.finalize(candidates)

        logger.info(
            "Receipt processed: liters=%s total=%s price=%s date=%s",
            result.liters.value,
            result.total_cost.value,
            result.price_per_liter.value,
            result.date.value,
        )
        return ReceiptScan(
            result=result,
            quad=quad,
            corner_confidence=corner_confidence,
            raw_text=ocr.text,
            ocr_confidence=ocr.confidence,
            quality=quality,
        )


def _check_cancelled(cancel_event: asyncio.Event | None, next_step: str) -> None:
    if cancel_event is not None and cancel_event.is_set():
        logger.info("Cancelled before %s", next_step)
        raise ExtractionCancelled(f"cancelled before {next_step}")
