"""Tesseract OCR engine wrapper for receipt text recognition.

The engine is treated as an opaque ``image -> text`` function; word-level
confidences are only aggregated into a single score for diagnostics.
"""

from dataclasses import dataclass

import numpy as np
import pytesseract
from PIL import Image

from tankscan.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class OCRResult:
    """Recognized text of one receipt image."""

    text: str
    confidence: float
    word_count: int
    language: str


class TesseractEngine:
    """Wrapper around Tesseract OCR for receipt text extraction.

    Args:
        tesseract_cmd: Path to the Tesseract executable.
            If ``None``, uses the system default.
        default_lang: Default OCR language code.
    """

    def __init__(
        self,
        tesseract_cmd: str | None = None,
        default_lang: str = "deu",
    ) -> None:
        if tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = tesseract_cmd
        self.default_lang = default_lang

    def check_available(self) -> str:
        """Return the installed Tesseract version.

        Raises:
            pytesseract.TesseractNotFoundError: If Tesseract is not installed.
        """
        version = str(pytesseract.get_tesseract_version())
        logger.info("Tesseract %s ready (lang=%s)", version, self.default_lang)
        return version

    def extract_text(
        self,
        image: np.ndarray,
        lang: str | None = None,
        psm: int = 6,
    ) -> OCRResult:
        """Extract text from an image.

        Args:
            image: Input image as a numpy array.
            lang: OCR language code. Defaults to the engine default.
            psm: Tesseract page segmentation mode.

        Returns:
            OCRResult containing the full text and average word confidence.
        """
        lang = lang or self.default_lang
        config = f"--psm {psm}"

        pil_image = Image.fromarray(image)
        text = pytesseract.image_to_string(pil_image, lang=lang, config=config)

        data = pytesseract.image_to_data(
            pil_image,
            lang=lang,
            config=config,
            output_type=pytesseract.Output.DICT,
        )

        confidences = [
            float(conf)
            for conf, word in zip(data["conf"], data["text"])
            if float(conf) > 0 and str(word).strip()
        ]
        avg_conf = sum(confidences) / len(confidences) / 100.0 if confidences else 0.0

        logger.info(
            "OCR extracted %d words with average confidence %.2f",
            len(confidences),
            avg_conf,
        )
        return OCRResult(
            text=text,
            confidence=avg_conf,
            word_count=len(confidences),
            language=lang,
        )
