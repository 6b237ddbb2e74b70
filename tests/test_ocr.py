"""Tests for the Tesseract engine wrapper and the recognition service."""

import asyncio
import time
from unittest.mock import MagicMock, patch

import numpy as np
import pytest

from tankscan.ocr.recognition_service import RecognitionError, RecognitionService
from tankscan.ocr.tesseract_engine import OCRResult, TesseractEngine
from tankscan.utils.config import OCRConfig


def _mock_tesseract_data() -> dict:
    """Create mock pytesseract output data."""
    return {
        "text": ["", "Summe", "84,30", "", "EUR"],
        "conf": [-1, 95, 88, -1, 72],
    }


def _ocr_result(text: str = "Summe EUR 84,30") -> OCRResult:
    return OCRResult(text=text, confidence=0.9, word_count=3, language="deu")


class TestTesseractEngine:
    """Tests for the TesseractEngine class (mocked)."""

    @patch("tankscan.ocr.tesseract_engine.pytesseract")
    def test_extract_text(self, mock_pytesseract: MagicMock) -> None:
        mock_pytesseract.image_to_string.return_value = "Summe 84,30\nEUR"
        mock_pytesseract.image_to_data.return_value = _mock_tesseract_data()
        mock_pytesseract.Output.DICT = "dict"

        engine = TesseractEngine(default_lang="deu")
        image = np.zeros((100, 200, 3), dtype=np.uint8)
        result = engine.extract_text(image, psm=6)

        assert isinstance(result, OCRResult)
        assert result.text == "Summe 84,30\nEUR"
        assert result.word_count == 3
        assert result.confidence == pytest.approx((95 + 88 + 72) / 3 / 100)
        assert result.language == "deu"
        _, kwargs = mock_pytesseract.image_to_string.call_args
        assert kwargs["config"] == "--psm 6"

    @patch("tankscan.ocr.tesseract_engine.pytesseract")
    def test_no_words(self, mock_pytesseract: MagicMock) -> None:
        mock_pytesseract.image_to_string.return_value = ""
        mock_pytesseract.image_to_data.return_value = {"text": [""], "conf": [-1]}

        result = TesseractEngine().extract_text(np.zeros((10, 10), dtype=np.uint8))
        assert result.confidence == 0.0
        assert result.word_count == 0

    @patch("tankscan.ocr.tesseract_engine.pytesseract")
    def test_lang_override(self, mock_pytesseract: MagicMock) -> None:
        mock_pytesseract.image_to_string.return_value = "x"
        mock_pytesseract.image_to_data.return_value = {"text": [], "conf": []}

        result = TesseractEngine().extract_text(np.zeros((10, 10), dtype=np.uint8), lang="eng")
        assert result.language == "eng"

    @patch("tankscan.ocr.tesseract_engine.pytesseract")
    def test_check_available(self, mock_pytesseract: MagicMock) -> None:
        mock_pytesseract.get_tesseract_version.return_value = "5.3.0"
        assert TesseractEngine().check_available() == "5.3.0"


class TestRecognitionService:
    """Tests for lazy-once engine initialization and recognition."""

    def test_engine_created_once_under_concurrency(self) -> None:
        engine = MagicMock()
        factory = MagicMock(side_effect=lambda config: time.sleep(0.05) or engine)
        service = RecognitionService(OCRConfig(), engine_factory=factory)

        async def run() -> list[object]:
            return await asyncio.gather(*(service.get_engine() for _ in range(5)))

        engines = asyncio.run(run())
        assert all(e is engine for e in engines)
        factory.assert_called_once()
        assert service.ready

    def test_not_ready_before_first_use(self) -> None:
        factory = MagicMock()
        service = RecognitionService(engine_factory=factory)
        assert not service.ready
        assert factory.call_count == 0

    def test_engine_reused_across_calls(self) -> None:
        factory = MagicMock()
        service = RecognitionService(engine_factory=factory)

        async def run() -> tuple[object, object]:
            return await service.get_engine(), await service.get_engine()

        first, second = asyncio.run(run())
        assert first is second
        assert factory.call_count == 1

    def test_recognize_passes_language_and_psm(self) -> None:
        engine = MagicMock()
        engine.extract_text.return_value = _ocr_result()
        config = OCRConfig(default_lang="eng", psm=4)
        service = RecognitionService(config, engine_factory=lambda c: engine)

        result = asyncio.run(service.recognize(np.zeros((5, 5, 3), dtype=np.uint8)))
        assert result.text == "Summe EUR 84,30"
        args = engine.extract_text.call_args.args
        assert args[1:] == ("eng", 4)

    def test_factory_failure_raises_recognition_error(self) -> None:
        def factory(config: OCRConfig) -> MagicMock:
            raise OSError("tesseract not installed")

        service = RecognitionService(engine_factory=factory)
        with pytest.raises(RecognitionError, match="unavailable"):
            asyncio.run(service.get_engine())
        assert not service.ready

    def test_engine_failure_raises_recognition_error(self) -> None:
        engine = MagicMock()
        engine.extract_text.side_effect = RuntimeError("engine crashed")
        service = RecognitionService(engine_factory=lambda c: engine)

        with pytest.raises(RecognitionError, match="engine crashed"):
            asyncio.run(service.recognize(np.zeros((5, 5), dtype=np.uint8)))

    def test_timeout_raises_recognition_error(self) -> None:
        engine = MagicMock()
        engine.extract_text.side_effect = lambda *args: time.sleep(0.5)
        service = RecognitionService(OCRConfig(timeout_s=0.05), engine_factory=lambda c: engine)

        with pytest.raises(RecognitionError, match="timed out"):
            asyncio.run(service.recognize(np.zeros((5, 5), dtype=np.uint8)))
