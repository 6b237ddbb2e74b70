"""Asynchronous, lazily initialized access to the recognition engine.

The engine is created on first use. Callers that arrive while
initialization is in flight wait for the same instance instead of
starting a second one. Recognition runs in a worker thread so the event
loop stays free while Tesseract works.
"""

import asyncio
from collections.abc import Callable

import numpy as np

from tankscan.utils.config import OCRConfig
from tankscan.utils.logger import get_logger

from .tesseract_engine import OCRResult, TesseractEngine

logger = get_logger(__name__)


class RecognitionError(RuntimeError):
    """Raised when the recognition engine fails or times out."""


def _default_factory(config: OCRConfig) -> TesseractEngine:
    engine = TesseractEngine(
        tesseract_cmd=config.tesseract_cmd,
        default_lang=config.default_lang,
    )
    engine.check_available()
    return engine


class RecognitionService:
    """Owns one recognition engine handle with lazy-once initialization.

    Args:
        config: OCR configuration (language, page segmentation, timeout).
        engine_factory: Builds the engine; blocking, run in a worker thread.
            Defaults to a Tesseract engine with an availability check.
    """

    def __init__(
        self,
        config: OCRConfig | None = None,
        engine_factory: Callable[[OCRConfig], TesseractEngine] | None = None,
    ) -> None:
        self.config = config or OCRConfig()
        self._factory = engine_factory or _default_factory
        self._engine: TesseractEngine | None = None
        self._init_lock = asyncio.Lock()

    @property
    def ready(self) -> bool:
        return self._engine is not None

    async def get_engine(self) -> TesseractEngine:
        """Return the engine, creating it on first call.

        Raises:
            RecognitionError: If the engine cannot be created.
        """
        if self._engine is not None:
            return self._engine

        async with self._init_lock:
            if self._engine is None:
                logger.info("Initializing recognition engine (lang=%s)", self.config.default_lang)
                try:
                    engine = await asyncio.to_thread(self._factory, self.config)
                except Exception as exc:
                    raise RecognitionError(f"Recognition engine unavailable: {exc}") from exc
                self._engine = engine
        return self._engine

    async def recognize(self, image: np.ndarray) -> OCRResult:
        """Recognize the text of an enhanced receipt image.

        Args:
            image: Preprocessed R=G=B image.

        Returns:
            Recognition result.

        Raises:
            RecognitionError: On engine failure or timeout. Not retried.
        """
        engine = await self.get_engine()
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(
                    engine.extract_text,
                    image,
                    self.config.default_lang,
                    self.config.psm,
                ),
                timeout=self.config.timeout_s,
            )
        except asyncio.TimeoutError as exc:
            raise RecognitionError(
                f"Recognition timed out after {self.config.timeout_s:.0f}s"
            ) from exc
        except Exception as exc:
            raise RecognitionError(f"Recognition failed: {exc}") from exc
