"""Shared test fixtures for the receipt extraction test suite."""

from pathlib import Path

import numpy as np
import pytest

SAMPLE_RECEIPT_TEXT = """ARAL Tankstelle
Hauptstr. 12, 10115 Berlin
Datum: 14.03.2024 12:31
Diesel
49,04 l x 1,719 EUR/l
Summe EUR 84,30
MwSt 19% 13,46
Vielen Dank"""


@pytest.fixture
def sample_image() -> np.ndarray:
    """Create a simple synthetic grayscale test image."""
    image = np.zeros((200, 300), dtype=np.uint8)
    image[50:150, 50:250] = 255
    return image


@pytest.fixture
def receipt_photo() -> np.ndarray:
    """Bright upright receipt on a dark table, RGB."""
    image = np.full((400, 300, 3), 30, dtype=np.uint8)
    image[40:360, 90:210] = (240, 240, 235)
    return image


@pytest.fixture
def receipt_text() -> str:
    """OCR output of a typical German fuel receipt."""
    return SAMPLE_RECEIPT_TEXT


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def config_dir(project_root: Path) -> Path:
    """Return the configs directory path."""
    return project_root / "configs"
