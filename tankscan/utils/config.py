"""Configuration management for the receipt extraction pipeline.

Loads and validates YAML configuration with sensible defaults for
preprocessing, corner estimation, OCR, field extraction, and the
plausibility ranges used by consistency validation.
"""

import logging
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, model_validator

logger = logging.getLogger(__name__)


class PreprocessingConfig(BaseModel):
    """Configuration for rectification and image enhancement."""

    min_output_side: int = 900
    max_side: int = 2000
    contrast_enabled: bool = True
    clip_percent: float = 2.0
    sharpen_enabled: bool = True
    sharpen_strength: float = 1.5
    binarize_enabled: bool = False


class CornerConfig(BaseModel):
    """Configuration for automatic receipt corner estimation."""

    working_width: int = 640
    border_margin: float = 0.02
    padding: float = 0.02
    min_aspect: float = 0.2
    max_aspect: float = 1.2
    min_coverage: float = 0.15
    max_coverage: float = 0.95


class OCRConfig(BaseModel):
    """Configuration for the Tesseract recognition engine."""

    tesseract_cmd: str | None = None
    default_lang: str = "deu"
    psm: int = 6
    timeout_s: float = 60.0


class ExtractionConfig(BaseModel):
    """Strength ranks, base confidences and typical values for field parsing."""

    strength_ranks: dict[str, int] = Field(
        default_factory=lambda: {
            "labeled": 5,
            "unit": 4,
            "label_nearby": 3,
            "structure": 2,
            "isolated": 1,
            "brute_force": 0,
        }
    )
    base_confidences: dict[str, float] = Field(
        default_factory=lambda: {
            "labeled": 0.90,
            "unit": 0.80,
            "label_nearby": 0.75,
            "structure": 0.65,
            "isolated": 0.50,
            "brute_force": 0.30,
        }
    )
    typical_liters: float = 40.0
    typical_price_per_liter: float = 1.70
    date_labeled_confidence: float = 0.85
    date_isolated_confidence: float = 0.70

    @property
    def typical_total_cost(self) -> float:
        return self.typical_liters * self.typical_price_per_liter


class RangeThresholds(BaseModel):
    """Plausibility intervals for one numeric field.

    Values inside ``safe`` need no comment, values inside ``warn`` are
    accepted with a hint, anything else is outside.
    """

    safe: tuple[float, float]
    warn: tuple[float, float]

    @model_validator(mode="after")
    def _check_nested(self) -> "RangeThresholds":
        if self.safe[0] > self.safe[1] or self.warn[0] > self.warn[1]:
            raise ValueError("Range bounds must be ordered (low, high)")
        if self.safe[0] < self.warn[0] or self.safe[1] > self.warn[1]:
            raise ValueError("Safe range must lie inside the warn range")
        return self

    def in_safe(self, value: float) -> bool:
        return self.safe[0] <= value <= self.safe[1]

    def in_warn(self, value: float) -> bool:
        return self.warn[0] <= value <= self.warn[1]


class ValidationConfig(BaseModel):
    """Configuration for cross-field consistency validation."""

    tolerance: float = 0.03
    strong_confidence: float = 0.70
    strong_min_strength: str = "label_nearby"
    outside_confidence: float = 0.2
    liters: RangeThresholds = RangeThresholds(safe=(5.0, 120.0), warn=(1.0, 200.0))
    total_cost: RangeThresholds = RangeThresholds(
        safe=(5.0, 250.0), warn=(1.0, 500.0)
    )
    price_per_liter: RangeThresholds = RangeThresholds(
        safe=(1.2, 2.5), warn=(0.5, 4.0)
    )

    def ranges_for(self, field_name: str) -> RangeThresholds:
        """Return the range thresholds for a numeric field name."""
        return getattr(self, field_name)


class AppConfig(BaseModel):
    """Top-level application configuration."""

    preprocessing: PreprocessingConfig = Field(default_factory=PreprocessingConfig)
    corners: CornerConfig = Field(default_factory=CornerConfig)
    ocr: OCRConfig = Field(default_factory=OCRConfig)
    extraction: ExtractionConfig = Field(default_factory=ExtractionConfig)
    validation: ValidationConfig = Field(default_factory=ValidationConfig)
    log_level: str = "INFO"


def load_config(path: Path | None = None) -> AppConfig:
    """Load configuration from a YAML file.

    Args:
        path: Path to the YAML configuration file.
            Defaults to configs/config.yaml.

    Returns:
        Validated application configuration.
    """
    if path is None:
        path = Path("configs/config.yaml")

    if path.exists():
        logger.info("Loading configuration from %s", path)
        with open(path) as f:
            raw = yaml.safe_load(f) or {}
        return AppConfig(**raw)

    logger.info("No config file found at %s, using defaults", path)
    return AppConfig()
