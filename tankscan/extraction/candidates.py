"""Field candidate types shared by the parser and the validator."""

from dataclasses import dataclass, replace
from enum import Enum

from tankscan.utils.config import ExtractionConfig


class FieldName(str, Enum):
    """Fields extracted from a fuel receipt."""

    DATE = "date"
    LITERS = "liters"
    TOTAL_COST = "total_cost"
    PRICE_PER_LITER = "price_per_liter"


NUMERIC_FIELDS: tuple[FieldName, ...] = (
    FieldName.LITERS,
    FieldName.TOTAL_COST,
    FieldName.PRICE_PER_LITER,
)


class ContextStrength(str, Enum):
    """How strongly a candidate is tied to a label or unit in the text."""

    LABELED = "labeled"
    LABEL_NEARBY = "label_nearby"
    UNIT = "unit"
    STRUCTURE = "structure"
    ISOLATED = "isolated"
    BRUTE_FORCE = "brute_force"


@dataclass(frozen=True)
class FieldCandidate:
    """One possible value for a field, as found in the recognized text.

    Attributes:
        field: Target field.
        raw_text: Matched text before numeric parsing.
        value: Parsed value; ISO date string for the date field.
        confidence: Confidence in [0, 1].
        strength: Context strength of the match.
        line_no: Zero-based line index the match came from.
        normalized: Whether parsing had to reinterpret implied decimals.
    """

    field: FieldName
    raw_text: str
    value: float | str
    confidence: float
    strength: ContextStrength
    line_no: int = -1
    normalized: bool = False

    def with_confidence(self, confidence: float) -> "FieldCandidate":
        return replace(self, confidence=confidence)


def typical_value(field: FieldName, config: ExtractionConfig) -> float | None:
    """Domain-typical value used to break ties between equal candidates."""
    if field is FieldName.LITERS:
        return config.typical_liters
    if field is FieldName.TOTAL_COST:
        return config.typical_total_cost
    if field is FieldName.PRICE_PER_LITER:
        return config.typical_price_per_liter
    return None


def rank_candidates(
    candidates: list[FieldCandidate], config: ExtractionConfig
) -> list[FieldCandidate]:
    """Order candidates best first.

    Higher context strength wins, then higher confidence, then the value
    closest to the field's typical value, then the earlier line.
    """

    def sort_key(cand: FieldCandidate) -> tuple[float, float, float, int]:
        rank = config.strength_ranks[cand.strength.value]
        distance = 0.0
        typical = typical_value(cand.field, config)
        if typical and isinstance(cand.value, float):
            distance = abs(cand.value - typical) / typical
        return (-rank, -cand.confidence, distance, cand.line_no)

    return sorted(candidates, key=sort_key)
