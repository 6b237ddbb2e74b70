"""Multi-candidate field extraction from recognized receipt text.

Runs a normalization pass over the OCR text, applies each field's
ordered strategies, filters implausible context-free matches, and ranks
the resulting candidates.
"""

import re

from tankscan.utils.config import ExtractionConfig, ValidationConfig
from tankscan.utils.logger import get_logger

from .candidates import (
    NUMERIC_FIELDS,
    ContextStrength,
    FieldCandidate,
    FieldName,
    rank_candidates,
)
from .strategies import STRATEGIES, Strategy

logger = get_logger(__name__)

_CONTEXT_FREE = (ContextStrength.ISOLATED, ContextStrength.BRUTE_FORCE)

# (pattern, replacement, flags) applied in order.
_NORMALIZATIONS: list[tuple[str, str, int]] = [
    (r"\bEURO\b", "EUR", re.IGNORECASE),
    # "49 , 04" -> "49,04"
    (r"(\d)[ \t]*([,.])[ \t]*(\d)", r"\1\2\3", 0),
    # "49 04 l" -> "49,04 l", "84 30 EUR" -> "84,30 EUR"; only before a unit or currency.
    (
        r"(?<![\d.,:])(\d{1,3})[ \t]+(\d{2})(?=[ \t]*(?:EUR\b|€|(?:l|ltr|liter|litre)\b))",
        r"\1,\2",
        re.IGNORECASE,
    ),
    # "49,04 1" -> "49,04 l" (unit letter read as a digit)
    (r"(\d[,.]\d{2})[ \t]+[1I|](?=[ \t]|$)", r"\1 l", re.MULTILINE),
    # "EUR/1" -> "EUR/l"
    (r"((?:EUR|€)[ \t]*)/[ \t]*[1I|](?!\d)", r"\1/l", re.IGNORECASE),
]


def normalize_ocr_text(text: str) -> str:
    """Fix the character confusions Tesseract most often makes on receipts.

    Args:
        text: Raw recognized text.

    Returns:
        Normalized text with the same line structure.
    """
    if not text:
        return ""
    result = text.replace("\r\n", "\n")
    for pattern, replacement, flags in _NORMALIZATIONS:
        result = re.sub(pattern, replacement, result, flags=flags)
    return result


class FieldParser:
    """Extracts ranked candidates for every receipt field.

    Args:
        config: Extraction configuration with strength ranks, base
            confidences and typical values.
        strategies: Per-field ordered strategy lists. Defaults to the
            built-in receipt strategies.
        validation: Plausibility ranges. Context-free candidates outside
            a field's warn range are dropped.
    """

    def __init__(
        self,
        config: ExtractionConfig | None = None,
        strategies: dict[FieldName, list[Strategy]] | None = None,
        validation: ValidationConfig | None = None,
    ) -> None:
        self.config = config or ExtractionConfig()
        self.validation = validation or ValidationConfig()
        self.strategies = strategies or STRATEGIES

    def extract_candidates(self, text: str) -> dict[FieldName, list[FieldCandidate]]:
        """Extract and rank candidates for all fields.

        Args:
            text: Raw text returned by the recognition engine.

        Returns:
            Mapping of field to candidates, best first. Fields without a
            plausible candidate map to an empty list.
        """
        lines = normalize_ocr_text(text).split("\n")
        found: dict[FieldName, list[FieldCandidate]] = {}
        for field in FieldName:
            found[field] = []
            for strategy in self.strategies.get(field, []):
                found[field].extend(strategy(lines, self.config))

        claimed = _claimed_tokens(found)
        results: dict[FieldName, list[FieldCandidate]] = {}
        for field in FieldName:
            kept = [
                c
                for c in _deduplicate(found[field])
                if self._plausible(c) and not _is_claimed(c, claimed)
            ]
            results[field] = self.rank(kept)
            logger.debug(
                "Field %s: %d candidates, best %s",
                field.value,
                len(results[field]),
                results[field][0].value if results[field] else None,
            )

        logger.info(
            "Field parsing found candidates for %d of %d fields",
            sum(1 for c in results.values() if c),
            len(results),
        )
        return results

    def _plausible(self, cand: FieldCandidate) -> bool:
        """Context-free matches must at least fall inside the warn range."""
        if cand.field not in NUMERIC_FIELDS or cand.strength not in _CONTEXT_FREE:
            return True
        return self.validation.ranges_for(cand.field.value).in_warn(float(cand.value))

    def rank(self, candidates: list[FieldCandidate]) -> list[FieldCandidate]:
        """Order candidates best first.

        Higher context strength wins, then higher confidence, then the
        value closest to the field's typical value.
        """
        return rank_candidates(candidates, self.config)

    def select(self, candidates: list[FieldCandidate]) -> FieldCandidate | None:
        """Return the best candidate, or ``None`` if there are none."""
        ranked = self.rank(candidates)
        return ranked[0] if ranked else None


def _deduplicate(candidates: list[FieldCandidate]) -> list[FieldCandidate]:
    """Keep the first candidate per (value, line); strategies run strongest first."""
    seen: set[tuple[object, int]] = set()
    unique: list[FieldCandidate] = []
    for cand in candidates:
        key = (cand.value, cand.line_no)
        if key in seen:
            continue
        seen.add(key)
        unique.append(cand)
    return unique


def _claimed_tokens(
    found: dict[FieldName, list[FieldCandidate]],
) -> dict[tuple[int, str], set[FieldName]]:
    """Tokens matched with real context, keyed by ``(line_no, raw_text)``."""
    claimed: dict[tuple[int, str], set[FieldName]] = {}
    for field in NUMERIC_FIELDS:
        for cand in found.get(field, []):
            if cand.strength is ContextStrength.BRUTE_FORCE:
                continue
            claimed.setdefault((cand.line_no, cand.raw_text), set()).add(field)
    return claimed


def _is_claimed(
    cand: FieldCandidate, claimed: dict[tuple[int, str], set[FieldName]]
) -> bool:
    """A brute force match may not reuse a token another field already owns."""
    if cand.strength is not ContextStrength.BRUTE_FORCE:
        return False
    owners = claimed.get((cand.line_no, cand.raw_text), set())
    return bool(owners - {cand.field})
