"""Cross-field consistency validation for fuel receipt values.

Litres, total cost and unit price are tied by ``total = liters * price``.
The validator selects one candidate per field, checks the relation,
derives a missing or outlying field from the other two when both are
strongly supported, and otherwise reports the field as conflicting or
missing. It never raises for inconsistent input and never derives a
value outside the field's warn range.
"""

from collections.abc import Mapping
from dataclasses import asdict, dataclass
from enum import Enum

from tankscan.extraction.candidates import (
    NUMERIC_FIELDS,
    ContextStrength,
    FieldCandidate,
    FieldName,
    rank_candidates,
)
from tankscan.utils.config import ExtractionConfig, RangeThresholds, ValidationConfig
from tankscan.utils.logger import get_logger

logger = get_logger(__name__)

LITERS = FieldName.LITERS
TOTAL = FieldName.TOTAL_COST
PRICE = FieldName.PRICE_PER_LITER

_DECIMALS = {LITERS: 2, TOTAL: 2, PRICE: 3}


class FieldStatus(str, Enum):
    """Final verdict on a field, rendered by the form as a confidence hint."""

    SAFE = "safe"
    UNCERTAIN = "uncertain"
    DERIVED = "derived"
    CONFLICTING = "conflicting"
    MISSING = "missing"


class FieldSource(str, Enum):
    """Where a field's value came from."""

    OCR = "ocr"
    DERIVED = "derived"
    NORMALIZED = "normalized"


@dataclass(frozen=True)
class FieldResult:
    """Final value and status of one receipt field."""

    value: float | str | None = None
    confidence: float = 0.0
    strength: ContextStrength | None = None
    source: FieldSource | None = None
    status: FieldStatus = FieldStatus.MISSING
    reason: str | None = None

    def to_dict(self) -> dict[str, object]:
        data = asdict(self)
        for key in ("strength", "source", "status"):
            if data[key] is not None:
                data[key] = data[key].value
        return data


@dataclass(frozen=True)
class ExtractionResult:
    """Structured fuel purchase data extracted from one receipt image."""

    date: FieldResult
    liters: FieldResult
    total_cost: FieldResult
    price_per_liter: FieldResult

    def field(self, name: FieldName) -> FieldResult:
        return getattr(self, name.value)

    def to_dict(self) -> dict[str, dict[str, object]]:
        """Plain-data view; numeric values are rounded to receipt precision."""
        data = {name.value: self.field(name).to_dict() for name in FieldName}
        for name, decimals in _DECIMALS.items():
            value = data[name.value]["value"]
            if isinstance(value, float):
                data[name.value]["value"] = round(value, decimals)
        return data


def _from_candidate(cand: FieldCandidate, status: FieldStatus) -> FieldResult:
    return FieldResult(
        value=cand.value,
        confidence=cand.confidence,
        strength=cand.strength,
        source=FieldSource.NORMALIZED if cand.normalized else FieldSource.OCR,
        status=status,
    )


def _implied(field: FieldName, values: Mapping[FieldName, float]) -> float | None:
    """Value of ``field`` implied by the other two fields, if computable."""
    if field is LITERS:
        price = values.get(PRICE)
        total = values.get(TOTAL)
        if total is None or not price:
            return None
        return total / price
    if field is TOTAL:
        liters = values.get(LITERS)
        price = values.get(PRICE)
        if liters is None or price is None:
            return None
        return liters * price
    total = values.get(TOTAL)
    liters = values.get(LITERS)
    if total is None or not liters:
        return None
    return total / liters


def _reason(field: FieldName, values: Mapping[FieldName, float]) -> str:
    if field is LITERS:
        return f"total ÷ price: {values[TOTAL]:.2f} ÷ {values[PRICE]:.3f}"
    if field is TOTAL:
        return f"liters × price: {values[LITERS]:.2f} × {values[PRICE]:.3f}"
    return f"total ÷ liters: {values[TOTAL]:.2f} ÷ {values[LITERS]:.2f}"


class ConsistencyValidator:
    """Restores ``total = liters * price`` across the selected candidates.

    Args:
        config: Tolerance, strength bar and per-field range thresholds.
        extraction: Strength ranks and typical values used for ranking.
    """

    def __init__(
        self,
        config: ValidationConfig | None = None,
        extraction: ExtractionConfig | None = None,
    ) -> None:
        self.config = config or ValidationConfig()
        self.extraction = extraction or ExtractionConfig()

    def finalize(
        self, candidates: Mapping[FieldName, list[FieldCandidate]]
    ) -> ExtractionResult:
        """Select, cross-check and derive the final receipt fields.

        Args:
            candidates: Candidates per field as produced by the field parser.

        Returns:
            Immutable extraction result.
        """
        current: dict[FieldName, FieldCandidate] = {}
        for field in NUMERIC_FIELDS:
            clamped = [self._clamp(c) for c in candidates.get(field, [])]
            ranked = rank_candidates(clamped, self.extraction)
            if ranked:
                current[field] = ranked[0]

        if len(current) == 3:
            numeric = self._check_all(current)
        elif len(current) == 2:
            numeric = self._derive_missing(current)
        else:
            numeric = {f: self._base(current[f]) for f in current}

        for field in NUMERIC_FIELDS:
            numeric.setdefault(field, FieldResult())

        result = ExtractionResult(
            date=self._finalize_date(candidates.get(FieldName.DATE, [])),
            liters=numeric[LITERS],
            total_cost=numeric[TOTAL],
            price_per_liter=numeric[PRICE],
        )
        logger.info(
            "Consistency check: %s",
            ", ".join(f"{f.value}={result.field(f).status.value}" for f in FieldName),
        )
        return result

    def ranges(self, field: FieldName) -> RangeThresholds:
        return self.config.ranges_for(field.value)

    def is_strong(self, cand: FieldCandidate) -> bool:
        """Strength at or above the bar and confidence at or above the floor."""
        ranks = self.extraction.strength_ranks
        return (
            ranks[cand.strength.value] >= ranks[self.config.strong_min_strength]
            and cand.confidence >= self.config.strong_confidence
        )

    def _clamp(self, cand: FieldCandidate) -> FieldCandidate:
        if not isinstance(cand.value, float) or self.ranges(cand.field).in_warn(cand.value):
            return cand
        if cand.confidence <= self.config.outside_confidence:
            return cand
        logger.warning(
            "%s candidate %s outside plausible range, confidence lowered",
            cand.field.value,
            cand.value,
        )
        return cand.with_confidence(self.config.outside_confidence)

    def _base(self, cand: FieldCandidate) -> FieldResult:
        """Status of a field that could not be cross-checked."""
        value = float(cand.value)
        safe = self.is_strong(cand) and self.ranges(cand.field).in_safe(value)
        return _from_candidate(cand, FieldStatus.SAFE if safe else FieldStatus.UNCERTAIN)

    def _supporting(self, cand: FieldCandidate) -> FieldResult:
        status = FieldStatus.SAFE if self.is_strong(cand) else FieldStatus.UNCERTAIN
        return _from_candidate(cand, status)

    def _derived(
        self,
        field: FieldName,
        value: float,
        values: Mapping[FieldName, float],
        supporters: list[FieldCandidate],
    ) -> FieldResult:
        return FieldResult(
            value=value,
            confidence=min(c.confidence for c in supporters),
            source=FieldSource.DERIVED,
            status=FieldStatus.DERIVED,
            reason=_reason(field, values),
        )

    def _check_all(
        self, current: dict[FieldName, FieldCandidate]
    ) -> dict[FieldName, FieldResult]:
        values = {f: float(c.value) for f, c in current.items()}
        implied = {f: _implied(f, values) for f in NUMERIC_FIELDS}
        deviation = {
            f: abs(values[f] - implied[f]) / implied[f] if implied[f] else float("inf")
            for f in NUMERIC_FIELDS
        }

        if max(deviation.values()) < self.config.tolerance:
            logger.debug("All three fields consistent (max deviation %.4f)", max(deviation.values()))
            return {f: _from_candidate(c, FieldStatus.SAFE) for f, c in current.items()}

        price_protected = current[PRICE].strength is ContextStrength.LABELED
        suspects = [f for f in NUMERIC_FIELDS if not (f is PRICE and price_protected)]

        def blame_key(f: FieldName) -> tuple[bool, bool, bool, float]:
            alt = implied[f]
            plausible = alt is not None and self.ranges(f).in_warn(alt)
            typical = alt is not None and self.ranges(f).in_safe(alt)
            duplicate = f is LITERS and values[LITERS] == values[TOTAL]
            return (plausible, typical, duplicate, deviation[f])

        outlier = max(suspects, key=blame_key)
        replacement = implied[outlier]
        replaceable = replacement is not None and self.ranges(outlier).in_warn(replacement)

        if price_protected and not replaceable:
            logger.warning(
                "Inconsistent fields, keeping labeled unit price %.3f", values[PRICE]
            )
            return {
                PRICE: _from_candidate(current[PRICE], FieldStatus.SAFE),
                LITERS: _from_candidate(current[LITERS], FieldStatus.UNCERTAIN),
                TOTAL: _from_candidate(current[TOTAL], FieldStatus.UNCERTAIN),
            }

        supporters = [current[f] for f in NUMERIC_FIELDS if f is not outlier]
        results = {f: self._supporting(current[f]) for f in NUMERIC_FIELDS if f is not outlier}

        if replaceable and all(self.is_strong(c) for c in supporters):
            logger.info(
                "Replacing outlier %s=%s with %.4f (deviation %.1f%%)",
                outlier.value,
                values[outlier],
                replacement,
                100.0 * deviation[outlier],
            )
            results[outlier] = self._derived(outlier, replacement, values, supporters)
        else:
            logger.warning(
                "Conflicting %s=%s, other fields imply %s",
                outlier.value,
                values[outlier],
                None if replacement is None else round(replacement, 4),
            )
            results[outlier] = _from_candidate(current[outlier], FieldStatus.CONFLICTING)
        return results

    def _derive_missing(
        self, current: dict[FieldName, FieldCandidate]
    ) -> dict[FieldName, FieldResult]:
        (missing,) = [f for f in NUMERIC_FIELDS if f not in current]
        values = {f: float(c.value) for f, c in current.items()}
        supporters = list(current.values())

        if not all(self.is_strong(c) for c in supporters):
            logger.info("Not deriving %s: supporting fields too weak", missing.value)
            return {f: self._base(c) for f, c in current.items()}

        derived = _implied(missing, values)
        if derived is None or not self.ranges(missing).in_warn(derived):
            logger.warning(
                "Not deriving %s: implied value %s is implausible", missing.value, derived
            )
            return {f: _from_candidate(c, FieldStatus.UNCERTAIN) for f, c in current.items()}

        results = {f: self._base(c) for f, c in current.items()}
        results[missing] = self._derived(missing, derived, values, supporters)
        logger.info("Derived %s=%.4f", missing.value, derived)
        return results

    def _finalize_date(self, candidates: list[FieldCandidate]) -> FieldResult:
        ranked = rank_candidates(list(candidates), self.extraction)
        if not ranked:
            return FieldResult()
        best = ranked[0]
        status = (
            FieldStatus.SAFE
            if best.strength is ContextStrength.LABELED
            else FieldStatus.UNCERTAIN
        )
        return _from_candidate(best, status)
