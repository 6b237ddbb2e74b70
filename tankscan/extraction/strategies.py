"""Candidate extraction strategies for fuel receipt fields.

Every strategy is a pure function ``(lines, config) -> list[FieldCandidate]``.
Each field owns an ordered list of strategies, strongest context first,
so the parser is a fixed composition and each strategy can be tested on
its own.
"""

import re
from collections.abc import Callable

from tankscan.utils.config import ExtractionConfig
from tankscan.utils.logger import get_logger

from .candidates import ContextStrength, FieldCandidate, FieldName
from .numbers import NumberKind, parse_date, parse_number

logger = get_logger(__name__)

Strategy = Callable[[list[str], ExtractionConfig], list[FieldCandidate]]

# Pattern definitions. German receipts first, English as a fallback.
_NUMBER = r"(?<![\d.,])(\d{1,4}(?:[.,]\d{3})*(?:[.,]\d{1,4})?)(?![\d]|[.,]\d)"
_NUMBER_RE = re.compile(_NUMBER)
_SEPARATED_RE = re.compile(r"(?<![\d.,])(\d{1,4}[.,]\d{2,4})(?![\d]|[.,]\d)")
_UNIT_PRICE_SHAPE = re.compile(r"^\d[.,]\d{3,4}$")
_MONEY_SHAPE = re.compile(r"^\d{1,4}(?:\.\d{3})*[.,]\d{2}$")

_PER_VOLUME = r"(?:EUR|€|E)?\s*/\s*(?:l|ltr|liter|litre)\b"
_PER_VOLUME_RE = re.compile(_PER_VOLUME, re.IGNORECASE)
_PRICE_BEFORE_PER_VOLUME = re.compile(_NUMBER + r"\s*" + _PER_VOLUME, re.IGNORECASE)
_VOLUME_UNIT = re.compile(
    _NUMBER + r"\s*(?:l|ltr|liter|litre)\b(?!\s*/)", re.IGNORECASE
)
_CURRENCY_AFTER = re.compile(
    _NUMBER + r"\s*(?:EUR|€)(?!\s*/)", re.IGNORECASE
)
_CURRENCY_BEFORE = re.compile(r"(?:EUR|€)\s*" + _NUMBER, re.IGNORECASE)
_CURRENCY_ANY = re.compile(r"EUR|€", re.IGNORECASE)

_DATE_TOKEN = re.compile(
    r"\b(?:\d{4}-\d{1,2}-\d{1,2}|\d{1,2}[./\-]\d{1,2}[./\-](?:\d{4}|\d{2}))\b"
)
_DATE_LABEL = re.compile(r"\b(?:datum|date)\b", re.IGNORECASE)
_TIME_TOKEN = re.compile(r"\b\d{1,2}:\d{2}(?::\d{2})?\b")

_TOTAL_LABEL = re.compile(
    r"\b(?:summe|gesamt(?:betrag)?|total|betrag|zu\s+zahlen|amount|ec[\s-]?karte|kartenzahlung)\b",
    re.IGNORECASE,
)
_VOLUME_LABEL = re.compile(
    r"\b(?:menge|liter|litre|volume|abgabe|abgabemenge)\b(?!\s*/)", re.IGNORECASE
)
_UNIT_PRICE_LABEL = re.compile(
    r"(?:preis\s*/\s*l|literpreis|grundpreis|price\s*/\s*l|einzelpreis)",
    re.IGNORECASE,
)
_PRODUCT_LABEL = re.compile(
    r"\b(?:diesel|super|benzin|e\s?10|e\s?5|plus|ultimate|v-power|normal|premium)\b",
    re.IGNORECASE,
)
_TAX_LABEL = re.compile(r"\b(?:mwst|ust|netto|steuer|tax|vat)\b", re.IGNORECASE)

_KIND_BY_FIELD = {
    FieldName.LITERS: NumberKind.VOLUME,
    FieldName.TOTAL_COST: NumberKind.MONEY,
    FieldName.PRICE_PER_LITER: NumberKind.UNIT_PRICE,
}


def _candidate(
    field: FieldName,
    raw: str,
    strength: ContextStrength,
    line_no: int,
    config: ExtractionConfig,
) -> FieldCandidate | None:
    parsed = parse_number(raw, _KIND_BY_FIELD[field])
    if parsed is None:
        return None
    value, normalized = parsed
    return FieldCandidate(
        field=field,
        raw_text=raw,
        value=value,
        confidence=config.base_confidences[strength.value],
        strength=strength,
        line_no=line_no,
        normalized=normalized,
    )


def _strip_noise(line: str) -> str:
    """Remove dates and times so their digits are not read as amounts."""
    return _TIME_TOKEN.sub(" ", _DATE_TOKEN.sub(" ", line))


def _has_volume_label(line: str) -> bool:
    """Volume keyword outside a per-volume marker such as "EUR/Liter"."""
    return bool(_VOLUME_LABEL.search(_PER_VOLUME_RE.sub(" ", line)))


def _neighbours(lines: list[str], index: int) -> list[str]:
    return [lines[i] for i in (index - 1, index + 1) if 0 <= i < len(lines)]


def _prices_in(line: str) -> list[str]:
    return [m.group(1) for m in _PRICE_BEFORE_PER_VOLUME.finditer(line)]


def _without_prices(line: str) -> str:
    return _PRICE_BEFORE_PER_VOLUME.sub(" ", line)


# ── date ──────────────────────────────────────────────────────────


def _date_candidates(
    lines: list[str], config: ExtractionConfig, labeled: bool
) -> list[FieldCandidate]:
    strength = ContextStrength.LABELED if labeled else ContextStrength.ISOLATED
    confidence = (
        config.date_labeled_confidence if labeled else config.date_isolated_confidence
    )
    results: list[FieldCandidate] = []
    for i, line in enumerate(lines):
        if bool(_DATE_LABEL.search(line)) != labeled:
            continue
        for match in _DATE_TOKEN.finditer(line):
            iso = parse_date(match.group(0))
            if iso is None:
                continue
            results.append(
                FieldCandidate(
                    field=FieldName.DATE,
                    raw_text=match.group(0),
                    value=iso,
                    confidence=confidence,
                    strength=strength,
                    line_no=i,
                )
            )
    return results


def date_labeled(lines: list[str], config: ExtractionConfig) -> list[FieldCandidate]:
    """Dates on a line carrying a date keyword."""
    return _date_candidates(lines, config, labeled=True)


def date_isolated(lines: list[str], config: ExtractionConfig) -> list[FieldCandidate]:
    """Any valid date on a line without a date keyword."""
    return _date_candidates(lines, config, labeled=False)


# ── liters ────────────────────────────────────────────────────────


def _volume_numbers(line: str) -> list[str]:
    """Two-decimal numbers on a line that are neither prices nor amounts."""
    cleaned = _CURRENCY_AFTER.sub(" ", _without_prices(_strip_noise(line)))
    return [
        m.group(1)
        for m in _SEPARATED_RE.finditer(cleaned)
        if _MONEY_SHAPE.match(m.group(1))
    ]


def liters_labeled(lines: list[str], config: ExtractionConfig) -> list[FieldCandidate]:
    """Numbers on a line with a volume keyword such as "Menge" or "Liter"."""
    results: list[FieldCandidate] = []
    for i, line in enumerate(lines):
        if not _has_volume_label(line):
            continue
        for raw in _volume_numbers(line):
            cand = _candidate(FieldName.LITERS, raw, ContextStrength.LABELED, i, config)
            if cand:
                results.append(cand)
    return results


def liters_label_nearby(
    lines: list[str], config: ExtractionConfig
) -> list[FieldCandidate]:
    """Numbers on a line next to a volume keyword line."""
    results: list[FieldCandidate] = []
    for i, line in enumerate(lines):
        if _has_volume_label(line) or _CURRENCY_ANY.search(line):
            continue
        if not any(_has_volume_label(n) for n in _neighbours(lines, i)):
            continue
        for raw in _volume_numbers(line):
            cand = _candidate(
                FieldName.LITERS, raw, ContextStrength.LABEL_NEARBY, i, config
            )
            if cand:
                results.append(cand)
    return results


def liters_unit(lines: list[str], config: ExtractionConfig) -> list[FieldCandidate]:
    """Numbers directly followed by a volume unit ("49,04 l")."""
    results: list[FieldCandidate] = []
    for i, line in enumerate(lines):
        for match in _VOLUME_UNIT.finditer(_strip_noise(line)):
            cand = _candidate(
                FieldName.LITERS, match.group(1), ContextStrength.UNIT, i, config
            )
            if cand:
                results.append(cand)
    return results


def _product_line_pairs(lines: list[str]) -> list[tuple[int, str, str]]:
    """Find ``(line_no, volume_raw, price_raw)`` on product lines.

    A fuel product line usually carries both the dispensed volume (two
    decimals) and the unit price (three decimals, one integer digit).
    """
    pairs: list[tuple[int, str, str]] = []
    for i, line in enumerate(lines):
        if _TAX_LABEL.search(line):
            continue
        numbers = [m.group(1) for m in _SEPARATED_RE.finditer(_strip_noise(line))]
        if len(numbers) < 2:
            continue
        prices = [n for n in numbers if _UNIT_PRICE_SHAPE.match(n)]
        volumes = [n for n in numbers if _MONEY_SHAPE.match(n)]
        if not prices or not volumes:
            continue
        if not _PRODUCT_LABEL.search(line) and len(numbers) < 3:
            continue
        pairs.append((i, volumes[0], prices[0]))
    return pairs


def liters_structure(
    lines: list[str], config: ExtractionConfig
) -> list[FieldCandidate]:
    """Volume taken from a product line carrying both volume and unit price."""
    results: list[FieldCandidate] = []
    for i, volume, _ in _product_line_pairs(lines):
        cand = _candidate(FieldName.LITERS, volume, ContextStrength.STRUCTURE, i, config)
        if cand:
            results.append(cand)
    return results


def liters_isolated(lines: list[str], config: ExtractionConfig) -> list[FieldCandidate]:
    """Two-decimal numbers on lines without any currency marker."""
    results: list[FieldCandidate] = []
    for i, line in enumerate(lines):
        if _CURRENCY_ANY.search(line) or _TAX_LABEL.search(line):
            continue
        for raw in _volume_numbers(line):
            cand = _candidate(FieldName.LITERS, raw, ContextStrength.ISOLATED, i, config)
            if cand:
                results.append(cand)
    return results


def _brute_force(
    field: FieldName, lines: list[str], config: ExtractionConfig
) -> list[FieldCandidate]:
    shape = _UNIT_PRICE_SHAPE if field is FieldName.PRICE_PER_LITER else _MONEY_SHAPE
    results: list[FieldCandidate] = []
    for i, line in enumerate(lines):
        for match in _SEPARATED_RE.finditer(_strip_noise(line)):
            if not shape.match(match.group(1)):
                continue
            cand = _candidate(
                field, match.group(1), ContextStrength.BRUTE_FORCE, i, config
            )
            if cand:
                results.append(cand)
    return results


def liters_brute_force(
    lines: list[str], config: ExtractionConfig
) -> list[FieldCandidate]:
    """Any two-decimal number; ranked by closeness to a typical fill."""
    return _brute_force(FieldName.LITERS, lines, config)


# ── total cost ────────────────────────────────────────────────────


def _amount_numbers(line: str) -> list[str]:
    """Numbers on a line that are neither unit prices nor volumes."""
    cleaned = _VOLUME_UNIT.sub(" ", _without_prices(_strip_noise(line)))
    return [m.group(1) for m in _NUMBER_RE.finditer(cleaned)]


def total_labeled(lines: list[str], config: ExtractionConfig) -> list[FieldCandidate]:
    """Amounts on a line with a total keyword such as "Summe" or "Total"."""
    results: list[FieldCandidate] = []
    for i, line in enumerate(lines):
        if not _TOTAL_LABEL.search(line) or _TAX_LABEL.search(line):
            continue
        for raw in _amount_numbers(line):
            if not (_MONEY_SHAPE.match(raw) or (raw.isdigit() and len(raw) >= 3)):
                continue
            cand = _candidate(
                FieldName.TOTAL_COST, raw, ContextStrength.LABELED, i, config
            )
            if cand:
                results.append(cand)
    return results


def total_label_nearby(
    lines: list[str], config: ExtractionConfig
) -> list[FieldCandidate]:
    """Two-decimal amounts on a line adjacent to a total keyword line."""
    product_lines = {i for i, _, _ in _product_line_pairs(lines)}
    results: list[FieldCandidate] = []
    for i, line in enumerate(lines):
        if i in product_lines or _TOTAL_LABEL.search(line) or _TAX_LABEL.search(line):
            continue
        if not any(
            _TOTAL_LABEL.search(n) and not _TAX_LABEL.search(n)
            for n in _neighbours(lines, i)
        ):
            continue
        for raw in _amount_numbers(line):
            if not _MONEY_SHAPE.match(raw):
                continue
            cand = _candidate(
                FieldName.TOTAL_COST, raw, ContextStrength.LABEL_NEARBY, i, config
            )
            if cand:
                results.append(cand)
    return results


def total_unit(lines: list[str], config: ExtractionConfig) -> list[FieldCandidate]:
    """Amounts next to a currency marker ("84,30 EUR", "EUR 84,30")."""
    results: list[FieldCandidate] = []
    for i, line in enumerate(lines):
        if _TAX_LABEL.search(line):
            continue
        cleaned = _strip_noise(line)
        raws = [m.group(1) for m in _CURRENCY_AFTER.finditer(cleaned)]
        raws += [m.group(1) for m in _CURRENCY_BEFORE.finditer(cleaned)]
        for raw in raws:
            if _UNIT_PRICE_SHAPE.match(raw):
                continue
            cand = _candidate(
                FieldName.TOTAL_COST, raw, ContextStrength.UNIT, i, config
            )
            if cand:
                results.append(cand)
    return results


def total_isolated(lines: list[str], config: ExtractionConfig) -> list[FieldCandidate]:
    """Two-decimal amounts anywhere outside tax lines and product lines."""
    product_lines = {i for i, _, _ in _product_line_pairs(lines)}
    results: list[FieldCandidate] = []
    for i, line in enumerate(lines):
        if i in product_lines or _TAX_LABEL.search(line):
            continue
        for raw in _amount_numbers(line):
            if not _MONEY_SHAPE.match(raw):
                continue
            cand = _candidate(
                FieldName.TOTAL_COST, raw, ContextStrength.ISOLATED, i, config
            )
            if cand:
                results.append(cand)
    return results


def total_brute_force(
    lines: list[str], config: ExtractionConfig
) -> list[FieldCandidate]:
    """Any two-decimal amount; last resort."""
    return _brute_force(FieldName.TOTAL_COST, lines, config)


# ── price per liter ───────────────────────────────────────────────


def price_labeled(lines: list[str], config: ExtractionConfig) -> list[FieldCandidate]:
    """Numbers before a per-volume marker, or on a unit price keyword line."""
    results: list[FieldCandidate] = []
    for i, line in enumerate(lines):
        raws = _prices_in(line)
        if not raws and (_UNIT_PRICE_LABEL.search(line) or _PER_VOLUME_RE.search(line)):
            raws = [
                m.group(1)
                for m in _SEPARATED_RE.finditer(_strip_noise(line))
                if _UNIT_PRICE_SHAPE.match(m.group(1))
            ]
        for raw in raws:
            cand = _candidate(
                FieldName.PRICE_PER_LITER, raw, ContextStrength.LABELED, i, config
            )
            if cand:
                results.append(cand)
    return results


def price_label_nearby(
    lines: list[str], config: ExtractionConfig
) -> list[FieldCandidate]:
    """Unit-price shaped numbers next to a per-volume or unit price label line."""
    results: list[FieldCandidate] = []
    for i, line in enumerate(lines):
        if _PER_VOLUME_RE.search(line) or _UNIT_PRICE_LABEL.search(line):
            continue
        if not any(
            _PER_VOLUME_RE.search(n) or _UNIT_PRICE_LABEL.search(n)
            for n in _neighbours(lines, i)
        ):
            continue
        for match in _SEPARATED_RE.finditer(_strip_noise(line)):
            if not _UNIT_PRICE_SHAPE.match(match.group(1)):
                continue
            cand = _candidate(
                FieldName.PRICE_PER_LITER,
                match.group(1),
                ContextStrength.LABEL_NEARBY,
                i,
                config,
            )
            if cand:
                results.append(cand)
    return results


def price_structure(lines: list[str], config: ExtractionConfig) -> list[FieldCandidate]:
    """Unit price taken from a product line carrying both volume and price."""
    results: list[FieldCandidate] = []
    for i, _, price in _product_line_pairs(lines):
        cand = _candidate(
            FieldName.PRICE_PER_LITER, price, ContextStrength.STRUCTURE, i, config
        )
        if cand:
            results.append(cand)
    return results


def price_isolated(lines: list[str], config: ExtractionConfig) -> list[FieldCandidate]:
    """Numbers shaped like a unit price (one digit, three decimals)."""
    results: list[FieldCandidate] = []
    for i, line in enumerate(lines):
        for match in _SEPARATED_RE.finditer(_strip_noise(line)):
            if not _UNIT_PRICE_SHAPE.match(match.group(1)):
                continue
            cand = _candidate(
                FieldName.PRICE_PER_LITER,
                match.group(1),
                ContextStrength.ISOLATED,
                i,
                config,
            )
            if cand:
                results.append(cand)
    return results


def price_brute_force(
    lines: list[str], config: ExtractionConfig
) -> list[FieldCandidate]:
    """Any unit-price shaped number; ranked by closeness to a typical price."""
    return _brute_force(FieldName.PRICE_PER_LITER, lines, config)


STRATEGIES: dict[FieldName, list[Strategy]] = {
    FieldName.DATE: [date_labeled, date_isolated],
    FieldName.LITERS: [
        liters_labeled,
        liters_unit,
        liters_label_nearby,
        liters_structure,
        liters_isolated,
        liters_brute_force,
    ],
    FieldName.TOTAL_COST: [
        total_labeled,
        total_unit,
        total_label_nearby,
        total_isolated,
        total_brute_force,
    ],
    FieldName.PRICE_PER_LITER: [
        price_labeled,
        price_label_nearby,
        price_structure,
        price_isolated,
        price_brute_force,
    ],
}
