"""Locale-aware number and date parsing for receipt text.

The same digit string means different things depending on the field:
``"1.719"`` is 1719 as an amount but 1.719 as a unit price. Money and
volume values carry two decimals and may use a dot as thousands
separator; unit prices carry three or four decimals and never group.
"""

import re
from datetime import date
from enum import Enum

from tankscan.utils.logger import get_logger

logger = get_logger(__name__)


class NumberKind(str, Enum):
    """Numeric interpretation used when parsing a token."""

    MONEY = "money"
    VOLUME = "volume"
    UNIT_PRICE = "unit_price"


_THOUSANDS_DOT = re.compile(r"\.(?=\d{3}(?:[.,]|$))")
_DIGITS = re.compile(r"^\d+$")
_NUMBER_TOKEN = re.compile(r"^\d+(?:[.,]\d+)*$")

_DATE_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"\b(\d{4})-(\d{1,2})-(\d{1,2})\b"), "ymd"),
    (re.compile(r"\b(\d{1,2})[./\-](\d{1,2})[./\-](\d{4}|\d{2})\b"), "dmy"),
]


def parse_number(raw: str, kind: NumberKind) -> tuple[float, bool] | None:
    """Parse a numeric token for the given field kind.

    Args:
        raw: Token such as ``"49,04"``, ``"1.234,56"`` or ``"1719"``.
        kind: How to interpret separators and implied decimals.

    Returns:
        ``(value, normalized)`` where ``normalized`` is true when implied
        decimals were inserted into a bare digit string, or ``None`` if
        the token is not a number.
    """
    token = raw.strip().replace(" ", "")
    if not token or not _NUMBER_TOKEN.match(token):
        return None

    if _DIGITS.match(token):
        if len(token) < 3:
            return float(token), False
        if kind is NumberKind.UNIT_PRICE:
            return int(token) / 10 ** (len(token) - 1), True
        return int(token) / 100.0, True

    if kind is NumberKind.UNIT_PRICE:
        if token.count(".") + token.count(",") > 1:
            return None
        return float(token.replace(",", ".")), False

    cleaned = _THOUSANDS_DOT.sub("", token)
    if cleaned.count(",") + cleaned.count(".") > 1:
        # "1,234.56": comma grouping with a dot decimal.
        cleaned = cleaned.replace(",", "")
    cleaned = cleaned.replace(",", ".")
    if cleaned.count(".") > 1:
        return None
    return float(cleaned), False


def parse_date(raw: str) -> str | None:
    """Parse a receipt date into ISO ``YYYY-MM-DD``.

    Accepts ``dd.mm.yyyy``, ``dd.mm.yy``, ``dd/mm/yyyy``, ``dd-mm-yyyy``
    and ``yyyy-mm-dd``. Two-digit years are taken as 20xx.

    Returns:
        ISO date string, or ``None`` if nothing valid is found.
    """
    for pattern, order in _DATE_PATTERNS:
        match = pattern.search(raw)
        if not match:
            continue
        if order == "ymd":
            year, month, day = (int(g) for g in match.groups())
        else:
            day, month = int(match.group(1)), int(match.group(2))
            year_text = match.group(3)
            year = int(year_text) + (2000 if len(year_text) == 2 else 0)
        try:
            return date(year, month, day).isoformat()
        except ValueError:
            logger.debug("Rejected impossible date %r", match.group(0))
            continue
    return None
