"""Currency, date and text normalizers for raw CSV cells.

All functions are pure and never raise on bad input: currency and date
parsers return ``None``, the sanitizer returns an empty string.

Rounding: amounts are converted with ``decimal.Decimal`` and rounded to
whole cents half away from zero (``ROUND_HALF_UP``), so ``"0.005"`` becomes
1 cent and ``"-0.005"`` becomes -1 cent.
"""

from __future__ import annotations

import re
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum

MAX_DESCRIPTION_LENGTH = 500


class DateFormat(str, Enum):
    """Date layouts a mapping may declare."""

    MDY_SLASH = "MM/dd/yyyy"
    DMY_SLASH = "dd/MM/yyyy"
    ISO = "yyyy-MM-dd"
    MDY_DASH = "MM-dd-yyyy"

    @property
    def strptime_format(self) -> str:
        return _STRPTIME[self]

    @property
    def pattern(self) -> re.Pattern:
        return _SHAPES[self]


_STRPTIME = {
    DateFormat.MDY_SLASH: "%m/%d/%Y",
    DateFormat.DMY_SLASH: "%d/%m/%Y",
    DateFormat.ISO: "%Y-%m-%d",
    DateFormat.MDY_DASH: "%m-%d-%Y",
}

# strptime accepts short years for %Y; require four digits.
_SHAPES = {
    DateFormat.MDY_SLASH: re.compile(r"\d{1,2}/\d{1,2}/\d{4}"),
    DateFormat.DMY_SLASH: re.compile(r"\d{1,2}/\d{1,2}/\d{4}"),
    DateFormat.ISO: re.compile(r"\d{4}-\d{1,2}-\d{1,2}"),
    DateFormat.MDY_DASH: re.compile(r"\d{1,2}-\d{1,2}-\d{4}"),
}

_CENT = Decimal("0.01")
# Digits with an optional sign and decimal point; no exponents or "_" separators.
_PLAIN_NUMBER = re.compile(r"[+-]?(?:\d+(?:\.\d*)?|\.\d+)", re.ASCII)


def clean_currency(raw: str | None) -> int | None:
    """Convert a currency string to integer cents.

    Examples:
        "$1,234.56" -> 123456
        "($50.00)"  -> -5000   (parentheses mean negative)
        "-$25.99"   -> -2599
        "1,234"     -> 123400  (no decimal point means whole units)
        "invalid"   -> None
    """
    if not isinstance(raw, str):
        return None

    cleaned = raw.strip()
    negative_parens = len(cleaned) >= 2 and cleaned.startswith("(") and cleaned.endswith(")")
    if negative_parens:
        cleaned = cleaned[1:-1]

    cleaned = cleaned.replace("$", "").replace(",", "").strip()
    if not _PLAIN_NUMBER.fullmatch(cleaned):
        return None

    try:
        value = Decimal(cleaned)
        cents = int(value.quantize(_CENT, rounding=ROUND_HALF_UP).scaleb(2))
    except InvalidOperation:
        return None
    if negative_parens:
        return -abs(cents)
    return cents


def parse_date(raw: str | None, date_format: DateFormat | str) -> str | None:
    """Parse ``raw`` with ``date_format`` and return ``YYYY-MM-DD``.

    Impossible calendar dates (month 13, day 32, Feb 30) return ``None``.
    """
    if not isinstance(raw, str):
        return None
    try:
        fmt = DateFormat(date_format)
    except ValueError:
        return None

    s = raw.strip()
    if not fmt.pattern.fullmatch(s):
        return None
    try:
        parsed = datetime.strptime(s, fmt.strptime_format)
    except ValueError:
        return None
    return parsed.strftime("%Y-%m-%d")


_SCRIPT_BLOCK = re.compile(r"<script\b[^>]*>[\s\S]*?</script\s*>", re.IGNORECASE)
_SCRIPT_OPEN = re.compile(r"<script\b[^>]*>", re.IGNORECASE)
_STYLE_BLOCK = re.compile(r"<style\b[^>]*>[\s\S]*?</style\s*>", re.IGNORECASE)
_STYLE_OPEN = re.compile(r"<style\b[^>]*>", re.IGNORECASE)
_ANY_TAG = re.compile(r"<[^>]*>")
_TRAILING_TAG = re.compile(r"<[^<]*$")
_PROTOCOLS = re.compile(r"\b(?:javascript|data|vbscript):", re.IGNORECASE)
# Keeps \t, \n and \r.
_CONTROL = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")


def _until_stable(text: str, *patterns: re.Pattern) -> str:
    while True:
        before = len(text)
        for pattern in patterns:
            text = pattern.sub("", text)
        if len(text) == before:
            return text


def sanitize_text(text: str | None, max_length: int = MAX_DESCRIPTION_LENGTH) -> str:
    """Reduce a CSV cell to plain text.

    Script and style blocks are removed with their content, other tags are
    removed but their text kept. Passes repeat until nothing changes so
    nested or malformed tags such as ``<scr<script>ipt>`` cannot survive.
    """
    if not isinstance(text, str) or not text:
        return ""

    cleaned = _until_stable(text, _SCRIPT_BLOCK, _SCRIPT_OPEN)
    cleaned = _until_stable(cleaned, _STYLE_BLOCK, _STYLE_OPEN)
    cleaned = _until_stable(cleaned, _ANY_TAG, _TRAILING_TAG)
    cleaned = cleaned.replace("<", "").replace(">", "")
    cleaned = _PROTOCOLS.sub("", cleaned)
    cleaned = _CONTROL.sub("", cleaned)
    cleaned = cleaned.strip()
    return cleaned[:max_length]
