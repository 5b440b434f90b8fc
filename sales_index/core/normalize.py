"""
Field normalization for accounting-system exports.

Every function here is pure and idempotent: the same raw value always
normalizes to the same result, and bad input degrades to an empty value
(or zero, or None) instead of raising.
"""

import math
import re
from datetime import date
from typing import Any, Mapping

# MM/DD/YYYY, one or two digit month/day
_US_DATE_RE = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")

# Thousands separators, currency symbols and stray whitespace
_AMOUNT_NOISE_RE = re.compile(r"[,\s$€£¥]")

# Characters that cannot appear in a document id
_ILLEGAL_KEY_CHARS_RE = re.compile(r"[/\\]")


def clean_str(value: Any) -> str:
    """Stringify and trim; None becomes the empty string."""
    if value is None:
        return ""
    return str(value).strip()


def lookup_ci(row: Mapping[str, Any], name: str) -> Any:
    """
    Case-insensitive field access.

    An exact key match wins; otherwise the first key equal to ``name``
    ignoring case and surrounding whitespace is used.

    Args:
        row: Source record
        name: Column name

    Returns:
        The raw value, or None when no such column exists
    """
    if not row:
        return None
    if name in row:
        return row[name]

    wanted = name.strip().lower()
    for key, value in row.items():
        if str(key).strip().lower() == wanted:
            return value
    return None


def parse_amount(raw: Any) -> float:
    """
    Parse a locale-formatted amount.

    Strips thousands separators and currency symbols. Anything that is not a
    finite number yields 0.0.

    Examples:
        >>> parse_amount("$1,234.50")
        1234.5
        >>> parse_amount("n/a")
        0.0
    """
    if isinstance(raw, bool):
        return 0.0
    if isinstance(raw, (int, float)):
        return float(raw) if math.isfinite(raw) else 0.0

    text = _AMOUNT_NOISE_RE.sub("", clean_str(raw))
    if not text:
        return 0.0
    try:
        value = float(text)
    except ValueError:
        return 0.0
    return value if math.isfinite(value) else 0.0


def parse_fixed_date(raw: Any) -> date | None:
    """
    Parse an ``MM/DD/YYYY`` date.

    Any other shape, or an impossible calendar date, yields None so the
    caller decides whether to skip the row.
    """
    match = _US_DATE_RE.match(clean_str(raw))
    if not match:
        return None

    month, day, year = (int(part) for part in match.groups())
    if not month or not day or not year:
        return None
    try:
        return date(year, month, day)
    except ValueError:
        return None


def pad_identifier(raw: Any, width: int = 4) -> str:
    """
    Zero-pad a numeric-looking identifier to ``width`` characters.

    Used for salesperson codes so "7" and "0007" compare equal. Identifiers
    already at least ``width`` long, and non-numeric identifiers, are
    returned trimmed but otherwise unchanged.
    """
    text = clean_str(raw)
    if not text or not text.isdigit():
        return text
    return text.zfill(width)


def sanitize_key(raw: Any) -> str:
    """
    Make a value safe to use as a document id.

    Path separators become "-". Not injective: "A/B" and "A-B" map to the
    same id.
    """
    return _ILLEGAL_KEY_CHARS_RE.sub("-", clean_str(raw))


def sanitize_row(row: Mapping[str, Any]) -> dict[str, Any]:
    """
    Copy a source record into a storable map.

    Empty column names are dropped and dots in names become underscores.
    """
    out: dict[str, Any] = {}
    for key, value in (row or {}).items():
        name = clean_str(key)
        if not name:
            continue
        out[name.replace(".", "_")] = value
    return out


def parse_flag(raw: Any) -> bool:
    """Y/YES/TRUE/T/1 (any case) are true, everything else false."""
    return clean_str(raw).upper() in {"Y", "YES", "TRUE", "T", "1"}
