"""
Spreadsheet cell normalization.

Every function here is total: a malformed cell falls back to a default value
instead of raising, so one bad cell cannot abort a sheet.
"""

import json
import math
import re
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any, Optional

from dateutil import parser as date_parser
from openpyxl.utils.datetime import from_excel


WHITESPACE_RE = re.compile(r"\s+")
NON_NUMERIC_RE = re.compile(r"[^0-9.\-]")
# Longest numeric prefix; trailing "/-" or "." is ignored
LEADING_NUMBER_RE = re.compile(r"-?(?:\d+(?:\.\d*)?|\.\d+)")
LIST_SPLIT_RE = re.compile(r"[,;|\n]")
ISO_DATE_RE = re.compile(r"^\d{4}-\d{1,2}-\d{1,2}")
URL_RE = re.compile(r"https?://[^\s)\]>\"']+", re.IGNORECASE)

# "Rs." would otherwise leave its dot in front of the amount
CURRENCY_LABEL_RE = re.compile(r"\b(?:rs|inr)\b\.?", re.IGNORECASE)

# Indian magnitude words, largest first
MAGNITUDES = [
    (re.compile(r"\b(?:crores?|cr)\b", re.IGNORECASE), 10_000_000),
    (re.compile(r"\b(?:lakhs?|lacs?)\b", re.IGNORECASE), 100_000),
]

# Excel serial day numbers accepted as dates (2009-07-06 .. 9999-12-31)
EXCEL_SERIAL_MIN = 40000
EXCEL_SERIAL_MAX = 2958465


def is_blank(raw: Any) -> bool:
    """True for None and for strings that are empty after trimming."""
    if raw is None:
        return True
    if isinstance(raw, str):
        return not raw.strip()
    return False


def normalize_text(raw: Any, default: str = "") -> str:
    """
    Convert a cell to clean text.

    Trims and collapses internal whitespace. Integral floats (ids that Excel
    stored as numbers) render without a trailing ".0".

    Args:
        raw: Cell value of any type.
        default: Returned for None or empty text.
    """
    if raw is None:
        return default

    try:
        if isinstance(raw, float) and raw.is_integer():
            text = str(int(raw))
        elif isinstance(raw, datetime):
            text = raw.isoformat(sep=" ")
        else:
            text = str(raw)
    except (TypeError, ValueError):
        return default

    text = WHITESPACE_RE.sub(" ", text).strip()
    return text or default


def normalize_currency(raw: Any, scale: int = 1) -> int:
    """
    Parse a free-text monetary value into a non-negative integer.

    Keeps only digits, dots and minus signs, parses the leading number of
    what remains (so "50,000/-" reads as 50000), multiplies by ``scale`` and rounds to the nearest integer.

    Examples:
        "₹50,00,000.00" -> 5000000
        "Rs. 2.5 Cr"    -> 25000000
        "N/A"           -> 0

    Args:
        raw: Cell value.
        scale: Minor units per major unit (100 converts rupees to paise).

    Returns:
        Amount in the requested unit; 0 when unparsable or negative.
    """
    if raw is None or isinstance(raw, bool):
        return 0

    if isinstance(raw, (int, float, Decimal)):
        amount = float(raw)
    else:
        text = normalize_text(raw)
        if not text:
            return 0

        multiplier = 1
        for pattern, factor in MAGNITUDES:
            if pattern.search(text):
                multiplier = factor
                break

        text = CURRENCY_LABEL_RE.sub("", text)
        match = LEADING_NUMBER_RE.match(NON_NUMERIC_RE.sub("", text))
        if match is None:
            return 0
        amount = float(match.group()) * multiplier

    if not math.isfinite(amount) or amount <= 0:
        return 0

    return int(math.floor(amount * scale + 0.5))


def _naive(value: datetime) -> datetime:
    if value.tzinfo is not None:
        return value.astimezone().replace(tzinfo=None)
    return value


def _from_serial(number: float, default: Optional[datetime]) -> Optional[datetime]:
    if not EXCEL_SERIAL_MIN < number < EXCEL_SERIAL_MAX:
        return default
    try:
        converted = from_excel(number)
    except (ValueError, OverflowError, TypeError):
        return default
    if isinstance(converted, datetime):
        return converted
    return default


def normalize_date(
    raw: Any,
    default: Optional[datetime] = None,
    dayfirst: bool = True,
) -> Optional[datetime]:
    """
    Convert a cell to a naive datetime.

    Datetimes pass through, dates are promoted to midnight, Excel serial
    numbers (numeric or numeric text above 40000) are converted, and any other
    text is parsed with dateutil.

    Args:
        raw: Cell value.
        default: Returned when the value is blank or cannot be parsed.
        dayfirst: Read "03/04/2025" as 3 April.
    """
    if raw is None or isinstance(raw, bool):
        return default
    if isinstance(raw, datetime):
        return _naive(raw)
    if isinstance(raw, date):
        return datetime.combine(raw, time.min)
    if isinstance(raw, (int, float, Decimal)):
        return _from_serial(float(raw), default)

    text = normalize_text(raw)
    if not text:
        return default

    try:
        return _from_serial(float(text), default)
    except ValueError:
        pass

    # ISO dates are year-month-day regardless of dayfirst
    if ISO_DATE_RE.match(text):
        dayfirst = False

    try:
        parsed = date_parser.parse(text, dayfirst=dayfirst)
    except (ValueError, OverflowError, TypeError):
        return default
    return _naive(parsed)


def normalize_list(raw: Any) -> list[str]:
    """
    Convert a cell to an ordered list of non-empty strings.

    A JSON array is used as-is; anything else is split on commas,
    semicolons, pipes and newlines.
    """
    if raw is None:
        return []

    if isinstance(raw, (list, tuple)):
        items = list(raw)
    else:
        text = str(raw).strip()
        items = None
        if text.startswith("[") and text.endswith("]"):
            try:
                parsed = json.loads(text)
            except ValueError:
                parsed = None
            if isinstance(parsed, list):
                items = parsed
        if items is None:
            items = LIST_SPLIT_RE.split(text)

    return [token for token in (normalize_text(item) for item in items) if token]


def extract_url(text: Any) -> Optional[str]:
    """Return the first http(s) URL found in free text."""
    if not isinstance(text, str):
        return None
    match = URL_RE.search(text)
    if not match:
        return None
    return match.group(0).rstrip(".,;:")
