"""
Scalar coercion rules shared by type detection, filtering, sorting and formatting.
"""

import math
import re
from datetime import date
from typing import Any, Optional, Union

import pandas as pd

_NUMBER_RE = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$")
_INTEGER_RE = re.compile(r"^[+-]?\d+$")
DATE_RE = re.compile(r"^(\d{4})[-/](\d{1,2})[-/](\d{1,2})")

Number = Union[int, float]


def is_missing(value: Any) -> bool:
    """None, or a float NaN carried over from pandas."""
    if value is None:
        return True
    return isinstance(value, float) and math.isnan(value)


def is_blank(value: Any) -> bool:
    """Missing, or text that is empty after stripping whitespace."""
    if is_missing(value):
        return True
    return isinstance(value, str) and not value.strip()


def is_boolean_text(value: Any) -> bool:
    if isinstance(value, bool):
        return True
    return isinstance(value, str) and value.strip().lower() in ("true", "false")


def parse_number(value: Any) -> Optional[Number]:
    """
    Return the finite number a value denotes, or None.

    Booleans are never numbers. Integral text such as "30" yields an int so that
    filled or coerced values round-trip through CSV without a trailing ".0".
    """
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return value if math.isfinite(value) else None
    if not isinstance(value, str):
        return None
    text = value.strip()
    if not _NUMBER_RE.match(text):
        return None
    if _INTEGER_RE.match(text):
        return int(text)
    number = float(text)
    return number if math.isfinite(number) else None


def parse_calendar_date(value: Any) -> Optional[date]:
    """Match a YYYY-M-D / YYYY/M/D prefix and validate it as a real calendar date."""
    if not isinstance(value, str):
        return None
    match = DATE_RE.match(value.strip())
    if not match:
        return None
    year, month, day = (int(part) for part in match.groups())
    try:
        return date(year, month, day)
    except ValueError:
        return None


def parse_timestamp(value: Any) -> Optional[pd.Timestamp]:
    """Parse a date-like value into a pandas Timestamp; None when unparseable."""
    if is_missing(value):
        return None
    if isinstance(value, str):
        value = value.strip().replace("/", "-")
    parsed = pd.to_datetime(value, errors="coerce")
    if pd.isna(parsed):
        return None
    return parsed


def as_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered == "true":
            return True
        if lowered == "false":
            return False
    return None


def to_text(value: Any) -> str:
    """
    Display/text form of a cell. Missing values become the empty string and
    integral floats drop their fraction, so 1 and 1.0 read the same.
    """
    if is_missing(value):
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)
