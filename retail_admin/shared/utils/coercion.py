"""
Cell coercion helpers
Turn raw spreadsheet cells (str / int / float / datetime / NaN) into clean values.
"""
import math
import re
from datetime import date, datetime, timezone
from typing import Any

import numpy as np
import pandas as pd

_NON_NUMERIC_CHARS = re.compile(r"[^\d.-]")
_FLOAT_PREFIX = re.compile(r"^[-+]?(\d+\.?\d*|\.\d+)")
_DOTTED_DATE = re.compile(r"^(\d{2})\.(\d{2})\.(\d{4})$")
_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def is_blank(value: Any) -> bool:
    """None, NaN/NaT and whitespace-only strings count as blank."""
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def safe_string(value: Any) -> str:
    """
    Stringify a cell and trim it.

    Excel hands back whole numbers as floats (``400001.0``); those render
    without the trailing ``.0`` so codes and pincodes survive the round trip.
    """
    if is_blank(value):
        return ""
    if isinstance(value, (bool, np.bool_)):
        return "true" if value else "false"
    if isinstance(value, (float, np.floating)) and float(value).is_integer():
        return str(int(value))
    if isinstance(value, np.integer):
        return str(int(value))
    return str(value).strip()


def parse_loose_float(value: Any) -> float:
    """
    Parse a numeric cell the forgiving way.

    Everything except digits, ``.`` and ``-`` is stripped first (so ``"₹1,250"``
    reads as 1250). An empty remainder counts as 0; a remainder with no leading
    number (``"-"``) is NaN. Otherwise the longest numeric prefix wins, so
    ``"1.2.3"`` reads as 1.2.
    """
    if isinstance(value, (int, float, np.integer, np.floating)) and not isinstance(value, bool):
        if math.isnan(float(value)):
            return 0.0
        return float(value)

    cleaned = _NON_NUMERIC_CHARS.sub("", safe_string(value))
    if not cleaned:
        return 0.0
    match = _FLOAT_PREFIX.match(cleaned)
    if not match:
        return float("nan")
    return float(match.group(0))


def _to_iso_z(ts: pd.Timestamp) -> str:
    if ts.tzinfo is not None:
        ts = ts.tz_convert(timezone.utc).tz_localize(None)
    return ts.strftime("%Y-%m-%dT%H:%M:%S.") + f"{ts.microsecond // 1000:03d}Z"


def parse_sale_date(value: Any) -> str:
    """
    Normalize a sale date cell to ``YYYY-MM-DDTHH:MM:SS.mmmZ``.

    Args:
        value: ``DD.MM.YYYY`` / ``YYYY-MM-DD`` text, a datetime-like cell, or
            anything ``pd.to_datetime`` understands.

    Returns:
        ISO string, or ``""`` when the cell is empty.

    Raises:
        ValueError: the cell is not a recognizable date.
    """
    if is_blank(value):
        return ""
    if isinstance(value, (datetime, pd.Timestamp)):
        return _to_iso_z(pd.Timestamp(value))
    if isinstance(value, date):
        return _to_iso_z(pd.Timestamp(value.year, value.month, value.day))

    text = safe_string(value)
    dotted = _DOTTED_DATE.match(text)
    try:
        if dotted:
            dd, mm, yyyy = dotted.groups()
            return _to_iso_z(pd.Timestamp(year=int(yyyy), month=int(mm), day=int(dd)))
        if _ISO_DATE.match(text):
            return _to_iso_z(pd.Timestamp(text))
        parsed = pd.to_datetime(text)
    except (ValueError, OverflowError):
        raise ValueError(f"Invalid date format: {text}") from None
    if pd.isna(parsed):
        raise ValueError(f"Invalid date format: {text}")
    return _to_iso_z(parsed)


def is_non_negative_number(value: Any) -> bool:
    try:
        number = float(safe_string(value))
    except ValueError:
        return False
    return not math.isnan(number) and number >= 0
