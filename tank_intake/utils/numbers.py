"""Numeric helpers shared by normalizers, progress evaluation and projections."""

import math
import re
import unicodedata
from typing import Optional

_NUMBER_RE = re.compile(r"-?\d+(?:\.\d+)?")


def round_half_up(value: float) -> int:
    """Round to the nearest integer, .5 always rounds up (66.5 -> 67)."""
    return int(math.floor(value + 0.5))


def to_halfwidth(text: str) -> str:
    """NFKC-normalize full-width digits, letters and symbols."""
    return unicodedata.normalize("NFKC", text)


def first_number(text: Optional[str]) -> Optional[str]:
    """Return the first decimal number in text with thousands separators removed."""
    if not text:
        return None
    cleaned = to_halfwidth(text).replace(",", "")
    match = _NUMBER_RE.search(cleaned)
    return match.group(0) if match else None


def parse_float(text: Optional[str]) -> Optional[float]:
    """
    Parse the first number in a display value.

    Examples:
        >>> parse_float("5,000㎡")
        5000.0
        >>> parse_float("60%")
        60.0
        >>> parse_float(None) is None
        True
    """
    number = first_number(text)
    if number is None:
        return None
    return float(number)
