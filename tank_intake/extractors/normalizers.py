"""
Value normalizers, keyed by strategy name.

Each field in the catalog names one of these strategies. The catalog resolves
the name at import time through ``get_normalizer`` so a misspelled strategy
fails loudly instead of passing values through untouched.

A normalizer takes the raw captured text and returns the display value, or
None when the capture holds nothing usable. Exceptions propagate to the
caller, which treats them as a per-field extraction failure.
"""

import re
from typing import Callable, Dict, Optional

from ..utils.numbers import first_number, round_half_up, to_halfwidth

Normalizer = Callable[[str], Optional[str]]

_WHITESPACE_RE = re.compile(r"\s+")
_AREA_UNIT_RE = re.compile(r"(㎡|m2|m²|平米|平方メートル)", re.IGNORECASE)
_FRACTION_RE = re.compile(r"(\d+(?:\.\d+)?)\s*/\s*(\d+(?:\.\d+)?)")
_ABOVE_GROUND_RE = re.compile(r"地上\s*(\d+)\s*階")
_BELOW_GROUND_RE = re.compile(r"地下\s*(\d+)\s*階")
_SEISMIC_RE = re.compile(r"(?:L|レベル)\s*([12])", re.IGNORECASE)
_SEISMIC_DIGIT_RE = re.compile(r"\s*([12])\s*")
_LIST_SPLIT_RE = re.compile(r"[,、，;；/／\n]+")
_TRAILING_PUNCT = "。、,，.;；"


def normalize_text(raw: str) -> Optional[str]:
    """Trim, collapse whitespace and drop trailing punctuation."""
    value = _WHITESPACE_RE.sub(" ", raw).strip().rstrip(_TRAILING_PUNCT).strip()
    return value or None


def normalize_number(raw: str) -> Optional[str]:
    """Strip thousands separators: '1,000' -> '1000'."""
    return first_number(raw)


def normalize_area(raw: str) -> Optional[str]:
    """'5,000 m2' -> '5000㎡'."""
    number = first_number(_AREA_UNIT_RE.sub("", to_halfwidth(raw)))
    if number is None:
        return None
    return f"{number}㎡"


def normalize_ratio(raw: str) -> Optional[str]:
    """
    Percent ratios: '6/10' -> '60%', '60％' -> '60%'.

    Raises:
        ZeroDivisionError: fraction with a zero denominator
    """
    text = to_halfwidth(raw).replace(",", "")
    fraction = _FRACTION_RE.search(text)
    if fraction:
        numerator = float(fraction.group(1))
        denominator = float(fraction.group(2))
        if denominator == 0:
            raise ZeroDivisionError(f"ratio denominator is zero in {raw!r}")
        return f"{round_half_up(numerator / denominator * 100)}%"

    number = first_number(text)
    if number is None:
        return None
    return f"{number}%"


def normalize_floors(raw: str) -> Optional[str]:
    """'地上10階 地下2階' -> '地上10階/地下2階', '10階建' -> '地上10階'."""
    text = to_halfwidth(raw)
    above = _ABOVE_GROUND_RE.search(text)
    below = _BELOW_GROUND_RE.search(text)

    if above:
        above_count = int(above.group(1))
    else:
        number = first_number(_BELOW_GROUND_RE.sub("", text))
        if number is None:
            return None
        above_count = int(float(number))

    below_count = int(below.group(1)) if below else 0
    if below_count > 0:
        return f"地上{above_count}階/地下{below_count}階"
    return f"地上{above_count}階"


def normalize_seismic_level(raw: str) -> Optional[str]:
    """'レベル２' / 'l2' / 'L2' / '2' -> 'L2'."""
    text = to_halfwidth(raw)
    match = _SEISMIC_RE.search(text) or _SEISMIC_DIGIT_RE.fullmatch(text)
    if not match:
        return None
    return f"L{match.group(1)}"


def normalize_list(raw: str) -> Optional[str]:
    """'常時、地震時／風荷重時' -> '常時, 地震時, 風荷重時'."""
    items = [normalize_text(part) for part in _LIST_SPLIT_RE.split(raw)]
    items = [item for item in items if item]
    if not items:
        return None
    return ", ".join(items)


NORMALIZERS: Dict[str, Normalizer] = {
    "text": normalize_text,
    "number": normalize_number,
    "area": normalize_area,
    "ratio": normalize_ratio,
    "floors": normalize_floors,
    "seismic_level": normalize_seismic_level,
    "list": normalize_list,
}


def get_normalizer(name: str) -> Normalizer:
    """
    Resolve a normalizer strategy by name.

    Raises:
        KeyError: unknown strategy name
    """
    try:
        return NORMALIZERS[name]
    except KeyError:
        raise KeyError(f"Unknown normalizer '{name}'. Available: {sorted(NORMALIZERS)}") from None
