"""Cell coercion: raw sheet values into the typed value their field class implies."""

from __future__ import annotations

import logging
import math
import numbers
import re
from datetime import datetime
from typing import Union

from order_lens.dates import format_datetime, parse_date
from order_lens.errors import CoercionError
from order_lens.fields import DATE, field_class, is_numeric_field

logger = logging.getLogger(__name__)

TypedValue = Union[datetime, float, int, str, None]

# Leading number after separator cleanup; trailing units ("đ", "VND", "kg") are ignored.
_LEADING_NUMBER_RE = re.compile(r"\s*[-+]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][-+]?\d+)?")


def is_blank(value: object) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    if isinstance(value, str) and not value.strip():
        return True
    # pandas.NA / NaT
    try:
        return bool(value != value)
    except TypeError:
        return True
    except ValueError:
        return False


def parse_amount(value: str) -> float | None:
    """
    Parse a vi-VN formatted amount: "." groups thousands, "," marks decimals.

    The leading number wins, so unit suffixes are dropped:
    "1.234,56" -> 1234.56, "150.000 đ" -> 150000.0, "2,5 kg" -> 2.5, "abc" -> None.
    """
    cleaned = value.strip().replace(".", "").replace(",", ".")
    match = _LEADING_NUMBER_RE.match(cleaned)
    if match is None:
        return None
    number = float(match.group(0))
    return number if math.isfinite(number) else None


def coerce_number(value: object, field: str, strict: bool = False) -> Union[int, float]:
    if is_blank(value):
        return 0
    if isinstance(value, bool):
        number = None
    elif isinstance(value, numbers.Integral):
        return int(value)
    elif isinstance(value, numbers.Real):
        number = float(value) if math.isfinite(value) else None
    elif isinstance(value, str):
        number = parse_amount(value)
    else:
        number = None

    if number is None:
        if strict:
            raise CoercionError(field, value, "a number")
        logger.warning("Column '%s': could not read %r as a number; using 0", field, value)
        return 0
    return number


def coerce_text(value: object) -> str:
    if is_blank(value) and not isinstance(value, str):
        return ""
    if isinstance(value, datetime):
        return format_datetime(value)
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def coerce_value(value: object, field: str, strict: bool = False) -> TypedValue:
    """
    Convert one raw cell for the given canonical field.

    Date fields give a datetime or None, numeric fields a number (0 when
    blank or unreadable, never NaN), everything else a string. With
    strict=True, non-blank values that would silently default raise
    CoercionError instead.
    """
    if field_class(field) == DATE:
        parsed = parse_date(value)
        if parsed is None and strict and not is_blank(value):
            raise CoercionError(field, value, "a date")
        return parsed
    if is_numeric_field(field):
        return coerce_number(value, field, strict=strict)
    return coerce_text(value)
