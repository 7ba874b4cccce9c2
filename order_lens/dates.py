"""
dates.py — date/time parsing for order sheets

Spreadsheet exports hand us dates in three shapes: native datetime cells,
numeric serial day counts, and locale-formatted strings. parse_date tries them
in a fixed order and never guesses: strings must match one of the explicit
patterns (day-first before month-first) or be valid ISO-8601.

Public API:
    parse_date(value)      -> datetime | None
    format_day(value)      -> "dd/MM/yyyy"
    format_month(value)    -> "MM/yyyy"
    format_week(value)     -> "ww/yyyy" (ISO week)
    format_datetime(value) -> "dd/MM/yyyy HH:mm:ss"
"""

from __future__ import annotations

import logging
import math
import numbers
import re
from datetime import date, datetime, timedelta
from typing import Optional

from order_lens.fields import UNKNOWN_LABEL

logger = logging.getLogger(__name__)

EXCEL_EPOCH = datetime(1899, 12, 30)
# Lotus 1-2-3 treated 1900 as a leap year; serials after it carry a phantom day.
LEAP_BUG_SERIAL = 59

_TIME = r"(?:\s+(\d{1,2}):(\d{1,2}):(\d{1,2}))"

# Each entry: label, regex, and the group indexes holding (day, month, year).
_DMY_DATETIME_RE = re.compile(rf"^(\d{{1,2}})/(\d{{1,2}})/(\d{{4}}){_TIME}$")
_DMY_RE = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")
_YMD_RE = re.compile(rf"^(\d{{4}})-(\d{{1,2}})-(\d{{1,2}}){_TIME}?$")
_MDY_RE = re.compile(rf"^(\d{{1,2}})/(\d{{1,2}})/(\d{{4}}){_TIME}?$")

_PATTERNS = (
    ("dd/MM/yyyy HH:mm:ss", _DMY_DATETIME_RE, (0, 1, 2)),
    ("dd/MM/yyyy", _DMY_RE, (0, 1, 2)),
    ("yyyy-MM-dd[ HH:mm:ss]", _YMD_RE, (2, 1, 0)),
    ("MM/dd/yyyy[ HH:mm:ss]", _MDY_RE, (1, 0, 2)),
)


def _is_missing(value: object) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, float) and math.isnan(value):
        return True
    # pandas.NaT compares unequal to itself and subclasses datetime
    if isinstance(value, datetime) and value != value:
        return True
    return False


def _build_checked(
    year: int,
    month: int,
    day: int,
    hour: int = 0,
    minute: int = 0,
    second: int = 0,
) -> Optional[datetime]:
    """Build a datetime only if every component survives unchanged."""
    try:
        result = datetime(year, month, day, hour, minute, second)
    except ValueError:
        return None
    if (result.year, result.month, result.day) != (year, month, day):
        return None
    return result


def _from_pattern(match: re.Match, order: tuple[int, int, int]) -> Optional[datetime]:
    groups = match.groups()
    day, month, year = (int(groups[idx]) for idx in order)
    time_parts = [int(part) for part in groups[3:6] if part is not None]
    return _build_checked(year, month, day, *time_parts)


def _from_serial(serial: float) -> Optional[datetime]:
    if serial > LEAP_BUG_SERIAL:
        serial -= 1
    try:
        whole_days = math.floor(serial)
        millis = round((serial - whole_days) * 86_400_000)
        return EXCEL_EPOCH + timedelta(days=whole_days, milliseconds=millis)
    except OverflowError:
        return None


def _from_iso(text: str) -> Optional[datetime]:
    candidate = text[:-1] + "+00:00" if text.endswith("Z") else text
    try:
        parsed = datetime.fromisoformat(candidate)
    except ValueError:
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed


def _from_text(text: str) -> Optional[datetime]:
    for name, pattern, order in _PATTERNS:
        match = pattern.match(text)
        if not match:
            continue
        parsed = _from_pattern(match, order)
        if parsed is not None:
            return parsed
        logger.debug("Date %r matched %s but failed validation", text, name)
    return _from_iso(text)


def parse_date(value: object) -> Optional[datetime]:
    """
    Parse a raw cell into a naive datetime.

    Resolution order:
      1. datetime / date values (pandas.Timestamp included) are returned as-is
      2. numbers are spreadsheet serial day counts anchored at 1899-12-30;
         serials past the phantom 1900-02-29 are shifted back one day
      3. strings try dd/MM/yyyy HH:mm:ss, dd/MM/yyyy, yyyy-MM-dd[ HH:mm:ss],
         MM/dd/yyyy[ HH:mm:ss], then ISO-8601

    Returns None (never epoch zero) when nothing matches.
    """
    if _is_missing(value):
        return None

    if isinstance(value, datetime):
        to_pydatetime = getattr(value, "to_pydatetime", None)
        return to_pydatetime() if to_pydatetime is not None else value

    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)

    parsed: Optional[datetime] = None
    if isinstance(value, numbers.Real) and not isinstance(value, bool):
        if value == 0:
            return None
        if math.isfinite(value):
            parsed = _from_serial(float(value))
    elif isinstance(value, str):
        parsed = _from_text(value.strip())

    if parsed is None:
        logger.warning("Could not parse date/time value: %r", value)
    return parsed


def format_day(value: Optional[datetime]) -> str:
    if not isinstance(value, datetime):
        return UNKNOWN_LABEL
    return f"{value.day:02d}/{value.month:02d}/{value.year}"


def format_month(value: Optional[datetime]) -> str:
    if not isinstance(value, datetime):
        return UNKNOWN_LABEL
    return f"{value.month:02d}/{value.year}"


def format_week(value: Optional[datetime]) -> str:
    if not isinstance(value, datetime):
        return UNKNOWN_LABEL
    iso_year, iso_week, _ = value.isocalendar()
    return f"{iso_week:02d}/{iso_year}"


def format_datetime(value: Optional[datetime]) -> str:
    if not isinstance(value, datetime):
        return ""
    return (
        f"{value.day:02d}/{value.month:02d}/{value.year} "
        f"{value.hour:02d}:{value.minute:02d}:{value.second:02d}"
    )


def day_from_label(label: str) -> Optional[datetime]:
    """Rebuild the date behind a dd/MM/yyyy label; None for the unknown label."""
    match = _DMY_RE.match(label)
    if not match:
        return None
    return _from_pattern(match, (0, 1, 2))


def month_from_label(label: str) -> Optional[datetime]:
    match = re.match(r"^(\d{1,2})/(\d{4})$", label)
    if not match:
        return None
    return _build_checked(int(match.group(2)), int(match.group(1)), 1)
