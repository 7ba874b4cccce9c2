"""
export.py — display renderings of canonical records for export collaborators

Dates become "dd/MM/yyyy" or "dd/MM/yyyy HH:mm:ss" depending on whether the
field carries a time of day; currency can be rendered with vi-VN grouping.
"""

from __future__ import annotations

import math
import unicodedata
from datetime import date, datetime
from pathlib import Path
from typing import Any, Iterable, Mapping, Optional, Sequence

import pandas as pd

from order_lens.dates import format_datetime, format_day
from order_lens.fields import COMPACT_EXPORT_EXCLUDED, CURRENCY, field_class, shows_time_of_day


def format_currency(value: object) -> str:
    """vi-VN number rendering: 100000 -> "100.000", 1234.5 -> "1.234,5"."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return "0"
    if not math.isfinite(number):
        return "0"
    sign = "-" if number < 0 else ""
    whole, _, fraction = f"{abs(number):.3f}".partition(".")
    grouped = f"{int(whole):,}".replace(",", ".")
    fraction = fraction.rstrip("0")
    return f"{sign}{grouped},{fraction}" if fraction else f"{sign}{grouped}"


def ascii_fold(text: str) -> str:
    """Drop Vietnamese diacritics for fonts without them ("Đà Nẵng" -> "Da Nang")."""
    decomposed = unicodedata.normalize("NFD", text)
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return stripped.replace("đ", "d").replace("Đ", "D")


def render_date(key: str, value: Optional[datetime]) -> str:
    if value is None:
        return ""
    if shows_time_of_day(key):
        return format_datetime(value)
    return format_day(value)


def render_cell(key: str, value: Any, *, currency: bool = False) -> Any:
    if isinstance(value, datetime):
        return render_date(key, value)
    if value is None:
        return ""
    if currency and field_class(key) == CURRENCY and isinstance(value, (int, float)):
        return format_currency(value)
    return value


def export_columns(headers: Sequence[str], *, compact: bool = False) -> list[str]:
    if not compact:
        return list(headers)
    return [key for key in headers if key not in COMPACT_EXPORT_EXCLUDED]


def export_rows(
    records: Iterable[Mapping[str, Any]],
    headers: Sequence[str],
    header_labels: Optional[Mapping[str, str]] = None,
    *,
    compact: bool = False,
    currency: bool = False,
) -> list[dict[str, Any]]:
    """
    Rows keyed by the original header text, ready for a table writer.

    compact=True drops contact/address/note columns and folds diacritics,
    which is what a fixed-font printable report needs.
    """
    labels = header_labels or {}
    columns = export_columns(headers, compact=compact)
    rows: list[dict[str, Any]] = []
    for record in records:
        row: dict[str, Any] = {}
        for key in columns:
            label = labels.get(key) or key
            value = render_cell(key, record.get(key), currency=currency or compact)
            if compact:
                label = ascii_fold(label)
                value = ascii_fold(str(value))
            row[label] = value
        rows.append(row)
    return rows


def default_export_name(suffix: str, today: Optional[date] = None) -> str:
    today = today or date.today()
    return f"BaoCao_{today.isoformat()}{suffix}"


def write_xlsx(path: Path, rows: list[dict[str, Any]], sheet_name: str = "Orders") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    pd.DataFrame(rows).to_excel(path, sheet_name=sheet_name, index=False, engine="openpyxl")
    return path


def write_csv(path: Path, rows: list[dict[str, Any]]) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    # utf-8-sig so Excel opens Vietnamese text correctly
    pd.DataFrame(rows).to_csv(path, index=False, encoding="utf-8-sig")
    return path
