"""
loader.py — read the first worksheet of an order export into raw rows

Supports: .csv .tsv .txt .xlsx .xlsm .xls

Public API:
    result = load_sheet("path/to/orders.xlsx")
    result = load_sheet_bytes(uploaded_bytes, ".xlsx")
    header, rows = result["header_row"], result["data_rows"]

Result dict keys:
    header_row        — list of raw header cells
    data_rows         — list of raw data rows (datetimes, numbers, strings, None)
    detected_format   — "csv", "xlsx", ...
    detected_encoding — encoding name for text files; None for workbooks
    delimiter         — delimiter char for text files; None otherwise
    sheet_name        — worksheet read for workbooks; None otherwise
    sheet_names       — all worksheet names for workbooks; None otherwise
    original_rows     — row count including the header row
    warnings          — list of warning strings
"""

from __future__ import annotations

import csv
import io
import math
from collections import Counter
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

import chardet
import pandas as pd

from order_lens.errors import StructuralError

TEXT_FORMATS = {".csv", ".tsv", ".txt"}
EXCEL_FORMATS = {".xlsx", ".xlsm", ".xls"}
ALL_FORMATS = TEXT_FORMATS | EXCEL_FORMATS


# ══════════════════════════════════════════════════════════════════════════════
# TEXT DECODING
# ══════════════════════════════════════════════════════════════════════════════

def _detect_encoding(raw: bytes) -> str:
    result = chardet.detect(raw)
    return result.get("encoding") or "utf-8"


def _read_text_safely(raw: bytes, preferred_encoding: str) -> str:
    """
    Decode raw bytes line-by-line.

    Strategy per line:
      1. Try UTF-8
      2. Try preferred_encoding (chardet result)
      3. CP1258 (Vietnamese Windows) with replace, never crashes

    Also strips a leading BOM and embedded null bytes.
    """
    decoded_lines: list[str] = []
    for raw_line in raw.split(b"\n"):
        decoded: str | None = None
        for enc in ("utf-8", preferred_encoding):
            try:
                decoded = raw_line.decode(enc)
                break
            except (LookupError, UnicodeDecodeError):
                continue
        if decoded is None:
            decoded = raw_line.decode("cp1258", errors="replace")
        decoded_lines.append(decoded.replace("\x00", ""))
    return "\n".join(decoded_lines).lstrip("\ufeff")


def _detect_delimiter(text: str) -> str:
    """
    Infer the delimiter from sample lines.

    Uses csv.Sniffer first; falls back to the candidate giving the most
    consistent multi-column width.
    """
    sample_lines = [line for line in text.splitlines() if line.strip()][:50]
    sample = "\n".join(sample_lines[:25])

    if sample:
        try:
            return csv.Sniffer().sniff(sample, delimiters=",;\t|").delimiter
        except csv.Error:
            pass

    best_delim = ","
    best_score = float("-inf")
    for delim in (",", ";", "\t", "|"):
        rows = [row for row in csv.reader(io.StringIO(sample), delimiter=delim) if any(c.strip() for c in row)]
        if len(rows) < 2:
            continue
        width_counts = Counter(len(row) for row in rows)
        mode_width, mode_count = width_counts.most_common(1)[0]
        score = mode_width * 2.0 + (mode_count / len(rows)) * mode_width
        if mode_width == 1:
            score -= 10.0
        if score > best_score:
            best_score = score
            best_delim = delim
    return best_delim


# ══════════════════════════════════════════════════════════════════════════════
# CELL CLEANUP
# ══════════════════════════════════════════════════════════════════════════════

def _plain_cell(value: Any) -> Any:
    """Unwrap pandas/numpy cell values into plain Python values."""
    if value is None or value is pd.NaT or value is pd.NA:
        return None
    if isinstance(value, pd.Timestamp):
        return value.to_pydatetime()
    if isinstance(value, datetime):
        return value
    if isinstance(value, float) and math.isnan(value):
        return None
    item = getattr(value, "item", None)
    if item is not None and not isinstance(value, (str, bytes)):
        value = item()
        if isinstance(value, float) and math.isnan(value):
            return None
    return value


def _is_blank_row(row: list[Any]) -> bool:
    return all(cell is None or (isinstance(cell, str) and not cell.strip()) for cell in row)


def _split_rows(rows: list[list[Any]], warnings: list[str]) -> tuple[list[Any], list[list[Any]]]:
    kept = [row for row in rows if not _is_blank_row(row)]
    dropped = len(rows) - len(kept)
    if dropped:
        warnings.append(f"Skipped {dropped} completely empty rows")
    if len(kept) < 2:
        raise StructuralError("File has no data rows or no header row.")
    return kept[0], kept[1:]


# ══════════════════════════════════════════════════════════════════════════════
# FORMAT LOADERS
# ══════════════════════════════════════════════════════════════════════════════

def _row_widths(text: str, delimiter: str) -> tuple[int, int]:
    """Field count of the first non-empty line and of the widest line."""
    widths = [
        len(row)
        for row in csv.reader(io.StringIO(text), delimiter=delimiter)
        if any(cell.strip() for cell in row)
    ]
    if not widths:
        return 0, 0
    return widths[0], max(widths)


def _load_text(raw: bytes, suffix: str) -> dict:
    enc = _detect_encoding(raw)
    text = _read_text_safely(raw, enc)
    delimiter = "\t" if suffix == ".tsv" else _detect_delimiter(text)

    try:
        header_width, max_width = _row_widths(text, delimiter)
        if not header_width:
            raise StructuralError("File has no data rows or no header row.")
        # Explicit names keep rows wider than the header instead of dropping them.
        df = pd.read_csv(
            io.StringIO(text),
            header=None,
            names=list(range(max_width)),
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=True,
            sep=delimiter,
            engine="python",
        )
    except StructuralError:
        raise
    except pd.errors.EmptyDataError as exc:
        raise StructuralError("File has no data rows or no header row.") from exc
    except Exception as exc:
        raise StructuralError(f"Could not parse {suffix} file: {exc}") from exc

    warnings: list[str] = []
    rows = [[_plain_cell(cell) for cell in row] for row in df.itertuples(index=False, name=None)]
    header_row, data_rows = _split_rows(rows, warnings)
    wide_rows = sum(1 for row in data_rows if not _is_blank_row(row[header_width:]))
    if wide_rows:
        warnings.append(f"{wide_rows} rows have more cells than the header row; extra cells ignored")
    header_row = header_row[:header_width]
    data_rows = [row[:header_width] for row in data_rows]
    return {
        "header_row": list(header_row),
        "data_rows": data_rows,
        "detected_format": suffix.lstrip("."),
        "detected_encoding": enc,
        "delimiter": delimiter,
        "sheet_name": None,
        "sheet_names": None,
        "original_rows": len(data_rows) + 1,
        "warnings": warnings,
    }


def _load_excel(source: Any, suffix: str) -> dict:
    """Read the first worksheet with cell values left as native types."""
    if suffix == ".xls":
        try:
            import xlrd  # noqa: F401
        except ImportError:
            raise ImportError(".xls files require xlrd; run: pip install xlrd")

    warnings: list[str] = []
    try:
        with pd.ExcelFile(source) as xf:
            all_sheets = list(xf.sheet_names)
            if not all_sheets:
                raise StructuralError("Workbook has no worksheets.")
            first = all_sheets[0]
            df = xf.parse(sheet_name=first, header=None, dtype=object)
    except StructuralError:
        raise
    except Exception as exc:
        raise StructuralError(f"Could not read workbook: {exc}") from exc

    if len(all_sheets) > 1:
        warnings.append(
            f"Multiple sheets found ({len(all_sheets)} total); "
            f"used '{first}'. Ignored: {all_sheets[1:]}"
        )

    rows = [[_plain_cell(cell) for cell in row] for row in df.itertuples(index=False, name=None)]
    header_row, data_rows = _split_rows(rows, warnings)
    return {
        "header_row": list(header_row),
        "data_rows": data_rows,
        "detected_format": suffix.lstrip("."),
        "detected_encoding": None,
        "delimiter": None,
        "sheet_name": first,
        "sheet_names": all_sheets,
        "original_rows": len(data_rows) + 1,
        "warnings": warnings,
    }


# ══════════════════════════════════════════════════════════════════════════════
# PUBLIC API
# ══════════════════════════════════════════════════════════════════════════════

def _check_suffix(suffix: str) -> None:
    if suffix not in ALL_FORMATS:
        supported = ", ".join(sorted(ALL_FORMATS))
        raise ValueError(f"Unsupported format '{suffix or '[missing extension]'}'. Supported: {supported}")


def load_sheet_bytes(data: bytes, suffix: str) -> dict:
    """
    Load an in-memory upload (e.g. a browser file or a download).

    Raises:
        ValueError       if the format is unsupported.
        StructuralError  if the sheet is unreadable or has no data rows.
        ImportError      if a required optional dependency is missing.
    """
    suffix = suffix.lower()
    _check_suffix(suffix)
    if suffix in TEXT_FORMATS:
        return _load_text(data, suffix)
    return _load_excel(io.BytesIO(data), suffix)


def load_sheet(path: "str | Path", suffix: Optional[str] = None) -> dict:
    """
    Load the first worksheet (or the delimited table) of a file.

    Raises:
        FileNotFoundError  if the file does not exist.
        ValueError         if the format is unsupported.
        StructuralError    if the sheet is unreadable or has no data rows.
    """
    path = Path(path)
    suffix = (suffix or path.suffix).lower()
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")
    _check_suffix(suffix)
    if suffix in TEXT_FORMATS:
        return _load_text(path.read_bytes(), suffix)
    return _load_excel(path, suffix)
