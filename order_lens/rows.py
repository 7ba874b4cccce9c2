"""
rows.py — turn a raw sheet (header row + data rows) into canonical records

Public API:
    result  = build_records(header_row, data_rows)
    records = result.records

BuildResult fields:
    records         — tuple of Record, ids 0..n-1 in sheet order
    headers         — canonical keys in column order (duplicates dropped)
    header_labels   — canonical key -> original header text
    store_names     — distinct non-empty store names, first-seen order
    missing_headers — expected keys absent from the sheet
    collisions      — canonical key -> original labels that mapped to it
    unparsed_dates  — count of non-blank date cells that came back None
    warnings        — list of warning strings
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Iterator, Mapping, Sequence

from order_lens.coercion import TypedValue, coerce_value, is_blank
from order_lens.errors import StructuralError
from order_lens.fields import EXPECTED_HEADERS, STORE_NAME, is_date_field, normalize_header


@dataclass(frozen=True)
class Record(Mapping[str, TypedValue]):
    """One order row. Read-only; filtering builds new sequences instead."""

    id: int
    values: Mapping[str, TypedValue]

    def __post_init__(self) -> None:
        if not isinstance(self.values, MappingProxyType):
            object.__setattr__(self, "values", MappingProxyType(dict(self.values)))

    def __getitem__(self, key: str) -> TypedValue:
        return self.values[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self.values)

    def __len__(self) -> int:
        return len(self.values)

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, **self.values}


@dataclass
class BuildResult:
    records: tuple[Record, ...]
    headers: list[str]
    header_labels: dict[str, str]
    store_names: list[str] = field(default_factory=list)
    missing_headers: list[str] = field(default_factory=list)
    collisions: dict[str, list[str]] = field(default_factory=dict)
    unparsed_dates: int = 0
    warnings: list[str] = field(default_factory=list)


def _column_plan(header_row: Sequence[object]) -> tuple[list[tuple[int, str]], dict[str, str], dict[str, list[str]], list[str]]:
    """
    Normalise headers once and decide which column feeds each key.

    Two headers normalising to the same key: the later column wins, and the
    collision is reported.
    """
    plan: dict[str, int] = {}
    labels: dict[str, str] = {}
    seen_labels: dict[str, list[str]] = {}
    warnings: list[str] = []

    for idx, raw in enumerate(header_row):
        key = normalize_header(raw)
        label = "" if raw is None else str(raw)
        if not key:
            warnings.append(f"Column {idx + 1} header {label!r} has no usable name; column skipped")
            continue
        seen_labels.setdefault(key, []).append(label)
        plan[key] = idx
        labels[key] = label

    collisions = {key: names for key, names in seen_labels.items() if len(names) > 1}
    for key, names in collisions.items():
        warnings.append(
            f"Headers {names} all normalise to '{key}'; using the last one ({names[-1]!r})"
        )

    ordered = sorted(((idx, key) for key, idx in plan.items()), key=lambda item: item[0])
    return ordered, labels, collisions, warnings


def build_records(
    header_row: Sequence[object],
    data_rows: Sequence[Sequence[object]],
    *,
    strict: bool = False,
) -> BuildResult:
    """
    Build canonical records from a header row and its data rows.

    Raises:
        StructuralError  if there is no data row.
        CoercionError    from strict coercion only.
    """
    if not data_rows:
        raise StructuralError("File has no data rows or no header row.")

    columns, labels, collisions, warnings = _column_plan(header_row)
    headers = [key for _, key in columns]

    missing = [key for key in EXPECTED_HEADERS if key not in labels]
    if missing:
        warnings.append(
            "These columns may be missing or misnamed (after normalisation): "
            f"{', '.join(missing)}. Some statistics/filters may read as empty."
        )

    records: list[Record] = []
    store_names: dict[str, None] = {}
    unparsed_dates = 0

    for row_idx, row in enumerate(data_rows):
        values: dict[str, TypedValue] = {}
        for col_idx, key in columns:
            raw = row[col_idx] if col_idx < len(row) else None
            value = coerce_value(raw, key, strict=strict)
            if value is None and is_date_field(key) and not is_blank(raw) and raw != 0:
                unparsed_dates += 1
            values[key] = value
        store = values.get(STORE_NAME)
        if isinstance(store, str) and store:
            store_names.setdefault(store, None)
        records.append(Record(row_idx, values))

    if unparsed_dates:
        warnings.append(f"{unparsed_dates} date cells could not be parsed and were left empty")

    return BuildResult(
        records=tuple(records),
        headers=headers,
        header_labels=labels,
        store_names=list(store_names),
        missing_headers=missing,
        collisions=collisions,
        unparsed_dates=unparsed_dates,
        warnings=warnings,
    )
