"""
state.py — application state owned by the orchestrating layer (CLI or dashboard)

The engine modules are pure functions; this is the one place that holds the
current upload, the active filter and the statistics derived from them.
Every change recomputes from the raw record set; nothing is cached between
calls.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Callable, Iterable, Mapping, Optional, Sequence

from order_lens.config import Settings
from order_lens.errors import OrderLensError, UploadInProgressError
from order_lens.rows import BuildResult, Record, build_records
from order_lens.stats import ALL_STORES, DateLike, Statistics, SummaryTable, as_number, summarize, summarize_bucketed


@dataclass(frozen=True)
class RecordFilter:
    """
    Grid-style filter criteria, all ANDed together.

    allowed   — field -> accepted values (set filter)
    contains  — field -> case-insensitive substring (text filter)
    minimum / maximum — field -> inclusive numeric bounds (number filter)
    date_field with date_from / date_to — inclusive calendar-day bounds
    """

    allowed: Mapping[str, frozenset] = field(default_factory=dict)
    contains: Mapping[str, str] = field(default_factory=dict)
    minimum: Mapping[str, float] = field(default_factory=dict)
    maximum: Mapping[str, float] = field(default_factory=dict)
    date_field: Optional[str] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None

    def is_empty(self) -> bool:
        return not (
            self.allowed
            or self.contains
            or self.minimum
            or self.maximum
            or (self.date_field and (self.date_from or self.date_to))
        )

    def matches(self, record: Mapping[str, Any]) -> bool:
        for key, accepted in self.allowed.items():
            if record.get(key, "") not in accepted:
                return False
        for key, needle in self.contains.items():
            if needle.lower() not in str(record.get(key, "")).lower():
                return False
        for key, bound in self.minimum.items():
            if as_number(record.get(key)) < bound:
                return False
        for key, bound in self.maximum.items():
            if as_number(record.get(key)) > bound:
                return False
        if self.date_field and (self.date_from or self.date_to):
            value = record.get(self.date_field)
            if not isinstance(value, datetime):
                return False
            if self.date_from and value.date() < self.date_from:
                return False
            if self.date_to and value.date() > self.date_to:
                return False
        return True


def apply_filter(records: Iterable[Record], criteria: RecordFilter) -> tuple[Record, ...]:
    """Return the matching records as a new tuple; the input is left alone."""
    if criteria.is_empty():
        return tuple(records)
    return tuple(record for record in records if criteria.matches(record))


@dataclass
class AppState:
    settings: Settings = field(default_factory=Settings)
    loading: bool = False
    file_name: str = ""
    build: Optional[BuildResult] = None
    raw_records: tuple[Record, ...] = ()
    view_records: tuple[Record, ...] = ()
    criteria: RecordFilter = field(default_factory=RecordFilter)
    statistics: Optional[Statistics] = None
    error: str = ""
    warnings: list[str] = field(default_factory=list)

    def _clear_data(self) -> None:
        self.build = None
        self.raw_records = ()
        self.view_records = ()
        self.criteria = RecordFilter()
        self.statistics = None
        self.warnings = []

    def begin_upload(self, file_name: str) -> None:
        if self.loading:
            raise UploadInProgressError(f"Still loading '{self.file_name}'; wait for it or reset first.")
        self._clear_data()
        self.error = ""
        self.file_name = file_name
        self.loading = True

    def finish_upload(self, loaded: Mapping[str, Any]) -> BuildResult:
        result = build_records(
            loaded["header_row"],
            loaded["data_rows"],
            strict=self.settings.strict,
        )
        self.build = result
        self.raw_records = result.records
        self.warnings = [*loaded.get("warnings", []), *result.warnings]
        self.loading = False
        self.recompute(RecordFilter())
        return result

    def fail_upload(self, exc: BaseException) -> None:
        self._clear_data()
        self.error = f"Could not process file: {exc}. Check the file format and column layout."
        self.loading = False

    def ingest(self, file_name: str, load: Callable[[], Mapping[str, Any]]) -> bool:
        """
        Run one upload: begin, load raw rows, build records, and either commit
        the new data or roll back to an empty state with an error message.
        """
        self.begin_upload(file_name)
        try:
            self.finish_upload(load())
        except (OrderLensError, ValueError, ImportError, OSError) as exc:
            self.fail_upload(exc)
            return False
        return True

    def reset(self) -> None:
        self._clear_data()
        self.error = ""
        self.file_name = ""
        self.loading = False

    def recompute(self, criteria: RecordFilter) -> Optional[Statistics]:
        self.criteria = criteria
        self.view_records = apply_filter(self.raw_records, criteria)
        if self.view_records:
            self.statistics = summarize(
                self.view_records,
                top_n=self.settings.top_n,
                unknown_label=self.settings.unknown_label,
            )
        else:
            self.statistics = None
        return self.statistics

    def reset_filters(self) -> Optional[Statistics]:
        return self.recompute(RecordFilter())

    def store_names(self) -> list[str]:
        return list(self.build.store_names) if self.build else []

    def bucketed(
        self,
        bucket_field: str,
        group_by: str,
        store_filter: str = ALL_STORES,
        date_range: Optional[Sequence[DateLike]] = None,
    ) -> SummaryTable:
        """Bucketed series over the raw set; errors leave the rest of the state untouched."""
        return summarize_bucketed(
            self.raw_records,
            bucket_field,
            group_by,
            store_filter=store_filter,
            date_range=date_range,
        )
