"""
stats.py — order statistics over a record set

Public API:
    stats = summarize(records)
    table = summarize_bucketed(records, bucket_field, group_by, store_filter, date_range)

Both are pure: they read the records they are given and return fresh tables.
A SummaryTable is a tuple of (label, value) pairs.
"""

from __future__ import annotations

import math
from collections import Counter
from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterable, Mapping, Optional, Sequence, Union

from order_lens.dates import (
    day_from_label,
    format_day,
    format_month,
    format_week,
    month_from_label,
    parse_date,
)
from order_lens.errors import NoMatchingDataError, ValidationError
from order_lens.fields import (
    CITY,
    DELIVERY_SUCCESS_DATE,
    REVENUE,
    SALES_REP,
    SETTLEMENT_DATE,
    SHIPPING_FEE,
    STATUS,
    STORE_NAME,
    UNKNOWN_LABEL,
    is_date_field,
)

TOP_N = 15
ALL_STORES = "all"
GROUP_BY_MODES = ("day", "week", "month", "custom")

SummaryTable = tuple[tuple[str, Union[int, float]], ...]
DateLike = Union[datetime, date, str, int, float]

_BUCKET_LABELS = {
    "day": format_day,
    "week": format_week,
    "month": format_month,
    "custom": format_day,
}


@dataclass(frozen=True)
class Statistics:
    total_orders: int = 0
    total_revenue: float = 0
    total_shipping_fee: float = 0
    status_counts: SummaryTable = ()
    store_counts: SummaryTable = ()
    city_counts: SummaryTable = ()
    sales_rep_counts: SummaryTable = ()
    monthly_revenue: SummaryTable = ()
    daily_orders: SummaryTable = ()


def as_number(value: object) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    return value if math.isfinite(value) else 0


def _label(value: object, unknown_label: str) -> str:
    if value is None or value == "":
        return unknown_label
    return str(value)


def rank_counts(counter: Counter, limit: Optional[int] = None) -> SummaryTable:
    """Sort by count descending; ties keep first-seen order (sorted() is stable)."""
    ranked = sorted(counter.items(), key=lambda item: item[1], reverse=True)
    if limit is not None:
        ranked = ranked[:limit]
    return tuple(ranked)


def _chronological(totals: dict[str, float], rebuild) -> SummaryTable:
    def sort_key(item: tuple[str, float]) -> tuple[int, datetime]:
        rebuilt = rebuild(item[0])
        # labels that do not rebuild into a date sort after real dates
        return (0, rebuilt) if rebuilt is not None else (1, datetime.max)

    return tuple(sorted(totals.items(), key=sort_key))


def series_date(record: Mapping[str, object]) -> Optional[datetime]:
    """Date a record is charted under: delivery success, else settlement."""
    for key in (DELIVERY_SUCCESS_DATE, SETTLEMENT_DATE):
        value = record.get(key)
        if isinstance(value, datetime):
            return value
    return None


def summarize(
    records: Iterable[Mapping[str, object]],
    *,
    top_n: int = TOP_N,
    unknown_label: str = UNKNOWN_LABEL,
) -> Statistics:
    """
    Totals, categorical breakdowns and time series for a record set.

    Every record counts toward the totals and breakdowns; only records with a
    delivery-success or settlement date feed monthly_revenue and daily_orders.
    """
    total_orders = 0
    total_revenue: float = 0
    total_shipping_fee: float = 0
    status_counts: Counter = Counter()
    store_counts: Counter = Counter()
    city_counts: Counter = Counter()
    sales_rep_counts: Counter = Counter()
    monthly_revenue: dict[str, float] = {}
    daily_orders: dict[str, int] = {}

    for record in records:
        total_orders += 1
        revenue = as_number(record.get(REVENUE))
        total_revenue += revenue
        total_shipping_fee += as_number(record.get(SHIPPING_FEE))

        status_counts[_label(record.get(STATUS), unknown_label)] += 1
        store_counts[_label(record.get(STORE_NAME), unknown_label)] += 1
        city_counts[_label(record.get(CITY), unknown_label)] += 1
        sales_rep_counts[_label(record.get(SALES_REP), unknown_label)] += 1

        charted = series_date(record)
        if charted is not None:
            month = format_month(charted)
            monthly_revenue[month] = monthly_revenue.get(month, 0) + revenue
            day = format_day(charted)
            daily_orders[day] = daily_orders.get(day, 0) + 1

    return Statistics(
        total_orders=total_orders,
        total_revenue=total_revenue,
        total_shipping_fee=total_shipping_fee,
        status_counts=rank_counts(status_counts),
        store_counts=rank_counts(store_counts, top_n),
        city_counts=rank_counts(city_counts, top_n),
        sales_rep_counts=rank_counts(sales_rep_counts, top_n),
        monthly_revenue=_chronological(monthly_revenue, month_from_label),
        daily_orders=_chronological(daily_orders, day_from_label),
    )


def _as_day(value: object, name: str) -> date:
    if isinstance(value, date) and not isinstance(value, datetime):
        return value
    parsed = parse_date(value)
    if parsed is None:
        raise ValidationError(f"Invalid {name} date: {value!r}")
    return parsed.date()


def _custom_range(date_range: Optional[Sequence[DateLike]]) -> tuple[date, date]:
    if not date_range or len(date_range) != 2:
        raise ValidationError("Custom grouping needs both a start and an end date.")
    start = _as_day(date_range[0], "start")
    end = _as_day(date_range[1], "end")
    if start > end:
        raise ValidationError(f"Start date {start:%d/%m/%Y} is after end date {end:%d/%m/%Y}.")
    return start, end


def summarize_bucketed(
    records: Iterable[Mapping[str, object]],
    bucket_field: str,
    group_by: str,
    store_filter: str = ALL_STORES,
    date_range: Optional[Sequence[DateLike]] = None,
    value_field: Optional[str] = REVENUE,
) -> SummaryTable:
    """
    Group records into day/week/month/custom buckets on one date field.

    Buckets sum value_field (revenue by default) or, with value_field=None,
    count records. They are ordered by the date of their earliest record.

    Raises:
        ValidationError      for a non-date bucket_field, an unknown group_by,
                             or a missing/invalid/inverted custom range.
        NoMatchingDataError  when filtering leaves no dated record.
    """
    if not is_date_field(bucket_field):
        raise ValidationError(f"'{bucket_field}' is not a date field.")
    if group_by not in GROUP_BY_MODES:
        raise ValidationError(
            f"Unknown grouping '{group_by}'. Expected one of: {', '.join(GROUP_BY_MODES)}"
        )

    custom_range = _custom_range(date_range) if group_by == "custom" else None

    if store_filter == ALL_STORES:
        selected = list(records)
    else:
        selected = [record for record in records if record.get(STORE_NAME) == store_filter]

    dated = [
        (record, record.get(bucket_field))
        for record in selected
        if isinstance(record.get(bucket_field), datetime)
    ]

    if custom_range is not None:
        start, end = custom_range
    elif dated:
        start = min(when for _, when in dated).date()
        end = max(when for _, when in dated).date()
    else:
        start = end = None

    in_range = [
        (record, when)
        for record, when in dated
        if start is not None and start <= when.date() <= end
    ]
    if not in_range:
        raise NoMatchingDataError("No data matches the selected store and date range.")

    to_label = _BUCKET_LABELS[group_by]
    totals: dict[str, float] = {}
    earliest: dict[str, datetime] = {}
    for record, when in in_range:
        label = to_label(when)
        amount = 1 if value_field is None else as_number(record.get(value_field))
        totals[label] = totals.get(label, 0) + amount
        if label not in earliest or when < earliest[label]:
            earliest[label] = when

    return tuple(sorted(totals.items(), key=lambda item: earliest[item[0]]))
