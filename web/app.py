#!/usr/bin/env python3
from __future__ import annotations

import io
import sys
from datetime import date
from pathlib import Path
from typing import Optional

import pandas as pd
import streamlit as st

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from order_lens.config import load_config  # noqa: E402
from order_lens.errors import NoMatchingDataError, OrderLensError, ValidationError  # noqa: E402
from order_lens.export import default_export_name, export_rows  # noqa: E402
from order_lens.fields import (  # noqa: E402
    DATE_FIELDS,
    DELIVERY_SUCCESS_DATE,
    FIELD_SPECS,
    REVENUE,
    field_spec,
)
from order_lens.loader import ALL_FORMATS, load_sheet_bytes  # noqa: E402
from order_lens.remote import fetch_remote_sheet  # noqa: E402
from order_lens.state import AppState, RecordFilter  # noqa: E402
from order_lens.stats import ALL_STORES, GROUP_BY_MODES, SummaryTable  # noqa: E402

XLSX_MIME = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
FILTER_WIDGET_PREFIXES = ("set_", "text_filter_", "date_filter_", "revenue_floor")


def ensure_state() -> AppState:
    if "app_state" not in st.session_state:
        st.session_state["app_state"] = AppState(settings=load_config())
    st.session_state.setdefault("public_url_input", "")
    return st.session_state["app_state"]


def set_visuals() -> None:
    st.set_page_config(page_title="order-lens", page_icon="📦", layout="wide", initial_sidebar_state="expanded")
    st.markdown(
        """
        <style>
        .block-container {
            padding-top: 2rem;
            padding-bottom: 2rem;
            max-width: 1200px;
        }
        [data-testid="stMetricValue"] {
            font-size: 1.6rem;
        }
        </style>
        """,
        unsafe_allow_html=True,
    )


def table_frame(table: SummaryTable, value_name: str) -> pd.DataFrame:
    return pd.DataFrame(list(table), columns=["label", value_name]).set_index("label")


# ══════════════════════════════════════════════════════════════════════════════
# UPLOAD
# ══════════════════════════════════════════════════════════════════════════════

def render_upload(state: AppState) -> None:
    st.subheader("Order sheet")
    upload = st.file_uploader(
        "Upload an order export",
        type=[ext.lstrip(".") for ext in sorted(ALL_FORMATS)],
        disabled=state.loading,
    )
    url = st.text_input(
        "...or a public file URL",
        key="public_url_input",
        disabled=state.loading,
        placeholder="Google Sheets, Drive, Dropbox, OneDrive and GitHub share links are rewritten to direct downloads.",
    )
    cols = st.columns(2)
    load_clicked = cols[0].button("Load", type="primary", disabled=state.loading or not (upload or url.strip()))
    if cols[1].button("Clear", disabled=state.loading):
        state.reset()
        st.rerun()

    if not load_clicked:
        return

    with st.spinner("Reading the sheet..."):
        if upload is not None:
            data = upload.getvalue()
            suffix = Path(upload.name).suffix.lower()
            state.ingest(upload.name, lambda: load_sheet_bytes(data, suffix))
        else:
            max_mb = state.settings.max_file_mb
            state.ingest(url.strip(), lambda: fetch_remote_sheet(url, max_file_mb=max_mb))
    st.rerun()


# ══════════════════════════════════════════════════════════════════════════════
# FILTERS
# ══════════════════════════════════════════════════════════════════════════════

def render_filters(state: AppState) -> None:
    headers = state.build.headers if state.build else []
    with st.sidebar:
        st.header("Filters")
        allowed: dict[str, frozenset] = {}
        for key in headers:
            if not field_spec(key).set_filter:
                continue
            options = sorted({str(record.get(key, "")) for record in state.raw_records})
            picked = st.multiselect(state.build.header_labels.get(key, key), options, key=f"set_{key}")
            if picked:
                allowed[key] = frozenset(picked)

        contains: dict[str, str] = {}
        text_keys = [key for key in headers if key not in FIELD_SPECS]
        if text_keys:
            text_key = st.selectbox("Text column", text_keys, key="text_filter_field")
            needle = st.text_input("Contains", key="text_filter_value")
            if needle.strip():
                contains[text_key] = needle.strip()

        minimum: dict[str, float] = {}
        if REVENUE in headers:
            floor = st.number_input("Minimum revenue", min_value=0.0, value=0.0, step=10000.0, key="revenue_floor")
            if floor > 0:
                minimum[REVENUE] = floor

        date_keys = [key for key in DATE_FIELDS if key in headers]
        date_field: Optional[str] = None
        date_from: Optional[date] = None
        date_to: Optional[date] = None
        if date_keys:
            date_field = st.selectbox("Date column", date_keys, key="date_filter_field")
            if st.checkbox("Limit dates", key="date_filter_on"):
                date_from = st.date_input("From", key="date_filter_from")
                date_to = st.date_input("To", key="date_filter_to")

        criteria = RecordFilter(
            allowed=allowed,
            contains=contains,
            minimum=minimum,
            date_field=date_field,
            date_from=date_from,
            date_to=date_to,
        )
        if criteria != state.criteria:
            state.recompute(criteria)


# ══════════════════════════════════════════════════════════════════════════════
# RESULTS
# ══════════════════════════════════════════════════════════════════════════════

def render_summary(state: AppState) -> None:
    stats = state.statistics
    if stats is None:
        st.info("No orders match the current filters.")
        return

    metrics = st.columns(3)
    metrics[0].metric("Orders", f"{stats.total_orders:,}")
    metrics[1].metric("Revenue", f"{stats.total_revenue:,.0f}")
    metrics[2].metric("Shipping fees", f"{stats.total_shipping_fee:,.0f}")

    left, right = st.columns(2)
    with left:
        st.caption("Orders by status")
        st.bar_chart(table_frame(stats.status_counts, "orders"))
        st.caption("Top stores")
        st.bar_chart(table_frame(stats.store_counts, "orders"))
        st.caption("Monthly revenue")
        st.bar_chart(table_frame(stats.monthly_revenue, "revenue"))
    with right:
        st.caption("Top cities")
        st.bar_chart(table_frame(stats.city_counts, "orders"))
        st.caption("Top sales reps")
        st.bar_chart(table_frame(stats.sales_rep_counts, "orders"))
        st.caption("Daily orders")
        st.line_chart(table_frame(stats.daily_orders, "orders"))


def render_buckets(state: AppState) -> None:
    st.subheader("Revenue over time")
    cols = st.columns(3)
    bucket_field = cols[0].selectbox(
        "Date column",
        DATE_FIELDS,
        index=DATE_FIELDS.index(DELIVERY_SUCCESS_DATE),
        key="bucket_field",
    )
    group_by = cols[1].selectbox("Group by", GROUP_BY_MODES, index=GROUP_BY_MODES.index("month"), key="bucket_group")
    store = cols[2].selectbox("Store", [ALL_STORES, *state.store_names()], key="bucket_store")

    date_range = None
    if group_by == "custom":
        range_cols = st.columns(2)
        date_range = (
            range_cols[0].date_input("Start", key="bucket_start"),
            range_cols[1].date_input("End", key="bucket_end"),
        )

    try:
        table = state.bucketed(bucket_field, group_by, store_filter=store, date_range=date_range)
    except (ValidationError, NoMatchingDataError) as exc:
        st.warning(str(exc))
        return
    st.bar_chart(table_frame(table, "revenue"))


def render_export(state: AppState) -> None:
    st.subheader("Export")
    compact = st.checkbox("Printable layout (no contact/address/note columns, no diacritics)", key="export_compact")
    rows = export_rows(
        state.view_records,
        state.build.headers,
        state.build.header_labels,
        compact=compact,
        currency=state.settings.format_currency,
    )
    buffer = io.BytesIO()
    pd.DataFrame(rows).to_excel(buffer, sheet_name="Orders", index=False, engine="openpyxl")
    st.download_button(
        f"Download {len(rows)} rows",
        data=buffer.getvalue(),
        file_name=default_export_name(".xlsx"),
        mime=XLSX_MIME,
    )


def main() -> None:
    set_visuals()
    try:
        state = ensure_state()
    except OrderLensError as exc:
        st.error(str(exc))
        return

    st.title("order-lens")
    st.caption("Upload a carrier order export to see totals, breakdowns and revenue over time.")

    render_upload(state)

    if state.error:
        st.error(state.error)
    if state.build is None:
        st.info(f"Supported here: {' '.join(sorted(ALL_FORMATS))}")
        return

    st.caption(f"{state.file_name}: {len(state.raw_records):,} orders loaded")
    if state.warnings:
        st.warning("\n".join(f"- {warning}" for warning in state.warnings))

    render_filters(state)
    render_summary(state)
    render_buckets(state)
    render_export(state)

    with st.expander("Rows"):
        st.dataframe(pd.DataFrame([record.to_dict() for record in state.view_records]), hide_index=True)
        if st.button("Reset filters"):
            for key in list(st.session_state.keys()):
                if key.startswith(FILTER_WIDGET_PREFIXES):
                    del st.session_state[key]
            state.reset_filters()
            st.rerun()


if __name__ == "__main__":
    main()
