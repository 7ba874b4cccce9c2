"""Shared versioned contracts for order-lens JSON outputs."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from order_lens.stats import Statistics, SummaryTable

CONTRACT_VERSIONS = {
    "order_lens.summary": "1.0.0",
    "order_lens.buckets": "1.0.0",
    "order_lens.export_summary": "1.0.0",
}


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def build_contract(name: str) -> dict[str, str]:
    version = CONTRACT_VERSIONS[name]
    return {"name": name, "version": version}


def build_run_summary(
    *,
    command: str,
    input_path: Path,
    status: str = "ok",
    output_path: Path | None = None,
    metrics: dict[str, Any] | None = None,
    warnings: list[str] | None = None,
) -> dict[str, Any]:
    return {
        "tool": "order-lens",
        "command": command,
        "status": status,
        "generated_at": utc_now_iso(),
        "input_file": str(input_path),
        "output_file": str(output_path) if output_path else None,
        "warnings_count": len(warnings or []),
        "warnings": list(warnings or []),
        "metrics": metrics or {},
    }


def table_rows(table: SummaryTable) -> list[dict[str, Any]]:
    return [{"label": label, "value": value} for label, value in table]


def statistics_payload(
    statistics: Statistics,
    *,
    input_path: Path,
    warnings: list[str] | None = None,
) -> dict[str, Any]:
    contract = build_contract("order_lens.summary")
    return {
        "contract": contract,
        "schema_version": contract["version"],
        "statistics": {
            "total_orders": statistics.total_orders,
            "total_revenue": statistics.total_revenue,
            "total_shipping_fee": statistics.total_shipping_fee,
            "status_counts": table_rows(statistics.status_counts),
            "store_counts": table_rows(statistics.store_counts),
            "city_counts": table_rows(statistics.city_counts),
            "sales_rep_counts": table_rows(statistics.sales_rep_counts),
            "monthly_revenue": table_rows(statistics.monthly_revenue),
            "daily_orders": table_rows(statistics.daily_orders),
        },
        "run_summary": build_run_summary(
            command="summarize",
            input_path=input_path,
            metrics={"total_orders": statistics.total_orders},
            warnings=warnings,
        ),
    }


def bucketed_payload(
    table: SummaryTable,
    *,
    input_path: Path,
    bucket_field: str,
    group_by: str,
    store_filter: str,
    value_field: Optional[str],
    warnings: list[str] | None = None,
) -> dict[str, Any]:
    contract = build_contract("order_lens.buckets")
    return {
        "contract": contract,
        "schema_version": contract["version"],
        "request": {
            "bucket_field": bucket_field,
            "group_by": group_by,
            "store_filter": store_filter,
            "value_field": value_field,
        },
        "buckets": table_rows(table),
        "run_summary": build_run_summary(
            command="buckets",
            input_path=input_path,
            metrics={"bucket_count": len(table)},
            warnings=warnings,
        ),
    }
