from __future__ import annotations

import argparse
import dataclasses
import json
import logging
import sys
from pathlib import Path
from typing import Any

from order_lens import __version__ as TOOL_VERSION
from order_lens.config import CONFIG_ENV_VAR, DEFAULT_CONFIG_NAME, DEFAULT_CONFIG_TEXT, Settings, load_config
from order_lens.contracts import bucketed_payload, build_contract, build_run_summary, statistics_payload
from order_lens.errors import (
    CoercionError,
    NoMatchingDataError,
    OrderLensError,
    StructuralError,
    ValidationError,
)
from order_lens.export import default_export_name, export_rows, write_csv, write_xlsx
from order_lens.fields import DATE_FIELDS, DELIVERY_SUCCESS_DATE, REVENUE
from order_lens.loader import ALL_FORMATS, load_sheet
from order_lens.rows import BuildResult, build_records
from order_lens.stats import ALL_STORES, GROUP_BY_MODES, Statistics, SummaryTable, summarize, summarize_bucketed

EXIT_SUCCESS = 0
EXIT_COMMAND_ERROR = 1
EXIT_PARSE_FAILED = 2
EXIT_VALIDATION_FAILED = 3
EXIT_NO_MATCHING_DATA = 4


class CliError(Exception):
    def __init__(self, message: str, code: int = EXIT_COMMAND_ERROR) -> None:
        super().__init__(message)
        self.code = code


class OrderLensArgumentParser(argparse.ArgumentParser):
    def error(self, message: str) -> None:
        raise CliError(message, EXIT_COMMAND_ERROR)


def eprint(message: str) -> None:
    print(message, file=sys.stderr)


def emit_human(message: str, *, quiet: bool = False) -> None:
    if not quiet:
        eprint(message)


def json_dumps(payload: Any) -> str:
    return json.dumps(payload, indent=2, ensure_ascii=False, sort_keys=True, default=str)


def write_text(path: Path, payload: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(payload, encoding="utf-8")


def configure_logging(args: argparse.Namespace) -> None:
    if getattr(args, "verbose", False):
        level = logging.DEBUG
    elif getattr(args, "quiet", False):
        level = logging.CRITICAL
    else:
        level = logging.ERROR
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s", stream=sys.stderr)


def settings_for(args: argparse.Namespace) -> Settings:
    try:
        settings = load_config(Path(args.config) if getattr(args, "config", None) else None)
    except OrderLensError as exc:
        raise CliError(str(exc), EXIT_COMMAND_ERROR) from exc
    if getattr(args, "strict", False):
        settings = dataclasses.replace(settings, strict=True)
    return settings


def classify_exception(exc: Exception) -> int:
    if isinstance(exc, CliError):
        return exc.code
    if isinstance(exc, NoMatchingDataError):
        return EXIT_NO_MATCHING_DATA
    if isinstance(exc, ValidationError):
        return EXIT_VALIDATION_FAILED
    if isinstance(exc, (StructuralError, CoercionError, ImportError, UnicodeDecodeError)):
        return EXIT_PARSE_FAILED
    if isinstance(exc, FileNotFoundError):
        return EXIT_COMMAND_ERROR
    if isinstance(exc, ValueError):
        return EXIT_PARSE_FAILED
    return EXIT_COMMAND_ERROR


def load_records(input_path: Path, settings: Settings) -> tuple[dict[str, Any], BuildResult]:
    if not input_path.exists():
        raise CliError(f"File not found: {input_path}", EXIT_COMMAND_ERROR)
    suffix = input_path.suffix.lower()
    if suffix not in ALL_FORMATS:
        raise CliError(
            f"Unsupported file type '{suffix or '[missing extension]'}'. "
            f"Supported: {', '.join(sorted(ALL_FORMATS))}",
            EXIT_COMMAND_ERROR,
        )
    loaded = load_sheet(input_path)
    result = build_records(loaded["header_row"], loaded["data_rows"], strict=settings.strict)
    return loaded, result


def render_table(title: str, table: SummaryTable) -> list[str]:
    lines = [f"{title}:"]
    if not table:
        lines.append("  (none)")
    lines.extend(f"  {label}: {value:,}" for label, value in table)
    return lines


def render_summary_text(input_path: Path, statistics: Statistics, warnings: list[str]) -> str:
    lines = [
        "order-lens summarize",
        f"File: {input_path.name}",
        f"Orders: {statistics.total_orders:,}",
        f"Revenue: {statistics.total_revenue:,}",
        f"Shipping fees: {statistics.total_shipping_fee:,}",
    ]
    lines.extend(render_table("Status", statistics.status_counts))
    lines.extend(render_table("Top stores", statistics.store_counts))
    lines.extend(render_table("Top cities", statistics.city_counts))
    lines.extend(render_table("Top sales reps", statistics.sales_rep_counts))
    lines.extend(render_table("Monthly revenue", statistics.monthly_revenue))
    lines.extend(render_table("Daily orders", statistics.daily_orders))
    if warnings:
        lines.append("Warnings:")
        lines.extend(f"- {warning}" for warning in warnings)
    return "\n".join(lines) + "\n"


def build_parser() -> argparse.ArgumentParser:
    parser = OrderLensArgumentParser(prog="order-lens", description="Order spreadsheet statistics.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    def add_common(sub: argparse.ArgumentParser) -> None:
        sub.add_argument("input", help="Input .xlsx/.xls/.csv/.tsv/.txt file")
        sub.add_argument("--config", help=f"JSON config path (default: ${CONFIG_ENV_VAR} if set)")
        sub.add_argument("--strict", action="store_true", help="Fail on unreadable dates/numbers instead of defaulting")
        sub.add_argument("--output", help="Write the JSON payload to this path")
        sub.add_argument("--json", action="store_true", help="Write machine JSON to stdout")
        sub.add_argument("-q", "--quiet", action="store_true", help="Minimal human logs")
        sub.add_argument("-v", "--verbose", action="store_true", help="Log every coercion diagnostic")

    summarize_cmd = subparsers.add_parser("summarize", help="Totals and breakdowns for an order sheet.")
    add_common(summarize_cmd)

    buckets = subparsers.add_parser("buckets", help="Revenue per day/week/month bucket.")
    add_common(buckets)
    buckets.add_argument("--field", default=DELIVERY_SUCCESS_DATE, choices=DATE_FIELDS, help="Date column to bucket on")
    buckets.add_argument("--group-by", default="month", choices=GROUP_BY_MODES, help="Bucket size")
    buckets.add_argument("--store", default=ALL_STORES, help="Exact store name, or 'all'")
    buckets.add_argument("--start", help="Custom range start (dd/MM/yyyy or yyyy-MM-dd)")
    buckets.add_argument("--end", help="Custom range end (dd/MM/yyyy or yyyy-MM-dd)")
    buckets.add_argument("--count", action="store_true", help="Count orders instead of summing revenue")

    export = subparsers.add_parser("export", help="Write normalised rows to .xlsx or .csv.")
    add_common(export)
    export.add_argument("--to", dest="export_path", help="Export path (default: BaoCao_<date>.<format>)")
    export.add_argument("--format", choices=["xlsx", "csv"], default="xlsx", help="Export format")
    export.add_argument("--compact", action="store_true", help="Drop contact/address/note columns and fold diacritics")

    config = subparsers.add_parser("config", help="Generate configuration.")
    config_subparsers = config.add_subparsers(dest="config_command", required=True)
    config_init = config_subparsers.add_parser("init", help="Write a starter config file.")
    config_init.add_argument("--path", default=DEFAULT_CONFIG_NAME, help="Config output path")

    subparsers.add_parser("version", help="Print version")
    return parser


def finish_payload(args: argparse.Namespace, payload: dict[str, Any], human: str) -> None:
    if args.output:
        output_path = Path(args.output)
        write_text(output_path, json_dumps(payload))
        emit_human(f"Report written: {output_path}", quiet=args.quiet)
    if args.json:
        print(json_dumps(payload))
    else:
        emit_human(human.rstrip(), quiet=args.quiet)


def run_summarize(args: argparse.Namespace) -> int:
    input_path = Path(args.input)
    try:
        settings = settings_for(args)
        loaded, result = load_records(input_path, settings)
        statistics = summarize(result.records, top_n=settings.top_n, unknown_label=settings.unknown_label)
        warnings = [*loaded["warnings"], *result.warnings]
        payload = statistics_payload(statistics, input_path=input_path, warnings=warnings)
        finish_payload(args, payload, render_summary_text(input_path, statistics, warnings))
        return EXIT_SUCCESS
    except Exception as exc:
        eprint(str(exc))
        return classify_exception(exc)


def run_buckets(args: argparse.Namespace) -> int:
    input_path = Path(args.input)
    try:
        settings = settings_for(args)
        loaded, result = load_records(input_path, settings)
        date_range = (args.start, args.end) if args.group_by == "custom" else None
        value_field = None if args.count else REVENUE
        table = summarize_bucketed(
            result.records,
            args.field,
            args.group_by,
            store_filter=args.store,
            date_range=date_range,
            value_field=value_field,
        )
        warnings = [*loaded["warnings"], *result.warnings]
        payload = bucketed_payload(
            table,
            input_path=input_path,
            bucket_field=args.field,
            group_by=args.group_by,
            store_filter=args.store,
            value_field=value_field,
            warnings=warnings,
        )
        title = f"{'Orders' if args.count else 'Revenue'} by {args.group_by} ({args.field}, store: {args.store})"
        finish_payload(args, payload, "\n".join(render_table(title, table)))
        return EXIT_SUCCESS
    except Exception as exc:
        eprint(str(exc))
        return classify_exception(exc)


def run_export(args: argparse.Namespace) -> int:
    input_path = Path(args.input)
    try:
        settings = settings_for(args)
        loaded, result = load_records(input_path, settings)
        suffix = f".{args.format}"
        export_path = Path(args.export_path) if args.export_path else Path.cwd() / default_export_name(suffix)
        if export_path.exists():
            raise CliError(f"Refusing to overwrite existing output: {export_path}", EXIT_COMMAND_ERROR)
        rows = export_rows(
            result.records,
            result.headers,
            result.header_labels,
            compact=args.compact,
            currency=settings.format_currency,
        )
        if args.format == "csv":
            write_csv(export_path, rows)
        else:
            write_xlsx(export_path, rows)
        warnings = [*loaded["warnings"], *result.warnings]
        contract = build_contract("order_lens.export_summary")
        payload = {
            "contract": contract,
            "schema_version": contract["version"],
            "rows_exported": len(rows),
            "columns_exported": len(rows[0]) if rows else 0,
            "run_summary": build_run_summary(
                command="export",
                input_path=input_path,
                output_path=export_path,
                metrics={"rows_exported": len(rows)},
                warnings=warnings,
            ),
        }
        finish_payload(args, payload, f"Exported {len(rows)} rows: {export_path}")
        return EXIT_SUCCESS
    except Exception as exc:
        eprint(str(exc))
        return classify_exception(exc)


def run_config_init(args: argparse.Namespace) -> int:
    config_path = Path(args.path)
    if config_path.exists():
        eprint(f"Refusing to overwrite existing config: {config_path}")
        return EXIT_COMMAND_ERROR
    write_text(config_path, DEFAULT_CONFIG_TEXT)
    emit_human(f"Config written: {config_path}")
    return EXIT_SUCCESS


def run_version() -> int:
    print(TOOL_VERSION)
    return EXIT_SUCCESS


def main(argv: list[str] | None = None) -> int:
    try:
        parser = build_parser()
        args = parser.parse_args(argv)
        configure_logging(args)
        if args.command == "summarize":
            return run_summarize(args)
        if args.command == "buckets":
            return run_buckets(args)
        if args.command == "export":
            return run_export(args)
        if args.command == "config":
            if args.config_command == "init":
                return run_config_init(args)
        if args.command == "version":
            return run_version()
        raise CliError(f"Unknown command: {args.command}", EXIT_COMMAND_ERROR)
    except CliError as exc:
        eprint(str(exc))
        return exc.code


if __name__ == "__main__":
    raise SystemExit(main())
