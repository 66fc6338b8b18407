"""Command-line entrypoint for bi-sqlguard."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from bi_sqlguard import __version__
from bi_sqlguard.config import ConfigError, Settings, load_settings
from bi_sqlguard.results import validate_and_clean_chart_data, validate_query_result
from bi_sqlguard.schema import SnapshotError, load_schema_snapshot
from bi_sqlguard.sql import validate_schema, validate_sql

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="bi-sqlguard",
        description=(
            "Read-only SQL gate for BI query generation: safety screen, "
            "schema cross-reference and result checks."
        ),
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Override LOG_LEVEL for this run (DEBUG, INFO, WARNING, ...).",
    )

    subparsers = parser.add_subparsers(dest="command")
    subparsers.add_parser(
        "config-check",
        help="Validate environment configuration for bi-sqlguard.",
    )
    validate_parser = subparsers.add_parser(
        "validate-sql",
        help="Run the safety screen and schema cross-reference on a SQL statement.",
    )
    validate_parser.add_argument("sql", help="SQL statement to validate.")
    validate_parser.add_argument(
        "--schema-file",
        type=Path,
        default=None,
        help="Schema snapshot JSON to check against (default: SCHEMA_SNAPSHOT_PATH).",
    )
    validate_parser.add_argument(
        "--skip-schema",
        action="store_true",
        help="Only run the lexical safety screen.",
    )
    validate_parser.add_argument(
        "--json",
        action="store_true",
        help="Print results as JSON.",
    )
    show_parser = subparsers.add_parser(
        "show-schema",
        help="Show metadata and tables from a schema snapshot file.",
    )
    show_parser.add_argument(
        "--schema-file",
        type=Path,
        default=None,
        help="Schema snapshot JSON to read (default: SCHEMA_SNAPSHOT_PATH).",
    )
    result_parser = subparsers.add_parser(
        "check-result",
        help="Check a query result JSON file ({'columns': [...], 'rows': [...]}).",
    )
    result_parser.add_argument("file", type=Path, help="Query result JSON file.")
    result_parser.add_argument(
        "--chart",
        action="store_true",
        help="Also clean the rows for charting.",
    )
    result_parser.add_argument(
        "--json",
        action="store_true",
        help="Print results as JSON.",
    )
    return parser


def _configure_logging(level: str) -> None:
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)


def _print_messages(label: str, messages: list[str]) -> None:
    if not messages:
        return
    print(f"{label}:")
    for message in messages:
        print(f"- {message}")


def _validate_sql(args: argparse.Namespace, settings: Settings) -> int:
    safety = validate_sql(args.sql)
    schema_result = None
    if not args.skip_schema:
        snapshot_path = args.schema_file or settings.schema_snapshot_path
        try:
            snapshot = load_schema_snapshot(snapshot_path)
        except SnapshotError as exc:
            print(f"Schema snapshot read failed:\n{exc}", file=sys.stderr)
            return 1
        schema_result = validate_schema(args.sql, snapshot.tables)

    passed = safety.valid and (schema_result is None or schema_result.valid)
    if args.json:
        print(
            json.dumps(
                {
                    "valid": passed,
                    "safety": safety.to_dict(),
                    "schema": schema_result.to_dict() if schema_result else None,
                },
                indent=2,
                ensure_ascii=False,
            )
        )
        return 0 if passed else 1

    if passed:
        print("SQL validation succeeded:")
        print("- safety: passed")
        print(f"- schema: {'skipped' if schema_result is None else 'passed'}")
        return 0

    print("SQL validation failed:")
    if not safety.valid:
        print(f"- safety [{safety.code.value if safety.code else 'error'}]: {safety.error}")
    if schema_result is not None:
        for error in schema_result.errors:
            print(f"- schema: {error}")
    return 1


def _show_schema(args: argparse.Namespace, settings: Settings) -> int:
    snapshot_path = args.schema_file or settings.schema_snapshot_path
    try:
        snapshot = load_schema_snapshot(snapshot_path)
    except SnapshotError as exc:
        print(f"Schema snapshot read failed:\n{exc}", file=sys.stderr)
        return 1

    print("Schema snapshot loaded:")
    print(f"- snapshot_path: {snapshot_path}")
    print(f"- snapshot_format_version: {snapshot.snapshot_format_version}")
    print(f"- generated_at: {snapshot.generated_at}")
    print(f"- database: {snapshot.database}")
    print(f"- tables: {len(snapshot.tables)}")
    for table in snapshot.tables:
        columns = ", ".join(column.name for column in table.columns) or "(no columns)"
        print(f"  - {table.table_name}: {columns}")
    return 0


def _check_result(args: argparse.Namespace, settings: Settings) -> int:
    try:
        payload = json.loads(args.file.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        print(f"Result file is not valid JSON: {exc}", file=sys.stderr)
        return 1
    except OSError as exc:
        print(f"Failed to read result file: {exc}", file=sys.stderr)
        return 1

    if not isinstance(payload, dict):
        print("Result file root must be a JSON object.", file=sys.stderr)
        return 1

    result_check = validate_query_result(
        payload,
        large_result_rows=settings.large_result_rows,
    )
    chart_check = None
    if args.chart:
        chart_check = validate_and_clean_chart_data(
            payload.get("rows"),
            null_threshold=settings.chart_null_threshold,
            max_rows=settings.chart_max_rows,
        )

    passed = result_check.is_valid and (chart_check is None or chart_check.is_valid)
    if args.json:
        print(
            json.dumps(
                {
                    "valid": passed,
                    "result": result_check.to_dict(),
                    "chart": chart_check.to_dict() if chart_check else None,
                },
                indent=2,
                ensure_ascii=False,
                default=str,
            )
        )
        return 0 if passed else 1

    print(f"Query result check {'passed' if result_check.is_valid else 'failed'}:")
    print(f"- empty: {'yes' if result_check.is_empty else 'no'}")
    _print_messages("Errors", result_check.errors)
    _print_messages("Warnings", result_check.warnings)
    if chart_check is not None:
        print(f"Chart data check {'passed' if chart_check.is_valid else 'failed'}:")
        print(f"- rows: {len(chart_check.cleaned_data)}")
        _print_messages("Errors", chart_check.errors)
        _print_messages("Warnings", chart_check.warnings)
    return 0 if passed else 1


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    overrides = {"log_level": args.log_level} if args.log_level else None
    try:
        settings = load_settings(overrides)
    except ConfigError as exc:
        print(f"Configuration error:\n{exc}", file=sys.stderr)
        return 2

    _configure_logging(settings.log_level)
    logger.debug("Running command %s", args.command)

    if args.command == "config-check":
        print("Configuration loaded successfully:")
        print(f"- SCHEMA_SNAPSHOT_PATH: {settings.schema_snapshot_path}")
        print(f"- LOG_LEVEL: {settings.log_level}")
        print(f"- LARGE_RESULT_ROWS: {settings.large_result_rows}")
        print(f"- CHART_MAX_ROWS: {settings.chart_max_rows}")
        print(f"- CHART_NULL_THRESHOLD: {settings.chart_null_threshold}")
        return 0

    if args.command == "validate-sql":
        return _validate_sql(args, settings)

    if args.command == "show-schema":
        return _show_schema(args, settings)

    if args.command == "check-result":
        return _check_result(args, settings)

    print(f"Command '{args.command}' is not implemented.")
    return 1


if __name__ == "__main__":
    sys.exit(main())
