"""Command line interface for the hoops archive store."""

import argparse
import json
import logging
import sys
from pathlib import Path

from .data.ingestion.pipeline import IngestionConfig
from .data.ingestion.registry import DEFAULT_REGISTRY
from .errors import StoreNotReadyError
from .store.gatekeeper import StatsStore, StoreConfig


def _coerce_param(value: str):
    try:
        return int(value)
    except ValueError:
        pass
    try:
        return float(value)
    except ValueError:
        return value


def build_store(args) -> StatsStore:
    ingestion = IngestionConfig(
        staging_dir=args.staging_dir,
        keep_staged_files=args.keep_staged_files,
        strict_validation=args.strict_validation,
        report_path=getattr(args, "report", None),
    )
    config = StoreConfig(
        database_path=args.database,
        base_url=args.base_url,
        source_dir=args.source_dir,
        request_timeout=args.timeout,
        ingestion=ingestion,
    )
    return StatsStore(config)


def list_datasets(args):
    """Print the dataset registry."""
    for dataset in DEFAULT_REGISTRY:
        flag = "optional" if dataset.optional else "required"
        print(f"{dataset.key:28} {dataset.source_file:32} -> {dataset.table:30} {dataset.mode.value:8} {flag}")
    return 0


def init_store(args):
    """Initialize (or restore) the store and summarize the outcome."""
    store = build_store(args)
    try:
        status = store.initialize()
    finally:
        store.close()

    print(f"Store: {args.database}")
    print(f"Availability: {status.availability}")
    if status.restored:
        print("Reused consolidated tables from an earlier run")
    if status.report is not None:
        print("\nDatasets:")
        for result in status.report.datasets:
            detail = f"{result.rows} rows" if result.loaded else (result.error or "")
            print(f"  {result.key:28} {result.status:8} {detail}")
        print("\nDerived tables:")
        for result in status.report.derived:
            detail = f"{result.rows} rows" if result.built else (result.error or "")
            print(f"  {result.table:28} {result.status:12} {detail}")
            for note in result.notes:
                print(f"    - {note}")
        if args.report:
            print(f"\nReport written to {args.report}")
    if status.error:
        print(f"\nError: {status.error}")
    return 0 if status.availability != "failed" else 1


def _run_query(args):
    store = build_store(args)
    try:
        status = store.initialize()
        if status.availability == "failed":
            print(f"Error: store failed to initialize: {status.error}")
            return None
        gateway = store.gateway()
        return gateway.execute(args.sql, [_coerce_param(p) for p in args.param])
    except StoreNotReadyError as e:
        print(f"Error: {e}")
        return None
    finally:
        store.close()


def run_query(args):
    """Run a query and print its rows as JSON."""
    result = _run_query(args)
    if result is None:
        return 1
    if not result.ok:
        print(f"Error: {result.error}")
        return 1
    print(json.dumps(result.to_json_rows(), indent=2))
    return 0


def export_query(args):
    """Run a query and write its rows to CSV."""
    result = _run_query(args)
    if result is None:
        return 1
    if not result.ok:
        print(f"Error: {result.error}")
        return 1
    output = Path(args.output)
    output.parent.mkdir(parents=True, exist_ok=True)
    result.to_frame().to_csv(output, index=False)
    print(f"Wrote {len(result)} rows to {output}")
    return 0


def _add_store_arguments(parser):
    parser.add_argument("--database", default="data/hoops_archive.duckdb", help="DuckDB database file")
    source = parser.add_mutually_exclusive_group()
    source.add_argument("--source-dir", default=None, help="Directory holding the CSV files")
    source.add_argument("--base-url", default=None, help="Base URL the CSV files are served under")
    parser.add_argument("--staging-dir", default="data/raw/staging", help="Where fetched CSVs are staged for loading")
    parser.add_argument("--timeout", type=float, default=None, help="HTTP timeout in seconds (default: none)")
    parser.add_argument("--keep-staged-files", action="store_true", help="Keep staged CSVs after loading")
    parser.add_argument(
        "--strict-validation",
        action="store_true",
        help="Fail initialization when consolidated key checks fail",
    )


def main(argv=None):
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Hoops Archive - basketball statistics CSVs consolidated into a DuckDB store"
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    subparsers.add_parser("datasets", help="List the CSV datasets and their raw tables")

    init_parser = subparsers.add_parser("init", help="Ingest the CSV datasets (or reuse an existing store)")
    _add_store_arguments(init_parser)
    init_parser.add_argument("--report", default=None, help="Write the ingestion report JSON here")

    query_parser = subparsers.add_parser("query", help="Run a SQL query and print rows as JSON")
    _add_store_arguments(query_parser)
    query_parser.add_argument("sql", help="SQL text; use ? placeholders for values")
    query_parser.add_argument("--param", "-p", action="append", default=[], help="Bound parameter (repeatable)")

    export_parser = subparsers.add_parser("export", help="Run a SQL query and write rows to CSV")
    _add_store_arguments(export_parser)
    export_parser.add_argument("sql", help="SQL text; use ? placeholders for values")
    export_parser.add_argument("--output", "-o", required=True, help="Output CSV file")
    export_parser.add_argument("--param", "-p", action="append", default=[], help="Bound parameter (repeatable)")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "datasets":
        return list_datasets(args)
    elif args.command == "init":
        return init_store(args)
    elif args.command == "query":
        return run_query(args)
    elif args.command == "export":
        return export_query(args)
    else:
        parser.print_help()
        return 1


if __name__ == "__main__":
    sys.exit(main())
