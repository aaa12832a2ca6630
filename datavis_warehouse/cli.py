"""
Command Line Entry Point

Usage:
    datavis-warehouse init-db                  Drop and recreate the schema (destructive)
    datavis-warehouse run-etl [--dataset PATH] [--no-snapshot]
    datavis-warehouse serve [--host HOST] [--port PORT] [--reload]
"""

import argparse
import sys
from typing import List, Optional

import structlog

from datavis_warehouse.config import Settings, get_settings
from datavis_warehouse.config.logging import configure_logging
from datavis_warehouse.database.connection import open_store
from datavis_warehouse.database.schema import SchemaManager
from datavis_warehouse.etl.pipeline import PipelineResult, WarehousePipeline

logger = structlog.get_logger(__name__)


def init_db(settings: Settings) -> int:
    with open_store(settings) as store:
        counts = SchemaManager(store, settings.etl).reset_schema()
    for table, rows in counts.items():
        print(f"  {table}: {rows} rows seeded")
    print("Schema reset; run 'datavis-warehouse run-etl' to load data.")
    return 0


def print_summary(result: PipelineResult) -> None:
    print(f"\nETL run finished in {result.duration_seconds}s")
    for job in result.all_jobs:
        line = (
            f"  {job.job_name:<18} {job.status.value:<8} "
            f"processed={job.processed} inserted={job.inserted} failed={job.failed}"
        )
        if job.error_message:
            line += f"  ({job.error_message})"
        print(line)


def run_etl(settings: Settings, dataset: Optional[str], snapshot: bool) -> int:
    try:
        with open_store(settings) as store:
            result = WarehousePipeline(store, settings).run(dataset_path=dataset, snapshot=snapshot)
    except Exception as e:
        logger.error("Pipeline aborted", error=str(e), exc_info=True)
        print(f"ETL pipeline aborted: {e}", file=sys.stderr)
        return 1

    print_summary(result)
    return 0


def serve(settings: Settings, host: Optional[str], port: Optional[int], reload: bool) -> int:
    import uvicorn

    uvicorn.run(
        "datavis_warehouse.main:app",
        host=host or settings.api_host,
        port=port or settings.api_port,
        reload=reload,
        log_level=settings.monitoring.log_level.lower(),
        access_log=False,
    )
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="datavis-warehouse", description="DataVis data warehouse")
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL")
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("init-db", help="Drop and recreate every warehouse table (destructive)")

    etl = commands.add_parser("run-etl", help="Load the raw dataset into the warehouse")
    etl.add_argument("--dataset", default=None, help="Directory holding the raw files")
    etl.add_argument(
        "--no-snapshot",
        dest="snapshot",
        action="store_false",
        default=None,
        help="Skip copying raw inputs into the data lake",
    )

    api = commands.add_parser("serve", help="Serve the read-only query API")
    api.add_argument("--host", default=None)
    api.add_argument("--port", type=int, default=None)
    api.add_argument("--reload", action="store_true", help="Auto-reload on code changes")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    configure_logging(args.log_level, settings)

    if args.command == "init-db":
        return init_db(settings)
    if args.command == "run-etl":
        return run_etl(settings, args.dataset, args.snapshot)
    return serve(settings, args.host, args.port, args.reload)


if __name__ == "__main__":
    sys.exit(main())
