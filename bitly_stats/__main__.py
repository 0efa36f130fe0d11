"""Command-line entry point for scheduled runs.

    python -m bitly_stats run [--request-id ID] [--yesterday YYYY-MM-DD] [--dry-run]
    python -m bitly_stats init-db PATH
"""

import argparse
import asyncio
import sys
from datetime import date

import structlog

from bitly_stats.core.database import init_db
from bitly_stats.core.exceptions import StatsSyncError
from bitly_stats.core.observability import (
    bind_request_id,
    push_metrics,
    setup_cli_observability,
)
from bitly_stats.services import SqlStatementWriter
from bitly_stats.services.sync_job import SyncJob

logger = structlog.get_logger()


def iso_day(value: str) -> str:
    """argparse type for a YYYY-MM-DD day."""
    try:
        return date.fromisoformat(value).isoformat()
    except ValueError:
        raise argparse.ArgumentTypeError(f"not a YYYY-MM-DD date: {value!r}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="bitly_stats",
        description="Sync Bitly click statistics into the stats file.",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    run = commands.add_parser("run", help="run the sync once")
    run.add_argument("--request-id", help="identifier of the triggering event, for logs")
    run.add_argument(
        "--yesterday",
        type=iso_day,
        help="day to collect (default: the UTC day before today)",
    )
    run.add_argument(
        "--dry-run",
        action="store_true",
        help="print SQL insert statements instead of updating the stats file",
    )

    init = commands.add_parser("init-db", help="create an empty stats file")
    init.add_argument("path", help="path of the SQLite file to create")

    return parser


async def run_command(args: argparse.Namespace) -> int:
    request_id = bind_request_id(args.request_id)
    job = SyncJob()
    try:
        if args.dry_run:
            await job.dry_run(
                SqlStatementWriter(sys.stdout),
                request_id=request_id,
                yesterday=args.yesterday,
            )
        else:
            await job.run(request_id=request_id, yesterday=args.yesterday)
    except StatsSyncError as e:
        logger.error("Sync failed", stage=e.stage, error=str(e))
        return 1
    finally:
        push_metrics()
    return 0


async def init_db_command(args: argparse.Namespace) -> int:
    await init_db(args.path)
    logger.info("Stats file created", path=args.path)
    return 0


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    setup_cli_observability()

    if args.command == "init-db":
        return asyncio.run(init_db_command(args))
    return asyncio.run(run_command(args))


if __name__ == "__main__":
    sys.exit(main())
