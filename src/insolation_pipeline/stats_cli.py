"""CLI: inspect stored insolation data and prune old rows."""

from __future__ import annotations

import argparse
import sys
from datetime import date

from rich.console import Console
from rich.table import Table

from .cli import print_records
from .config import load_settings
from .exceptions import ConfigError, PersistenceError
from .log_setup import setup_logger
from .models import StoreStatistics
from .storage import InsolationStore, create_store


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Show insolation storage statistics.")
    parser.add_argument(
        "--date",
        type=date.fromisoformat,
        default=None,
        help="Forecast date (YYYY-MM-DD) to look up; requires --hour.",
    )
    parser.add_argument("--hour", type=int, default=None, help="Forecast hour (0-23).")
    parser.add_argument(
        "--latest",
        type=int,
        default=None,
        help="Number of most recent records to print.",
    )
    parser.add_argument(
        "--prune-older-than-days",
        type=int,
        default=None,
        help="Delete records dated more than N days ago.",
    )
    return parser.parse_args(argv)


def _validate_args(args: argparse.Namespace) -> None:
    if (args.date is None) != (args.hour is None):
        raise ValueError("--date and --hour must be given together.")
    if args.hour is not None and not (0 <= args.hour <= 23):
        raise ValueError(f"Invalid hour {args.hour}; expected 0-23.")
    if args.latest is not None and args.latest <= 0:
        raise ValueError("--latest must be > 0 when provided.")
    if args.prune_older_than_days is not None and args.prune_older_than_days < 1:
        raise ValueError("--prune-older-than-days must be >= 1.")


def _print_statistics(console: Console, stats: StoreStatistics) -> None:
    table = Table(title="Insolation Storage")
    table.add_column("Metric")
    table.add_column("Value", justify="right")
    table.add_row("Total records", str(stats.total_records))
    table.add_row("Unique dates", str(stats.unique_dates))
    table.add_row("Unique cities", str(stats.unique_cities))
    table.add_row("Latest date", stats.latest_date.isoformat() if stats.latest_date else "-")
    console.print(table)


def run(args: argparse.Namespace, store: InsolationStore, console: Console, max_print: int) -> None:
    if args.prune_older_than_days is not None:
        deleted = store.delete_older_than(args.prune_older_than_days)
        console.print(f"Deleted {deleted} records older than {args.prune_older_than_days} days.")

    _print_statistics(console, store.statistics())

    if args.date is not None:
        records = store.get_for_datetime(args.date, args.hour)
        print_records(
            console,
            records,
            max_print,
            title=f"Records for {args.date.isoformat()} {args.hour:02d}:00",
        )
    else:
        limit = args.latest or max_print
        print_records(console, store.get_latest(limit), limit, title="Latest Records")


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    logger = setup_logger()
    console = Console()

    try:
        _validate_args(args)
    except ValueError as exc:
        logger.error("Invalid arguments: %s", exc)
        return 2

    try:
        settings = load_settings()
        logger = setup_logger(level=settings.log_level)
        store = create_store(settings, logger)
    except ConfigError as exc:
        logger.error("Configuration failure: %s", exc)
        return 2

    try:
        run(args, store, console, max_print=settings.max_print)
    except PersistenceError as exc:
        logger.error("Storage query failure: %s", exc)
        return 4
    return 0


if __name__ == "__main__":
    sys.exit(main())
