"""CLI: run one insolation acquisition pass and journal the outcome."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
import uuid

from rich.console import Console
from rich.table import Table

from .config import Settings, load_settings
from .exceptions import ConfigError, JournalError, PipelineError
from .journal import JournalWriter
from .log_setup import setup_logger
from .models import InsolationRecord, RunResult
from .pipeline import build_pipeline


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Fetch IMGW PV insolation maps, extract city values and store them."
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Run fetch, extraction and reconciliation without writing to storage.",
    )
    parser.add_argument(
        "--max-print",
        type=int,
        default=None,
        help="Number of reconciled records to print.",
    )
    return parser.parse_args(argv)


async def _run_pipeline(settings: Settings, logger: logging.Logger, dry_run: bool) -> RunResult:
    async with build_pipeline(settings, logger) as pipeline:
        return await pipeline.run(dry_run=dry_run)


def _print_result(console: Console, result: RunResult, max_print: int) -> None:
    console.print(
        f"images={result.total_images} processed={result.processed_images} "
        f"failed={result.failed_images} extracted={result.total_extracted} "
        f"reconciled={result.total_reconciled} writes={result.successful_writes} "
        f"dry_run={result.dry_run} success={result.success}"
    )
    print_records(console, result.records, max_print, title="Reconciled Insolation Records")

    if result.errors:
        errors = Table(title="Run Errors")
        errors.add_column("#", justify="right")
        errors.add_column("Error", overflow="fold")
        for index, message in enumerate(result.errors[:max_print], start=1):
            errors.add_row(str(index), message)
        console.print(errors)


def print_records(
    console: Console,
    records: list[InsolationRecord],
    max_print: int,
    *,
    title: str,
) -> None:
    if not records:
        console.print("No records.")
        return

    table = Table(title=title)
    table.add_column("City", overflow="fold")
    table.add_column("Province", overflow="fold")
    table.add_column("Date")
    table.add_column("Hour", justify="right")
    table.add_column("Insolation %", justify="right")
    for record in records[:max_print]:
        table.add_row(
            record.city,
            record.province,
            record.date.isoformat(),
            f"{record.hour:02d}",
            f"{record.insolation_percentage:g}",
        )
    console.print(table)
    if len(records) > max_print:
        console.print(f"... {len(records) - max_print} more")


def main(argv: list[str] | None = None) -> int:
    """Run the acquisition pipeline once."""
    args = parse_args(argv)
    logger = setup_logger()
    console = Console()
    session_id = uuid.uuid4().hex[:12]
    journal: JournalWriter | None = None

    if args.max_print is not None and args.max_print <= 0:
        logger.error("--max-print must be > 0 when provided.")
        return 2

    try:
        settings = load_settings()
    except ConfigError as exc:
        logger.error("Configuration failure: %s", exc)
        return 2

    logger = setup_logger(level=settings.log_level)

    try:
        journal = JournalWriter(
            journal_dir=settings.journal_dir,
            raw_payload_dir=settings.raw_payload_dir,
            session_id=session_id,
        )
        journal.write_event(
            "startup",
            payload={"dry_run": args.dry_run, "settings": settings.safe_summary()},
            metadata={"session_id": session_id},
        )
    except JournalError as exc:
        logger.error("Failed to initialize journal: %s", exc)
        return 3

    exit_code = 0
    try:
        result = asyncio.run(_run_pipeline(settings, logger, dry_run=args.dry_run))

        extractions_path: str | None = None
        records_path: str | None = None
        if settings.journal_raw_extractions:
            if result.extractions:
                extractions_path = str(
                    journal.write_model_snapshot("extraction_results", result.extractions)
                )
            if result.records:
                records_path = str(
                    journal.write_model_snapshot("reconciled_records", result.records)
                )
        journal.write_event(
            "run_summary",
            payload={
                **result.model_dump(mode="json"),
                "success": result.success,
                "extractions_path": extractions_path,
                "records_path": records_path,
            },
            metadata={"session_id": session_id},
        )

        _print_result(console, result, max_print=args.max_print or settings.max_print)
        if not result.success:
            exit_code = 5
    except (PipelineError, ConfigError, JournalError) as exc:
        exit_code = 4
        logger.error("Insolation run failure: %s", exc)
        try:
            journal.write_event(
                "run_failure",
                payload={"error": str(exc), "type": type(exc).__name__},
                metadata={"session_id": session_id},
            )
        except JournalError:
            logger.error("Failed to write run_failure event.")
    except Exception as exc:  # pragma: no cover - defensive catch for CLI runtime
        exit_code = 99
        logger.exception("Unexpected insolation CLI failure: %s", exc)
        try:
            journal.write_event(
                "run_failure_unhandled",
                payload={"error": str(exc), "type": type(exc).__name__},
                metadata={"session_id": session_id},
            )
        except JournalError:
            logger.error("Failed to write run_failure_unhandled event.")
    finally:
        if journal is not None:
            try:
                journal.write_event(
                    "shutdown",
                    payload={"exit_code": exit_code},
                    metadata={"session_id": session_id},
                )
            except JournalError:
                logger.error("Failed to write shutdown event.")

    return exit_code


if __name__ == "__main__":
    sys.exit(main())
