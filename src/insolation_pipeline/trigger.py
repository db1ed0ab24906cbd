"""HTTP trigger for scheduled (cron) and manual pipeline runs."""

from __future__ import annotations

import asyncio
import hmac
import logging
import sys
import time
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import Any

from flask import Flask, Response, jsonify, request

from .config import Settings, load_settings
from .exceptions import ConfigError, NoExtractionsError
from .log_setup import setup_logger
from .models import RunResult, TriggerSummary
from .pipeline import build_pipeline
from .redaction import sanitize_text

TRIGGER_PATH = "/api/cron/fetch-insolation"

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
}

PipelineRunner = Callable[..., Awaitable[RunResult]]


def _flag(name: str) -> bool:
    return request.args.get(name, "").strip().lower() == "true"


def is_authorized(settings: Settings, authorization: str | None) -> bool:
    """Bearer CRON_SECRET check; only enforced when APP_ENV=prod."""
    if settings.app_env != "prod":
        return True
    if not authorization or not settings.cron_secret:
        return False
    return hmac.compare_digest(authorization, f"Bearer {settings.cron_secret}")


def create_app(
    settings: Settings,
    pipeline_runner: PipelineRunner | None = None,
    logger: logging.Logger | None = None,
) -> Flask:
    """Build the Flask app exposing the pipeline trigger endpoint."""
    log = logger or logging.getLogger("insolation_pipeline.trigger")

    async def _default_runner(*, dry_run: bool) -> RunResult:
        async with build_pipeline(settings, log) as pipeline:
            return await pipeline.run(dry_run=dry_run)

    runner = pipeline_runner or _default_runner
    app = Flask(__name__)

    def _run(test_mode: bool) -> tuple[Response, int]:
        started = time.monotonic()
        timestamp = datetime.now(UTC).isoformat()
        dry_run = _flag("dry_run")
        mode = {"test": test_mode, "dry_run": dry_run}

        if not is_authorized(settings, request.headers.get("Authorization")):
            log.warning("Rejected unauthorized trigger request from %s", request.remote_addr)
            return (
                jsonify(
                    {
                        "error": "Unauthorized",
                        "message": "This endpoint requires a valid cron bearer token.",
                    }
                ),
                401,
            )

        log.info("Trigger run started: test=%s dry_run=%s", test_mode, dry_run)
        try:
            result = asyncio.run(runner(dry_run=dry_run))
        except NoExtractionsError as exc:
            log.error("Trigger run extracted nothing: %s", exc)
            summary = TriggerSummary(
                success=False,
                processed_images=0,
                failed_images=exc.total_images,
                database_writes=0,
                errors=[*exc.errors, str(exc)],
                execution_time_ms=_elapsed_ms(started),
                timestamp=timestamp,
            )
            return jsonify({**summary.model_dump(), "mode": mode}), 200
        except Exception as exc:
            log.exception("Trigger run failed: %s", exc)
            return (
                jsonify(
                    {
                        "success": False,
                        "error": "Cron job execution failed",
                        "detail": sanitize_text(str(exc)),
                        "execution_time_ms": _elapsed_ms(started),
                        "timestamp": timestamp,
                        "mode": mode,
                    }
                ),
                500,
            )

        summary = TriggerSummary(
            success=result.success,
            processed_images=result.processed_images,
            failed_images=result.failed_images,
            database_writes=result.successful_writes,
            errors=result.errors,
            execution_time_ms=_elapsed_ms(started),
            timestamp=timestamp,
        )
        log.info(
            "Trigger run finished: success=%s processed=%d failed=%d writes=%d errors=%d",
            summary.success,
            summary.processed_images,
            summary.failed_images,
            summary.database_writes,
            len(summary.errors),
        )
        return jsonify({**summary.model_dump(), "mode": mode}), 200

    @app.route(TRIGGER_PATH, methods=["GET", "POST", "OPTIONS"])
    def fetch_insolation() -> Any:
        if request.method == "OPTIONS":
            return "", 200, CORS_HEADERS
        # POST is the manual trigger and always runs in test mode.
        test_mode = request.method == "POST" or _flag("test")
        return _run(test_mode=test_mode)

    return app


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


def main() -> int:
    """Serve the trigger endpoint with the Flask development server."""
    logger = setup_logger()
    try:
        settings = load_settings()
    except ConfigError as exc:
        logger.error("Configuration failure: %s", exc)
        return 2

    logger = setup_logger(level=settings.log_level)

    app = create_app(settings, logger=logger)
    logger.info("Serving %s on %s:%d", TRIGGER_PATH, settings.trigger_host, settings.trigger_port)
    app.run(host=settings.trigger_host, port=settings.trigger_port)
    return 0


if __name__ == "__main__":
    sys.exit(main())
