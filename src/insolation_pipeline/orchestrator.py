"""Batched concurrent fetch + extract over all image sources."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Sequence

from .exceptions import ExtractionError, FetchError
from .fetcher import ImageFetcher
from .models import BatchRunOutcome, ImageOutcome, ImageSource
from .redaction import sanitize_text
from .vision.base import VisionExtractor


def failure_message(source: ImageSource, error: BaseException | str) -> str:
    return f"Failed to analyze image {source.url}: {error}"


class BatchOrchestrator:
    """Runs fetch+extract for fixed-size batches of sources.

    Tasks inside a batch run concurrently and settle independently; their
    outcomes are merged only once the whole batch has finished. Batches run
    one after another with a fixed pause between them.
    """

    def __init__(
        self,
        fetcher: ImageFetcher,
        extractor: VisionExtractor,
        *,
        batch_size: int = 10,
        batch_delay_seconds: float = 1.0,
        logger: logging.Logger | None = None,
        sleep_fn: Callable[[float], Awaitable[None]] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if batch_size <= 0:
            raise ValueError("batch_size must be > 0")
        self.fetcher = fetcher
        self.extractor = extractor
        self.batch_size = batch_size
        self.batch_delay_seconds = batch_delay_seconds
        self.logger = logger or logging.getLogger("insolation_pipeline.orchestrator")
        self._sleep = sleep_fn or asyncio.sleep
        self._clock = clock

    async def process_one(self, source: ImageSource) -> ImageOutcome:
        """Fetch and analyze a single image, capturing its failure as data."""
        try:
            image_bytes = await self.fetcher.fetch(source.url)
            result = await self.extractor.analyze(image_bytes, source=source)
        except (FetchError, ExtractionError) as exc:
            return ImageOutcome(source=source, error=failure_message(source, exc))
        return ImageOutcome(source=source, result=result)

    async def run_batch(self, batch: Sequence[ImageSource]) -> list[ImageOutcome]:
        settled = await asyncio.gather(
            *(self.process_one(source) for source in batch),
            return_exceptions=True,
        )
        outcomes: list[ImageOutcome] = []
        for source, item in zip(batch, settled, strict=True):
            if isinstance(item, ImageOutcome):
                outcomes.append(item)
                continue
            if isinstance(item, asyncio.CancelledError):
                message = "task cancelled"
            else:
                message = f"{type(item).__name__}: {sanitize_text(str(item))}"
            self.logger.error(
                "Unexpected failure processing %s: %s",
                source.url,
                message,
                extra={"image_url": source.url, "percentage_tag": source.percentage_tag},
            )
            outcomes.append(ImageOutcome(source=source, error=failure_message(source, message)))
        return outcomes

    async def run_all(self, sources: Sequence[ImageSource]) -> BatchRunOutcome:
        total = len(sources)
        outcome = BatchRunOutcome(total_sources=total)
        if total == 0:
            return outcome

        batches = [sources[i : i + self.batch_size] for i in range(0, total, self.batch_size)]
        self.logger.info(
            "Processing %d images in %d batches of up to %d",
            total,
            len(batches),
            self.batch_size,
        )
        started = self._clock()
        processed = 0

        for index, batch in enumerate(batches, start=1):
            batch_outcomes = await self.run_batch(batch)
            batch_ok = 0
            for item in batch_outcomes:
                if item.ok:
                    outcome.results.append(item.result)
                    batch_ok += 1
                else:
                    outcome.errors.append(item.error or failure_message(item.source, "unknown"))
            processed += len(batch)

            elapsed = self._clock() - started
            remaining = (elapsed / processed) * (total - processed)
            self.logger.info(
                "Batch %d/%d done: %d ok, %d failed | %d/%d images (%.1f%%) "
                "elapsed=%.1fs remaining~%.1fs",
                index,
                len(batches),
                batch_ok,
                len(batch) - batch_ok,
                processed,
                total,
                processed / total * 100,
                elapsed,
                remaining,
                extra={"batch": index, "batches": len(batches), "failed": len(batch) - batch_ok},
            )
            if index < len(batches) and self.batch_delay_seconds > 0:
                await self._sleep(self.batch_delay_seconds)

        elapsed = self._clock() - started
        self.logger.info(
            "Finished %d images: %d ok, %d failed, avg %.2fs/image",
            total,
            len(outcome.results),
            len(outcome.errors),
            elapsed / total,
        )
        return outcome
