"""End-to-end acquisition run: sources to stored records."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from .exceptions import NoExtractionsError, PersistenceError
from .fetcher import ImageFetcher
from .models import ImageSource, NormalizedObservation, RunResult
from .normalizer import CityNormalizer
from .orchestrator import BatchOrchestrator
from .reconciler import duplicate_statistics, reconcile
from .sources import list_sources
from .storage import InsolationStore, create_store
from .vision import AnthropicVisionExtractor

if TYPE_CHECKING:
    from .config import Settings


class InsolationPipeline:
    """One acquisition run over every configured image source.

    The pipeline holds no state between runs; build a new one per trigger.
    """

    def __init__(
        self,
        orchestrator: BatchOrchestrator,
        normalizer: CityNormalizer,
        store: InsolationStore,
        *,
        sources: Sequence[ImageSource] | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.orchestrator = orchestrator
        self.normalizer = normalizer
        self.store = store
        self.sources = list(sources) if sources is not None else list_sources()
        self.logger = logger or logging.getLogger("insolation_pipeline.pipeline")

    async def run(self, *, dry_run: bool = False) -> RunResult:
        """Fetch, extract, normalize, reconcile and (unless dry_run) upsert.

        Raises NoExtractionsError when no image was analyzed. A storage
        failure does not raise; it is reported in ``errors`` together with
        the number of rows persisted before it.
        """
        total = len(self.sources)
        self.logger.info("Starting insolation run: images=%d dry_run=%s", total, dry_run)

        outcome = await self.orchestrator.run_all(self.sources)
        if not outcome.results:
            raise NoExtractionsError(
                f"No images were analyzed successfully ({outcome.failed}/{total} failed).",
                total_images=total,
                errors=outcome.errors,
            )

        observations: list[NormalizedObservation] = []
        for result in outcome.results:
            observations.extend(self.normalizer.normalize_result(result))

        stats = duplicate_statistics(observations)
        records = reconcile(observations)
        self.logger.info(
            "Reconciled %d observations into %d records "
            "(zero-filtered=%d duplicate_keys=%d unmatched_cities=%d)",
            stats["total_input"],
            len(records),
            stats["filtered_zero"],
            stats["duplicate_keys"],
            self.normalizer.misses,
        )

        errors = list(outcome.errors)
        if dry_run:
            written = len(records)
            self.logger.info("Dry run: skipping upsert of %d records", written)
        else:
            try:
                written = await asyncio.to_thread(self.store.upsert, records)
            except PersistenceError as exc:
                self.logger.error("Persistence failure: %s", exc)
                errors.append(f"Database write failed: {exc}")
                written = exc.written

        result = RunResult(
            total_images=total,
            processed_images=len(outcome.results),
            failed_images=outcome.failed,
            total_extracted=len(observations),
            total_reconciled=len(records),
            successful_writes=written,
            errors=errors,
            dry_run=dry_run,
            records=records,
            extractions=outcome.results,
        )
        self.logger.info(
            "Run complete: processed=%d failed=%d records=%d writes=%d",
            result.processed_images,
            result.failed_images,
            result.total_reconciled,
            result.successful_writes,
        )
        return result


@asynccontextmanager
async def build_pipeline(
    settings: Settings,
    logger: logging.Logger,
    store: InsolationStore | None = None,
) -> AsyncIterator[InsolationPipeline]:
    """Wire real collaborators and release their clients on exit."""
    fetcher = ImageFetcher(settings=settings, logger=logger)
    try:
        extractor = AnthropicVisionExtractor(settings=settings, logger=logger)
    except Exception:
        await fetcher.close()
        raise
    try:
        orchestrator = BatchOrchestrator(
            fetcher,
            extractor,
            batch_size=settings.batch_size,
            batch_delay_seconds=settings.batch_delay_seconds,
            logger=logger,
        )
        yield InsolationPipeline(
            orchestrator,
            CityNormalizer(logger=logger),
            store if store is not None else create_store(settings, logger),
            sources=list_sources(str(settings.image_base_url)),
            logger=logger,
        )
    finally:
        await extractor.close()
        await fetcher.close()
