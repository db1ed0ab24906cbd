"""End-to-end pipeline tests with fake fetch/vision and the in-memory store."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from datetime import date
from typing import Any

import pytest

from insolation_pipeline.config import load_settings
from insolation_pipeline.exceptions import FetchError, NoExtractionsError, PersistenceError
from insolation_pipeline.models import ImageSource, InsolationRecord
from insolation_pipeline.normalizer import CityNormalizer
from insolation_pipeline.orchestrator import BatchOrchestrator
from insolation_pipeline.pipeline import InsolationPipeline, build_pipeline
from insolation_pipeline.storage import InMemoryInsolationStore
from insolation_pipeline.vision.models import ExtractionResult, RawCityObservation

DAY = date(2026, 6, 2)


def _sources(count: int) -> list[ImageSource]:
    return [
        ImageSource(
            url=f"https://cmm.imgw.pl/test/ECMWF_PPv_sun_{tag}_percent.png",
            percentage_tag=tag,
        )
        for tag in range(3, 3 + count)
    ]


class FakeFetcher:
    def __init__(self, failing_urls: set[str] | None = None) -> None:
        self.failing_urls = failing_urls or set()

    async def fetch(self, url: str) -> bytes:
        if url in self.failing_urls:
            raise FetchError("HTTP 503: Service Unavailable", url=url, attempts=3)
        return b"png"


class FakeExtractor:
    """Two forecast hours; Warszawa and Opole visible, Kraków reads 0%."""

    async def analyze(self, image_bytes: bytes, *, source: ImageSource) -> ExtractionResult:
        tag = source.percentage_tag
        return ExtractionResult(
            capture_date=DAY,
            capture_hour=10 + tag % 2,
            cities=[
                RawCityObservation(name="warszawa", insolation_percentage=tag),
                RawCityObservation(name="Kraków", insolation_percentage=0),
                RawCityObservation(name="Opole", province="Opolskie", insolation_percentage=20),
                RawCityObservation(name="Nonexistentville", insolation_percentage=50),
            ],
            image_url=source.url,
            percentage_tag=tag,
        )

    async def close(self) -> None:
        return None


class FailingStore(InMemoryInsolationStore):
    def upsert(self, records: Sequence[InsolationRecord]) -> int:
        raise PersistenceError("Supabase upsert failed after 2/4 rows: 500", written=2)


def _make_pipeline(
    store: Any,
    *,
    sources: list[ImageSource],
    failing_urls: set[str] | None = None,
) -> InsolationPipeline:
    orchestrator = BatchOrchestrator(
        FakeFetcher(failing_urls),
        FakeExtractor(),
        batch_size=10,
        batch_delay_seconds=0,
        logger=logging.getLogger("test_pipeline"),
    )
    return InsolationPipeline(
        orchestrator,
        CityNormalizer(logger=logging.getLogger("test_pipeline")),
        store,
        sources=sources,
        logger=logging.getLogger("test_pipeline"),
    )


def test_end_to_end_twelve_sources_one_fetch_failure() -> None:
    sources = _sources(12)
    failing = sources[0].url
    store = InMemoryInsolationStore()
    pipeline = _make_pipeline(store, sources=sources, failing_urls={failing})

    result = asyncio.run(pipeline.run())

    assert result.total_images == 12
    assert result.processed_images == 11
    assert result.failed_images == 1
    assert result.errors == [f"Failed to analyze image {failing}: HTTP 503: Service Unavailable"]
    # 11 images x (Warszawa, Opole); Kraków is zero and the unknown city is dropped.
    assert result.total_extracted == 22
    assert result.total_reconciled == 4
    assert result.successful_writes == 4
    assert result.success is True
    # Raw extractions are kept unfiltered, including the zero and unknown readings.
    assert {extraction.image_url for extraction in result.extractions} == {
        source.url for source in sources[1:]
    }
    assert all(len(extraction.cities) == 4 for extraction in result.extractions)

    stored = {record.natural_key: record.insolation_percentage for record in store.all_records()}
    # Tags 4..14; even tags map to hour 10, odd tags to hour 11.
    assert stored == {
        ("Opole", "Opolskie", DAY, 10): 20.0,
        ("Opole", "Opolskie", DAY, 11): 20.0,
        ("Warszawa", "Mazowieckie", DAY, 10): 9.0,
        ("Warszawa", "Mazowieckie", DAY, 11): 9.0,
    }


def test_rerun_is_idempotent() -> None:
    store = InMemoryInsolationStore()
    pipeline = _make_pipeline(store, sources=_sources(6))

    first = asyncio.run(pipeline.run())
    snapshot = store.all_records()
    second = asyncio.run(pipeline.run())

    assert first.successful_writes == second.successful_writes == 4
    assert store.all_records() == snapshot
    assert store.upsert_calls == 2


def test_dry_run_skips_storage_and_reports_reconciled_count() -> None:
    store = InMemoryInsolationStore()
    pipeline = _make_pipeline(store, sources=_sources(3))

    result = asyncio.run(pipeline.run(dry_run=True))

    assert result.dry_run is True
    assert result.successful_writes == result.total_reconciled == 4
    assert len(result.records) == 4
    assert store.upsert_calls == 0
    assert store.all_records() == []


def test_persistence_failure_is_reported_with_partial_writes() -> None:
    pipeline = _make_pipeline(FailingStore(), sources=_sources(3))

    result = asyncio.run(pipeline.run())

    assert result.processed_images == 3
    assert result.successful_writes == 2
    assert result.errors == ["Database write failed: Supabase upsert failed after 2/4 rows: 500"]
    assert result.success is True


def test_no_successful_images_raises() -> None:
    sources = _sources(3)
    pipeline = _make_pipeline(
        InMemoryInsolationStore(),
        sources=sources,
        failing_urls={source.url for source in sources},
    )

    with pytest.raises(NoExtractionsError) as exc_info:
        asyncio.run(pipeline.run())

    assert exc_info.value.total_images == 3
    assert len(exc_info.value.errors) == 3


def test_run_result_serialization_excludes_records() -> None:
    pipeline = _make_pipeline(InMemoryInsolationStore(), sources=_sources(2))

    payload = asyncio.run(pipeline.run(dry_run=True)).model_dump(mode="json")

    assert "records" not in payload
    assert "extractions" not in payload
    assert payload["total_reconciled"] == 4


def test_build_pipeline_wires_configured_collaborators(monkeypatch: Any, tmp_path: Any) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("APP_ENV", "dev")
    monkeypatch.setenv("STORAGE_BACKEND", "memory")
    monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-ant-test")
    monkeypatch.setenv("BATCH_SIZE", "7")
    monkeypatch.setenv("JOURNAL_DIR", str(tmp_path / "journal"))
    monkeypatch.setenv("RAW_PAYLOAD_DIR", str(tmp_path / "raw"))
    settings = load_settings()

    async def _build() -> InsolationPipeline:
        async with build_pipeline(settings, logging.getLogger("test_pipeline")) as pipeline:
            return pipeline

    pipeline = asyncio.run(_build())

    assert len(pipeline.sources) == 61
    assert pipeline.orchestrator.batch_size == 7
    assert isinstance(pipeline.store, InMemoryInsolationStore)
