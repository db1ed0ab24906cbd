"""CLI offline smoke tests with a stubbed pipeline."""

from __future__ import annotations

import json
from contextlib import asynccontextmanager
from datetime import date
from pathlib import Path
from typing import Any

import insolation_pipeline.cli as fetch_cli
import insolation_pipeline.stats_cli as stats_cli
from insolation_pipeline.exceptions import NoExtractionsError
from insolation_pipeline.models import InsolationRecord, RunResult
from insolation_pipeline.storage import InMemoryInsolationStore
from insolation_pipeline.vision.models import ExtractionResult, RawCityObservation


def _set_required_env(monkeypatch: Any, tmp_path: Path) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("APP_ENV", "dev")
    monkeypatch.setenv("STORAGE_BACKEND", "memory")
    monkeypatch.setenv("JOURNAL_DIR", str(tmp_path / "journal"))
    monkeypatch.setenv("RAW_PAYLOAD_DIR", str(tmp_path / "raw"))


def _record(city: str, province: str, value: float, hour: int = 12) -> InsolationRecord:
    return InsolationRecord(
        city=city,
        province=province,
        date=date.today(),
        hour=hour,
        insolation_percentage=value,
    )


def _stub_pipeline(monkeypatch: Any, outcome: RunResult | Exception) -> list[bool]:
    calls: list[bool] = []

    class _Pipeline:
        async def run(self, *, dry_run: bool = False) -> RunResult:
            calls.append(dry_run)
            if isinstance(outcome, Exception):
                raise outcome
            return outcome

    @asynccontextmanager
    async def _fake_build(settings: Any, logger: Any, store: Any = None) -> Any:
        yield _Pipeline()

    monkeypatch.setattr(fetch_cli, "build_pipeline", _fake_build)
    return calls


def _event_types(journal_dir: Path) -> list[str]:
    files = list(journal_dir.glob("*.jsonl"))
    assert files
    return [
        json.loads(line)["event_type"]
        for line in files[0].read_text(encoding="utf-8").strip().splitlines()
    ]


def test_fetch_cli_dry_run_smoke(monkeypatch: Any, tmp_path: Path, capsys: Any) -> None:
    _set_required_env(monkeypatch, tmp_path)
    records = [_record("Opole", "Opolskie", 21.5), _record("Lublin", "Lubelskie", 33)]
    result = RunResult(
        total_images=61,
        processed_images=61,
        total_extracted=2,
        total_reconciled=2,
        successful_writes=2,
        dry_run=True,
        records=records,
    )
    calls = _stub_pipeline(monkeypatch, result)

    exit_code = fetch_cli.main(["--dry-run", "--max-print", "5"])

    assert exit_code == 0
    assert calls == [True]
    output = capsys.readouterr().out
    assert "processed=61" in output
    assert "reconciled=2" in output
    assert "Reconciled Insolation Records" in output
    assert "Opole" in output

    assert _event_types(tmp_path / "journal") == ["startup", "run_summary", "shutdown"]
    snapshots = list((tmp_path / "raw").glob("*_reconciled_records.json"))
    assert len(snapshots) == 1
    assert not list((tmp_path / "raw").glob("*_extraction_results.json"))


def test_fetch_cli_snapshots_raw_extraction_results(monkeypatch: Any, tmp_path: Path) -> None:
    _set_required_env(monkeypatch, tmp_path)
    extraction = ExtractionResult(
        capture_date=date.today(),
        capture_hour=12,
        cities=[
            RawCityObservation(name="Opole", insolation_percentage=21.5),
            RawCityObservation(name="Atlantyda", insolation_percentage=40),
        ],
        image_url="https://example.test/map_12.png",
        percentage_tag=12,
    )
    _stub_pipeline(
        monkeypatch,
        RunResult(
            total_images=1,
            processed_images=1,
            total_extracted=1,
            total_reconciled=1,
            successful_writes=1,
            dry_run=True,
            records=[_record("Opole", "Opolskie", 21.5)],
            extractions=[extraction],
        ),
    )

    assert fetch_cli.main(["--dry-run"]) == 0

    snapshots = list((tmp_path / "raw").glob("*_extraction_results.json"))
    assert len(snapshots) == 1
    payload = json.loads(snapshots[0].read_text(encoding="utf-8"))
    assert [city["name"] for city in payload[0]["cities"]] == ["Opole", "Atlantyda"]
    assert payload[0]["image_url"] == "https://example.test/map_12.png"

    summary = json.loads(
        next((tmp_path / "journal").glob("*.jsonl")).read_text(encoding="utf-8").splitlines()[1]
    )
    assert summary["event_type"] == "run_summary"
    assert summary["payload"]["extractions_path"] == str(snapshots[0])
    assert "extractions" not in summary["payload"]


def test_fetch_cli_skips_snapshots_when_disabled(monkeypatch: Any, tmp_path: Path) -> None:
    _set_required_env(monkeypatch, tmp_path)
    monkeypatch.setenv("JOURNAL_RAW_EXTRACTIONS", "false")
    _stub_pipeline(
        monkeypatch,
        RunResult(
            processed_images=1,
            records=[_record("Opole", "Opolskie", 21.5)],
            extractions=[ExtractionResult(capture_date=date.today(), capture_hour=12)],
        ),
    )

    assert fetch_cli.main([]) == 0
    assert not list((tmp_path / "raw").glob("*.json"))


def test_fetch_cli_no_extractions_exit_code(monkeypatch: Any, tmp_path: Path) -> None:
    _set_required_env(monkeypatch, tmp_path)
    _stub_pipeline(monkeypatch, NoExtractionsError("No images were analyzed successfully."))

    assert fetch_cli.main([]) == 4
    assert _event_types(tmp_path / "journal") == ["startup", "run_failure", "shutdown"]


def test_fetch_cli_unsuccessful_run_exit_code(monkeypatch: Any, tmp_path: Path) -> None:
    _set_required_env(monkeypatch, tmp_path)
    _stub_pipeline(
        monkeypatch,
        RunResult(processed_images=3, errors=["Database write failed: boom"]),
    )

    assert fetch_cli.main([]) == 5


def test_fetch_cli_config_error(monkeypatch: Any, tmp_path: Path) -> None:
    _set_required_env(monkeypatch, tmp_path)
    monkeypatch.setenv("BATCH_SIZE", "0")

    assert fetch_cli.main([]) == 2


def test_stats_cli_lookup_and_prune(monkeypatch: Any, tmp_path: Path, capsys: Any) -> None:
    _set_required_env(monkeypatch, tmp_path)
    store = InMemoryInsolationStore()
    store.upsert(
        [
            _record("Opole", "Opolskie", 21.5),
            _record("Lublin", "Lubelskie", 33, hour=13),
            InsolationRecord(
                city="Kielce",
                province="Świętokrzyskie",
                date=date(2020, 1, 1),
                hour=12,
                insolation_percentage=5,
            ),
        ]
    )
    monkeypatch.setattr(stats_cli, "create_store", lambda settings, logger: store)

    exit_code = stats_cli.main(
        ["--date", date.today().isoformat(), "--hour", "12", "--prune-older-than-days", "365"]
    )

    assert exit_code == 0
    output = capsys.readouterr().out
    assert "Deleted 1 records" in output
    assert "Insolation Storage" in output
    assert "Opole" in output
    assert "Lublin" not in output
    assert [record.city for record in store.all_records()] == ["Lublin", "Opole"]


def test_stats_cli_rejects_date_without_hour(monkeypatch: Any, tmp_path: Path) -> None:
    _set_required_env(monkeypatch, tmp_path)
    assert stats_cli.main(["--date", "2026-06-02"]) == 2
