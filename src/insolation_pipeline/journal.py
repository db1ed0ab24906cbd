"""Append-only JSONL journal of pipeline runs plus raw extraction snapshots."""

from __future__ import annotations

import json
from collections.abc import Sequence
from datetime import UTC, date, datetime
from pathlib import Path
from typing import Any

from pydantic import BaseModel

from .exceptions import JournalError
from .redaction import sanitize_for_logging, sanitize_text


def _json_default(value: Any) -> Any:
    if isinstance(value, datetime):
        aware = value if value.tzinfo else value.replace(tzinfo=UTC)
        return aware.astimezone(UTC).isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    # Pydantic AnyUrl and similar carry a meaningful __str__; anything else is
    # schema drift and should fail loudly.
    if type(value).__str__ is not object.__str__:
        return sanitize_text(str(value))
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


class JournalWriter:
    """Journal for one session: run events in a daily JSONL, snapshots as files."""

    def __init__(self, journal_dir: Path, raw_payload_dir: Path, session_id: str) -> None:
        self.journal_dir = journal_dir
        self.raw_payload_dir = raw_payload_dir
        self.session_id = session_id
        self.journal_dir.mkdir(parents=True, exist_ok=True)
        self.raw_payload_dir.mkdir(parents=True, exist_ok=True)
        self.events_path = self.journal_dir / f"insolation_{datetime.now(UTC):%Y%m%d}.jsonl"

    def write_event(
        self,
        event_type: str,
        payload: dict[str, Any],
        metadata: dict[str, Any] | None = None,
    ) -> None:
        """Append a single event record to the JSONL journal."""
        record = {
            "ts": datetime.now(UTC).isoformat(),
            "event_type": event_type,
            "session_id": self.session_id,
            "payload": sanitize_for_logging(payload),
            "metadata": sanitize_for_logging(metadata or {}),
        }
        try:
            line = json.dumps(record, default=_json_default, ensure_ascii=False)
            with self.events_path.open("a", encoding="utf-8") as fh:
                fh.write(line + "\n")
        except (OSError, TypeError, ValueError) as exc:
            raise JournalError(f"Failed writing event journal: {exc}") from exc

    def write_raw_snapshot(self, name: str, payload: Any) -> Path:
        """Write a payload snapshot under the raw directory and return its path."""
        stamp = datetime.now(UTC).strftime("%Y%m%dT%H%M%SZ")
        safe_name = "".join(ch if ch.isalnum() or ch in {"-", "_"} else "_" for ch in name)
        output_path = self.raw_payload_dir / f"{stamp}_{self.session_id}_{safe_name}.json"
        try:
            text = json.dumps(
                sanitize_for_logging(payload),
                ensure_ascii=False,
                indent=2,
                default=_json_default,
            )
            output_path.write_text(text + "\n", encoding="utf-8")
        except (OSError, TypeError, ValueError) as exc:
            raise JournalError(f"Failed writing raw payload snapshot: {exc}") from exc
        return output_path

    def write_model_snapshot(self, name: str, items: Sequence[BaseModel]) -> Path:
        """Snapshot a list of pydantic models (extraction results, records)."""
        return self.write_raw_snapshot(name, [item.model_dump(mode="json") for item in items])
