"""Process-local store used for tests and STORAGE_BACKEND=memory runs."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date, timedelta

from ..models import InsolationRecord, NaturalKey, StoreStatistics
from .base import InsolationStore


class InMemoryInsolationStore(InsolationStore):
    def __init__(self) -> None:
        self._rows: dict[NaturalKey, InsolationRecord] = {}
        self.upsert_calls = 0

    def upsert(self, records: Sequence[InsolationRecord]) -> int:
        self.upsert_calls += 1
        for record in records:
            self._rows[record.natural_key] = record.model_copy()
        return len(records)

    def all_records(self) -> list[InsolationRecord]:
        return [self._rows[key] for key in sorted(self._rows)]

    def get_for_datetime(self, day: date, hour: int) -> list[InsolationRecord]:
        return [
            record
            for record in self.all_records()
            if record.date == day and record.hour == hour
        ]

    def get_latest(self, limit: int = 100) -> list[InsolationRecord]:
        by_city = sorted(self._rows.values(), key=lambda record: record.city)
        ordered = sorted(by_city, key=lambda record: (record.date, record.hour), reverse=True)
        return ordered[:limit]

    def exists_for_datetime(self, day: date, hour: int) -> bool:
        return any(record.date == day and record.hour == hour for record in self._rows.values())

    def statistics(self) -> StoreStatistics:
        if not self._rows:
            return StoreStatistics()
        records = self._rows.values()
        return StoreStatistics(
            total_records=len(self._rows),
            unique_dates=len({record.date for record in records}),
            unique_cities=len({record.city for record in records}),
            latest_date=max(record.date for record in records),
        )

    def delete_older_than(self, days: int, *, today: date | None = None) -> int:
        cutoff = (today or date.today()) - timedelta(days=days)
        stale = [key for key, record in self._rows.items() if record.date < cutoff]
        for key in stale:
            del self._rows[key]
        return len(stale)
