"""Storage contract for reconciled insolation records."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from datetime import date

from ..models import InsolationRecord, StoreStatistics


class InsolationStore(ABC):
    """Keyed store of InsolationRecords, unique on (city, province, date, hour)."""

    @abstractmethod
    def upsert(self, records: Sequence[InsolationRecord]) -> int:
        """Insert or replace records by natural key; return rows written."""

    @abstractmethod
    def get_for_datetime(self, day: date, hour: int) -> list[InsolationRecord]:
        """Records for one forecast date and hour, ordered by city."""

    @abstractmethod
    def get_latest(self, limit: int = 100) -> list[InsolationRecord]:
        """Most recent records, newest date and hour first."""

    @abstractmethod
    def exists_for_datetime(self, day: date, hour: int) -> bool:
        """True when at least one record exists for the date and hour."""

    @abstractmethod
    def statistics(self) -> StoreStatistics:
        """Aggregate counts over the whole table."""

    @abstractmethod
    def delete_older_than(self, days: int, *, today: date | None = None) -> int:
        """Delete records dated before ``today - days``; return rows removed."""
