"""Supabase (PostgREST) backed insolation table."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import date, timedelta
from typing import TYPE_CHECKING, Any

import httpx
from postgrest.exceptions import APIError
from supabase import Client, create_client

from ..exceptions import ConfigError, PersistenceError
from ..models import InsolationRecord, StoreStatistics
from ..redaction import sanitize_text
from .base import InsolationStore

if TYPE_CHECKING:
    from ..config import Settings

CONFLICT_TARGET = "city,province,date,hour"
# PostgREST caps a single response at 1000 rows by default.
DEFAULT_PAGE_SIZE = 1000


class SupabaseInsolationStore(InsolationStore):
    """Writes with the service-role key; upserts in fixed-size chunks."""

    page_size = DEFAULT_PAGE_SIZE

    def __init__(
        self,
        settings: Settings,
        logger: logging.Logger,
        client: Client | None = None,
    ) -> None:
        self.settings = settings
        self.logger = logger
        self.table_name = settings.insolation_table
        self.chunk_size = settings.upsert_chunk_size
        if client is None:
            if settings.supabase_url is None or not settings.supabase_service_role_key:
                raise ConfigError("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY are required.")
            client = create_client(str(settings.supabase_url), settings.supabase_service_role_key)
        self._client = client

    def _table(self) -> Any:
        return self._client.table(self.table_name)

    def _execute(self, query: Any, context: str) -> Any:
        try:
            return query.execute()
        except (APIError, httpx.HTTPError) as exc:
            raise PersistenceError(f"Supabase {context} failed: {_describe(exc)}") from exc

    def upsert(self, records: Sequence[InsolationRecord]) -> int:
        if not records:
            return 0
        rows = [record.to_row() for record in records]
        written = 0
        for start in range(0, len(rows), self.chunk_size):
            chunk = rows[start : start + self.chunk_size]
            try:
                self._table().upsert(chunk, on_conflict=CONFLICT_TARGET).execute()
            except (APIError, httpx.HTTPError) as exc:
                raise PersistenceError(
                    f"Supabase upsert failed after {written}/{len(rows)} rows: {_describe(exc)}",
                    written=written,
                ) from exc
            written += len(chunk)
            self.logger.info("Upserted %d/%d rows into %s", written, len(rows), self.table_name)
        return written

    def get_for_datetime(self, day: date, hour: int) -> list[InsolationRecord]:
        query = (
            self._table()
            .select("*")
            .eq("date", day.isoformat())
            .eq("hour", hour)
            .order("city")
        )
        response = self._execute(query, "select by date/hour")
        return _to_records(response.data)

    def get_latest(self, limit: int = 100) -> list[InsolationRecord]:
        query = (
            self._table()
            .select("*")
            .order("date", desc=True)
            .order("hour", desc=True)
            .order("city")
            .limit(limit)
        )
        response = self._execute(query, "select latest")
        return _to_records(response.data)

    def exists_for_datetime(self, day: date, hour: int) -> bool:
        query = (
            self._table()
            .select("city", count="exact")
            .eq("date", day.isoformat())
            .eq("hour", hour)
            .limit(1)
        )
        response = self._execute(query, "existence check")
        return bool(response.count or response.data)

    def statistics(self) -> StoreStatistics:
        """Exact row count plus distinct dates and cities read page by page."""
        count_query = self._table().select("city", count="exact").limit(1)
        total = self._execute(count_query, "statistics count").count or 0
        if total == 0:
            return StoreStatistics()

        latest_query = self._table().select("date").order("date", desc=True).limit(1)
        latest_rows = self._execute(latest_query, "statistics latest date").data or []

        dates: set[str] = set()
        cities: set[str] = set()
        start = 0
        while True:
            page_query = (
                self._table()
                .select("date,city")
                .order("date")
                .order("hour")
                .order("city")
                .range(start, start + self.page_size - 1)
            )
            rows = self._execute(page_query, "statistics page").data or []
            dates.update(row["date"] for row in rows)
            cities.update(row["city"] for row in rows)
            if len(rows) < self.page_size:
                break
            start += self.page_size

        return StoreStatistics(
            total_records=total,
            unique_dates=len(dates),
            unique_cities=len(cities),
            latest_date=latest_rows[0]["date"] if latest_rows else None,
        )

    def delete_older_than(self, days: int, *, today: date | None = None) -> int:
        cutoff = (today or date.today()) - timedelta(days=days)
        query = self._table().delete().lt("date", cutoff.isoformat())
        response = self._execute(query, "retention delete")
        deleted = len(response.data or [])
        self.logger.info("Deleted %d rows older than %s", deleted, cutoff.isoformat())
        return deleted


def _to_records(rows: list[dict[str, Any]] | None) -> list[InsolationRecord]:
    return [InsolationRecord.model_validate(row) for row in rows or []]


def _describe(exc: Exception) -> str:
    if isinstance(exc, APIError):
        return sanitize_text(f"{exc.code or 'error'}: {exc.message}")
    return sanitize_text(f"{type(exc).__name__}: {exc}")
