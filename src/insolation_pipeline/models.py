"""Shared typed models for pipeline runs and stored insolation records."""

from __future__ import annotations

from datetime import date
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .vision.models import ExtractionResult

NaturalKey = tuple[str, str, date, int]


class ImageSource(BaseModel):
    """One forecast-layer image to fetch during a run."""

    model_config = ConfigDict(frozen=True)

    url: str
    percentage_tag: int


class NormalizedObservation(BaseModel):
    """A gazetteer-resolved city reading from one image."""

    city: str
    province: str
    date: date
    hour: int = Field(ge=0, le=23)
    insolation_percentage: float = Field(ge=0, le=100)

    @property
    def natural_key(self) -> NaturalKey:
        return (self.city, self.province, self.date, self.hour)


class InsolationRecord(BaseModel):
    """Row of the insolation_data table, unique on (city, province, date, hour)."""

    city: str
    province: str
    date: date
    hour: int = Field(ge=0, le=23)
    insolation_percentage: float = Field(ge=0, le=100)

    @property
    def natural_key(self) -> NaturalKey:
        return (self.city, self.province, self.date, self.hour)

    def to_row(self) -> dict[str, Any]:
        """Serialize for the storage API (ISO date string)."""
        return self.model_dump(mode="json")


class ImageOutcome(BaseModel):
    """Settled result of one fetch+extract task."""

    source: ImageSource
    result: ExtractionResult | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.result is not None


class BatchRunOutcome(BaseModel):
    """Aggregate of every batch in a run."""

    total_sources: int
    results: list[ExtractionResult] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)

    @property
    def failed(self) -> int:
        return self.total_sources - len(self.results)


class RunResult(BaseModel):
    """Summary of one pipeline invocation returned to the caller."""

    total_images: int = 0
    processed_images: int = 0
    failed_images: int = 0
    total_extracted: int = 0
    total_reconciled: int = 0
    successful_writes: int = 0
    errors: list[str] = Field(default_factory=list)
    dry_run: bool = False
    records: list[InsolationRecord] = Field(default_factory=list, exclude=True)
    extractions: list[ExtractionResult] = Field(default_factory=list, exclude=True)

    @property
    def success(self) -> bool:
        return not self.errors or self.successful_writes > 0


class StoreStatistics(BaseModel):
    """Read-side statistics about stored insolation data."""

    total_records: int = 0
    unique_dates: int = 0
    unique_cities: int = 0
    latest_date: date | None = None


class TriggerSummary(BaseModel):
    """JSON body returned by the HTTP trigger."""

    success: bool
    processed_images: int
    failed_images: int
    database_writes: int
    errors: list[str]
    execution_time_ms: int
    timestamp: str
