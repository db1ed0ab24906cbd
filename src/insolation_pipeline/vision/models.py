"""Typed models for vision-model extraction output."""

from __future__ import annotations

from datetime import date

from pydantic import BaseModel, Field


class RawCityObservation(BaseModel):
    """One city as read off a forecast map, not yet checked against the gazetteer."""

    name: str = Field(description="Polish city name")
    province: str | None = Field(
        default=None,
        description="Polish province/voivodeship where the city is located (if identifiable)",
    )
    insolation_percentage: float = Field(
        description="Solar insolation percentage for this city (0-100)",
    )


class VisionPayload(BaseModel):
    """Strict output schema the vision model must fill in."""

    date: str = Field(description="Date extracted from the image in YYYY-MM-DD format")
    hour: int = Field(ge=0, le=23, description="Hour extracted from the image (0-23)")
    cities: list[RawCityObservation] = Field(
        description="List of Polish cities with their insolation percentages"
    )


class ExtractionResult(BaseModel):
    """Validated extraction for one successfully analyzed image."""

    capture_date: date
    capture_hour: int = Field(ge=0, le=23)
    cities: list[RawCityObservation] = Field(default_factory=list)
    image_url: str | None = None
    percentage_tag: int | None = None
