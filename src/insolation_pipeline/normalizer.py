"""Map extractor city names onto the canonical gazetteer."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import date

from .gazetteer import CITY_ALIASES, CITY_PROVINCES, canonical_province
from .models import NormalizedObservation
from .reconciler import has_insolation
from .vision.models import ExtractionResult, RawCityObservation


class CityNormalizer:
    """Resolves raw city readings to canonical (city, province) pairs.

    Unknown names are dropped with a warning and counted on ``misses``;
    normalization itself never raises for bad input.
    """

    def __init__(
        self,
        gazetteer: Mapping[str, str] = CITY_PROVINCES,
        aliases: Mapping[str, str] = CITY_ALIASES,
        logger: logging.Logger | None = None,
    ) -> None:
        self.gazetteer = gazetteer
        self.aliases = {key.lower(): value for key, value in aliases.items()}
        self.logger = logger or logging.getLogger("insolation_pipeline.normalizer")
        self.misses = 0
        self._lowered = {city.lower(): city for city in gazetteer}

    def match_city(self, name: str) -> str | None:
        """Exact, then case-insensitive, then substring, then alias match."""
        if name in self.gazetteer:
            return name
        lowered = name.strip().lower()
        if not lowered:
            return None
        if lowered in self._lowered:
            return self._lowered[lowered]
        for candidate_lower, city in self._lowered.items():
            if lowered in candidate_lower or candidate_lower in lowered:
                return city
        alias = self.aliases.get(lowered)
        if alias in self.gazetteer:
            return alias
        return None

    def normalize(
        self,
        raw: RawCityObservation,
        *,
        capture_date: date,
        capture_hour: int,
    ) -> NormalizedObservation | None:
        percentage = min(100.0, max(0.0, float(raw.insolation_percentage)))
        if not has_insolation(percentage):
            return None

        city = self.match_city(raw.name)
        if city is None:
            self.misses += 1
            self.logger.warning("City not found in gazetteer, dropping: %r", raw.name)
            return None

        province = canonical_province(raw.province) or self.gazetteer[city]
        return NormalizedObservation(
            city=city,
            province=province,
            date=capture_date,
            hour=capture_hour,
            insolation_percentage=percentage,
        )

    def normalize_result(self, result: ExtractionResult) -> list[NormalizedObservation]:
        observations: list[NormalizedObservation] = []
        for raw in result.cities:
            observation = self.normalize(
                raw,
                capture_date=result.capture_date,
                capture_hour=result.capture_hour,
            )
            if observation is not None:
                observations.append(observation)
        return observations
