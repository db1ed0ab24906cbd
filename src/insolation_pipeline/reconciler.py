"""Collapse per-image observations into one record per natural key."""

from __future__ import annotations

import math
from collections import defaultdict
from collections.abc import Iterable
from typing import Any

from .models import InsolationRecord, NaturalKey, NormalizedObservation


def has_insolation(value: float) -> bool:
    """Zero readings carry no information and are never stored."""
    return value != 0


def _group(observations: Iterable[NormalizedObservation]) -> dict[NaturalKey, list[float]]:
    groups: dict[NaturalKey, list[float]] = defaultdict(list)
    for observation in observations:
        if has_insolation(observation.insolation_percentage):
            groups[observation.natural_key].append(observation.insolation_percentage)
    return groups


def reconcile(observations: Iterable[NormalizedObservation]) -> list[InsolationRecord]:
    """Average duplicate keys and drop zero-valued readings.

    The result does not depend on input order: values are summed with
    ``math.fsum`` and the output is sorted by natural key. Feeding the
    output back in returns the same records.
    """
    records: list[InsolationRecord] = []
    for key, values in sorted(_group(observations).items()):
        mean = round(math.fsum(values) / len(values), 2)
        if not has_insolation(mean):
            continue
        city, province, day, hour = key
        records.append(
            InsolationRecord(
                city=city,
                province=province,
                date=day,
                hour=hour,
                insolation_percentage=mean,
            )
        )
    return records


def duplicate_statistics(observations: Iterable[NormalizedObservation]) -> dict[str, Any]:
    """Counts used for the reconciliation log line."""
    observations = list(observations)
    groups = _group(observations)
    duplicates = {
        f"{city}|{province}|{day.isoformat()}|{hour:02d}": values
        for (city, province, day, hour), values in sorted(groups.items())
        if len(values) > 1
    }
    non_zero = sum(len(values) for values in groups.values())
    return {
        "total_input": len(observations),
        "non_zero": non_zero,
        "filtered_zero": len(observations) - non_zero,
        "unique_keys": len(groups),
        "duplicate_keys": len(duplicates),
        "duplicates": duplicates,
    }
