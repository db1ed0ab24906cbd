"""Enumeration of the fixed ECMWF PV-sun forecast layers."""

from __future__ import annotations

import re
from typing import Any

from .config import DEFAULT_IMAGE_BASE_URL
from .models import ImageSource

# Layers published upstream; the gaps (24-26, 47-50) are never produced.
IMAGE_PERCENTAGES: tuple[int, ...] = (
    *range(3, 24),
    *range(27, 47),
    *range(51, 71),
)

FILENAME_TEMPLATE = "ECMWF_PPv_sun_{tag}_percent.png"

_PERCENTAGE_RE = re.compile(r"ECMWF_PPv_sun_(\d+)_percent\.png$")
_VALID_URL_RE = re.compile(r"^https://cmm\.imgw\.pl/.*/ECMWF_PPv_sun_\d+_percent\.png$")


def list_sources(base_url: str = DEFAULT_IMAGE_BASE_URL) -> list[ImageSource]:
    """Return one ImageSource per published layer, in ascending tag order."""
    if not base_url.endswith("/"):
        base_url = f"{base_url}/"
    return [
        ImageSource(url=f"{base_url}{FILENAME_TEMPLATE.format(tag=tag)}", percentage_tag=tag)
        for tag in IMAGE_PERCENTAGES
    ]


def percentage_from_url(url: str) -> int:
    match = _PERCENTAGE_RE.search(url)
    if match is None:
        raise ValueError(f"Could not extract percentage tag from URL: {url}")
    return int(match.group(1))


def is_valid_image_url(url: str) -> bool:
    return bool(_VALID_URL_RE.match(url))


def image_metadata(url: str) -> dict[str, Any]:
    """Tag and file name of a layer URL."""
    return {
        "percentage": percentage_from_url(url),
        "filename": url.rsplit("/", 1)[-1] or "unknown",
    }
