"""Provider-agnostic vision extraction interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from .models import ExtractionResult

if TYPE_CHECKING:
    from ..models import ImageSource


class VisionExtractor(ABC):
    """Base contract for services that read an insolation map image."""

    @abstractmethod
    async def analyze(self, image_bytes: bytes, *, source: ImageSource) -> ExtractionResult:
        """Extract capture date, hour and per-city percentages from one image."""

    @abstractmethod
    async def close(self) -> None:
        """Release provider resources."""
