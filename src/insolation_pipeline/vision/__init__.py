"""Vision-model extraction of insolation forecast maps."""

from .anthropic_extractor import AnthropicVisionExtractor
from .base import VisionExtractor
from .models import ExtractionResult, RawCityObservation, VisionPayload
from .prompt import build_analysis_prompt

__all__ = [
    "AnthropicVisionExtractor",
    "ExtractionResult",
    "RawCityObservation",
    "VisionExtractor",
    "VisionPayload",
    "build_analysis_prompt",
]
