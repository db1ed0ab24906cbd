"""Claude-backed structured extraction of insolation maps."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import date
from typing import TYPE_CHECKING, Any

import anthropic
from pydantic import ValidationError

from ..exceptions import ConfigError, ExtractionError
from ..fetcher import to_base64
from ..redaction import sanitize_text
from .base import VisionExtractor
from .models import ExtractionResult, VisionPayload
from .prompt import build_analysis_prompt

if TYPE_CHECKING:
    from ..config import Settings
    from ..models import ImageSource


class AnthropicVisionExtractor(VisionExtractor):
    """Send one map image to Claude and force a schema-shaped tool call back."""

    tool_name = "record_insolation_map"
    media_type = "image/png"

    def __init__(
        self,
        settings: Settings,
        logger: logging.Logger,
        client: Any | None = None,
        today_provider: Callable[[], date] | None = None,
    ) -> None:
        self.settings = settings
        self.logger = logger
        if client is None:
            if not settings.anthropic_api_key:
                raise ConfigError("ANTHROPIC_API_KEY is required for vision extraction.")
            client = anthropic.AsyncAnthropic(api_key=settings.anthropic_api_key)
        self._client = client
        self._today = today_provider or date.today
        self._tool = {
            "name": self.tool_name,
            "description": (
                "Record the forecast date, hour and per-city PV insolation read from the map."
            ),
            "input_schema": VisionPayload.model_json_schema(),
        }

    async def close(self) -> None:
        await self._client.close()

    async def analyze(self, image_bytes: bytes, *, source: ImageSource) -> ExtractionResult:
        """Analyze one image; every failure mode surfaces as ExtractionError."""
        if not image_bytes:
            raise ExtractionError(f"Empty image payload for {source.url}.")

        prompt = build_analysis_prompt(self._today())
        content = [
            {"type": "text", "text": prompt},
            {
                "type": "image",
                "source": {
                    "type": "base64",
                    "media_type": self.media_type,
                    "data": to_base64(image_bytes),
                },
            },
        ]
        timeout = self.settings.extraction_timeout_seconds
        try:
            response = await asyncio.wait_for(
                self._client.messages.create(
                    model=self.settings.vision_model,
                    max_tokens=self.settings.vision_max_tokens,
                    temperature=self.settings.vision_temperature,
                    tools=[self._tool],
                    tool_choice={"type": "tool", "name": self.tool_name},
                    messages=[{"role": "user", "content": content}],
                ),
                timeout=timeout,
            )
        except TimeoutError as exc:
            raise ExtractionError(f"Vision call timed out after {timeout:g}s.") from exc
        except anthropic.APIError as exc:
            raise ExtractionError(
                f"Vision API request failed: {sanitize_text(str(exc))}"
            ) from exc

        payload = self._tool_input(response)
        try:
            parsed = VisionPayload.model_validate(payload)
        except ValidationError as exc:
            raise ExtractionError(
                f"Vision output failed schema validation: {exc.error_count()} error(s): "
                f"{sanitize_text(str(exc))[:300]}"
            ) from exc

        if not parsed.cities:
            raise ExtractionError("Vision output contained no cities.")

        result = ExtractionResult(
            capture_date=_parse_capture_date(parsed.date),
            capture_hour=parsed.hour,
            cities=parsed.cities,
            image_url=source.url,
            percentage_tag=source.percentage_tag,
        )
        self.logger.debug(
            "Extracted %d cities for %s %02d:00 from layer %d",
            len(result.cities),
            result.capture_date.isoformat(),
            result.capture_hour,
            source.percentage_tag,
        )
        return result

    def _tool_input(self, response: Any) -> dict[str, Any]:
        for block in getattr(response, "content", None) or []:
            if getattr(block, "type", None) == "tool_use" and block.name == self.tool_name:
                if not isinstance(block.input, dict) or not block.input:
                    break
                return block.input
        stop_reason = getattr(response, "stop_reason", None)
        raise ExtractionError(
            f"Vision response had no structured output (stop_reason={stop_reason})."
        )


def _parse_capture_date(value: str) -> date:
    try:
        return date.fromisoformat(value.strip())
    except ValueError as exc:
        raise ExtractionError(f"Vision output date is not an ISO date: {value!r}.") from exc
