"""Vision extractor tests with a fake Anthropic client."""

from __future__ import annotations

import asyncio
import logging
from datetime import date
from types import SimpleNamespace
from typing import Any

import anthropic
import httpx
import pytest

from insolation_pipeline.exceptions import ConfigError, ExtractionError
from insolation_pipeline.models import ImageSource
from insolation_pipeline.vision.anthropic_extractor import AnthropicVisionExtractor
from insolation_pipeline.vision.prompt import build_analysis_prompt

SOURCE = ImageSource(
    url="https://cmm.imgw.pl/maps/ECMWF_PPv_sun_12_percent.png",
    percentage_tag=12,
)


def _make_settings(**overrides: Any) -> Any:
    defaults = {
        "anthropic_api_key": "sk-ant-test-key",
        "vision_model": "claude-test",
        "vision_max_tokens": 512,
        "vision_temperature": 0.1,
        "extraction_timeout_seconds": 5.0,
    }
    defaults.update(overrides)
    return SimpleNamespace(**defaults)


def _tool_response(payload: Any, *, name: str = "record_insolation_map") -> Any:
    return SimpleNamespace(
        content=[SimpleNamespace(type="tool_use", name=name, input=payload)],
        stop_reason="tool_use",
    )


def _make_extractor(create: Any, **settings_overrides: Any) -> tuple[AnthropicVisionExtractor, Any]:
    closed: list[bool] = []

    async def _close() -> None:
        closed.append(True)

    client = SimpleNamespace(messages=SimpleNamespace(create=create), close=_close, closed=closed)
    extractor = AnthropicVisionExtractor(
        settings=_make_settings(**settings_overrides),
        logger=logging.getLogger("test_vision_extractor"),
        client=client,
        today_provider=lambda: date(2026, 6, 1),
    )
    return extractor, client


def test_analyze_sends_image_and_forced_tool_and_parses_result() -> None:
    calls: list[dict[str, Any]] = []

    async def create(**kwargs: Any) -> Any:
        calls.append(kwargs)
        return _tool_response(
            {
                "date": "2026-06-02",
                "hour": 13,
                "cities": [
                    {"name": "Warszawa", "province": "Mazowieckie", "insolation_percentage": 45},
                    {"name": "Kraków", "insolation_percentage": 30.5},
                ],
            }
        )

    extractor, _ = _make_extractor(create)
    result = asyncio.run(extractor.analyze(b"\x89PNG", source=SOURCE))

    assert result.capture_date == date(2026, 6, 2)
    assert result.capture_hour == 13
    assert [city.name for city in result.cities] == ["Warszawa", "Kraków"]
    assert result.cities[1].province is None
    assert result.image_url == SOURCE.url
    assert result.percentage_tag == 12

    request = calls[0]
    assert request["model"] == "claude-test"
    assert request["temperature"] == 0.1
    assert request["tool_choice"] == {"type": "tool", "name": "record_insolation_map"}
    assert request["tools"][0]["input_schema"]["required"] == ["date", "hour", "cities"]
    content = request["messages"][0]["content"]
    assert content[0]["type"] == "text"
    assert "2026-06-01" in content[0]["text"]
    assert content[1]["source"] == {
        "type": "base64",
        "media_type": "image/png",
        "data": "iVBORw==",
    }


def test_analyze_rejects_empty_image_without_calling_model() -> None:
    async def create(**kwargs: Any) -> Any:
        raise AssertionError("model must not be called")

    extractor, _ = _make_extractor(create)
    with pytest.raises(ExtractionError, match="Empty image payload"):
        asyncio.run(extractor.analyze(b"", source=SOURCE))


@pytest.mark.parametrize(
    ("payload", "message"),
    [
        ({"date": "2026-06-02", "hour": 25, "cities": []}, "schema validation"),
        ({"date": "2026-06-02", "cities": []}, "schema validation"),
        (
            {
                "date": "02.06.2026",
                "hour": 10,
                "cities": [{"name": "Opole", "insolation_percentage": 5}],
            },
            "ISO date",
        ),
        ({"date": "2026-06-02", "hour": 10, "cities": []}, "no cities"),
    ],
)
def test_analyze_maps_bad_output_to_extraction_error(payload: dict[str, Any], message: str) -> None:
    async def create(**kwargs: Any) -> Any:
        return _tool_response(payload)

    extractor, _ = _make_extractor(create)
    with pytest.raises(ExtractionError, match=message):
        asyncio.run(extractor.analyze(b"img", source=SOURCE))


def test_analyze_without_tool_output_raises() -> None:
    async def create(**kwargs: Any) -> Any:
        return SimpleNamespace(
            content=[SimpleNamespace(type="text", text="I cannot read this map.")],
            stop_reason="end_turn",
        )

    extractor, _ = _make_extractor(create)
    with pytest.raises(ExtractionError, match="stop_reason=end_turn"):
        asyncio.run(extractor.analyze(b"img", source=SOURCE))


def test_analyze_enforces_timeout() -> None:
    async def create(**kwargs: Any) -> Any:
        await asyncio.sleep(1)
        return _tool_response({})

    extractor, _ = _make_extractor(create, extraction_timeout_seconds=0.01)
    with pytest.raises(ExtractionError, match="timed out"):
        asyncio.run(extractor.analyze(b"img", source=SOURCE))


def test_analyze_wraps_api_errors() -> None:
    async def create(**kwargs: Any) -> Any:
        raise anthropic.APIConnectionError(
            request=httpx.Request("POST", "https://api.anthropic.com/v1/messages")
        )

    extractor, _ = _make_extractor(create)
    with pytest.raises(ExtractionError, match="Vision API request failed") as exc_info:
        asyncio.run(extractor.analyze(b"img", source=SOURCE))
    assert isinstance(exc_info.value.__cause__, anthropic.APIConnectionError)


def test_close_closes_client() -> None:
    async def create(**kwargs: Any) -> Any:
        return None

    extractor, client = _make_extractor(create)
    asyncio.run(extractor.close())
    assert client.closed == [True]


def test_missing_api_key_without_client_raises_config_error() -> None:
    with pytest.raises(ConfigError, match="ANTHROPIC_API_KEY"):
        AnthropicVisionExtractor(
            settings=_make_settings(anthropic_api_key=None),
            logger=logging.getLogger("test_vision_extractor"),
        )


def test_prompt_lists_cities_provinces_and_weekday() -> None:
    prompt = build_analysis_prompt(date(2026, 6, 1))

    assert "Warszawa" in prompt
    assert "Zielona Góra" in prompt
    assert "Warmińsko-Mazurskie" in prompt
    assert "2026-06-01 (poniedziałek)" in prompt
    assert "0%" in prompt
