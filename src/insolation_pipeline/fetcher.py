"""HTTP download of forecast-map images with linear-backoff retries."""

from __future__ import annotations

import asyncio
import base64
import logging
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any

import httpx

from .exceptions import FetchError
from .redaction import sanitize_text

if TYPE_CHECKING:
    from .config import Settings

# The image host rejects requests that do not look like a browser page load.
BROWSER_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36"
    ),
    "Referer": "https://modele.imgw.pl/cmm/?page_id=37629",
    "Origin": "https://modele.imgw.pl",
    "Accept": "image/webp,image/apng,image/svg+xml,image/*,*/*;q=0.8",
    "Accept-Language": "pl-PL,pl;q=0.9,en-US;q=0.8,en;q=0.7",
}


def to_base64(data: bytes) -> str:
    """Encode raw image bytes for JSON transport."""
    return base64.standard_b64encode(data).decode("ascii")


class ImageFetcher:
    """Fetches raw image bytes, retrying non-2xx and transport failures."""

    def __init__(
        self,
        settings: Settings,
        logger: logging.Logger,
        client: httpx.AsyncClient | None = None,
        sleep_fn: Callable[[float], Awaitable[None]] | None = None,
    ) -> None:
        self.settings = settings
        self.logger = logger
        self.max_attempts = settings.image_fetch_max_attempts
        self.retry_delay_seconds = settings.image_fetch_retry_delay_seconds
        self._client = client or httpx.AsyncClient(
            timeout=settings.image_fetch_timeout_seconds,
            headers=BROWSER_HEADERS,
            follow_redirects=True,
        )
        self._sleep = sleep_fn or asyncio.sleep

    async def __aenter__(self) -> ImageFetcher:
        return self

    async def __aexit__(self, exc_type: Any, exc: Any, exc_tb: Any) -> None:
        await self.close()

    async def close(self) -> None:
        await self._client.aclose()

    async def fetch(self, url: str) -> bytes:
        """Download one image; raise FetchError once every attempt has failed."""
        last_error: Exception | None = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                response = await self._client.get(url, headers=BROWSER_HEADERS)
                response.raise_for_status()
                return response.content
            except httpx.HTTPStatusError as exc:
                last_error = exc
                reason = f"HTTP {exc.response.status_code}: {exc.response.reason_phrase}"
            except httpx.HTTPError as exc:
                last_error = exc
                reason = f"{type(exc).__name__}: {sanitize_text(str(exc)) or 'no detail'}"

            self.logger.warning(
                "Image fetch attempt %d/%d failed for %s: %s",
                attempt,
                self.max_attempts,
                url,
                reason,
                extra={"image_url": url, "attempt": attempt, "max_attempts": self.max_attempts},
            )
            if attempt < self.max_attempts:
                await self._sleep(self.retry_delay_seconds * attempt)

        raise FetchError(
            f"Failed to fetch image after {self.max_attempts} attempts: {reason}",
            url=url,
            attempts=self.max_attempts,
        ) from last_error
