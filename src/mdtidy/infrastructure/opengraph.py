"""HTTP providers for link previews and page screenshots (OpenGraph.io API).

Both providers share one ``httpx.AsyncClient``.  Any transport error,
non-2xx response, or payload of an unexpected shape raises; retrying is
the enrichment coordinator's job, not the client's.
"""

from __future__ import annotations

import logging
from types import TracebackType
from typing import Any
from urllib.parse import quote

import httpx

logger = logging.getLogger(__name__)

SCREENSHOT_PARAMS: dict[str, str] = {
    "dimensions": "lg",
    "quality": "80",
    "accept_lang": "en",
    "use_proxy": "true",
}


class ProviderError(Exception):
    """The provider answered, but not with something usable."""


class OpenGraphClient:
    """Async client for the ``site`` and ``screenshot`` endpoints.

    Usage::

        async with OpenGraphClient(api_key) as client:
            preview = await client.fetch_preview("https://example.com")
            shot = await client.fetch_screenshot("https://example.com")

    Args:
        api_key: OpenGraph.io ``app_id``.
        base_url: API root, overridable for self-hosted compatibles.
        timeout: Per-request timeout in seconds.
        client: Pre-built client (tests pass one with ``httpx.MockTransport``).
    """

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = "https://opengraph.io/api/1.1",
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout, follow_redirects=True)

    async def __aenter__(self) -> OpenGraphClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def fetch_preview(self, url: str) -> dict[str, Any]:
        """Return raw preview fields keyed by frontmatter name.

        Values are passed through as the API returns them; normalisation
        (``{url: ...}`` objects, quoting, blanks) happens in the coordinator.
        """
        data = await self._get("site", url)
        og = data.get("openGraph")
        if not isinstance(og, dict):
            msg = f"Preview response for {url} has no openGraph object"
            raise ProviderError(msg)

        inferred = data.get("htmlInferred")
        images = inferred.get("images") if isinstance(inferred, dict) else None
        return {
            "og_image": og.get("image"),
            "og_url": og.get("url"),
            "video": og.get("video"),
            "favicon": og.get("favicon"),
            "site_name": og.get("site_name"),
            "title": og.get("title"),
            "description": og.get("description"),
            "og_images": images or data.get("images"),
        }

    async def fetch_screenshot(self, url: str) -> str | None:
        data = await self._get("screenshot", url, SCREENSHOT_PARAMS)
        shot = data.get("screenshotUrl")
        if not isinstance(shot, str) or not shot.strip():
            msg = f"Screenshot response for {url} has no screenshotUrl"
            raise ProviderError(msg)
        return shot

    async def _get(
        self, endpoint: str, url: str, params: dict[str, str] | None = None
    ) -> dict[str, Any]:
        request_url = f"{self._base_url}/{endpoint}/{quote(url, safe='')}"
        response = await self._client.get(
            request_url, params={**(params or {}), "app_id": self._api_key}
        )
        logger.debug("GET %s/%s -> %s", endpoint, url, response.status_code)
        response.raise_for_status()

        try:
            payload = response.json()
        except ValueError as exc:
            msg = f"{endpoint} response for {url} is not JSON"
            raise ProviderError(msg) from exc
        if not isinstance(payload, dict):
            msg = f"{endpoint} response for {url} is not an object"
            raise ProviderError(msg)
        if payload.get("error"):
            msg = f"{endpoint} error for {url}: {payload['error']}"
            raise ProviderError(msg)
        return payload
