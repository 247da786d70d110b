from __future__ import annotations

import logging
from typing import Any, Optional

import httpx
from pydantic import ValidationError

from media_catalog.errors import (
    ConfigurationError,
    ParseError,
    RequestTimeoutError,
    UpstreamError,
)
from media_catalog.models import SearchResult


TMDB_BASE_URL = "https://api.themoviedb.org/3"
TMDB_IMAGE_BASE_URL = "https://image.tmdb.org/t/p"
PROXY_TIMEOUT_SEC = 30.0
DIRECT_TIMEOUT_SEC = 15.0
SUPPORTED_MEDIA_TYPES = {"movie", "tv"}

# One pooled client per proxy address, kept for the life of the process.
_proxy_clients: dict[str, httpx.AsyncClient] = {}


def get_proxy_client(proxy: str) -> httpx.AsyncClient:
    client = _proxy_clients.get(proxy)
    if client is None or client.is_closed:
        client = httpx.AsyncClient(
            proxy=proxy,
            timeout=httpx.Timeout(PROXY_TIMEOUT_SEC),
            limits=httpx.Limits(
                max_connections=10,
                max_keepalive_connections=5,
                keepalive_expiry=60.0,
            ),
            trust_env=False,
        )
        _proxy_clients[proxy] = client
    return client


async def close_proxy_clients() -> None:
    clients = list(_proxy_clients.values())
    _proxy_clients.clear()
    for client in clients:
        await client.aclose()


def poster_url(path: Optional[str], size: str = "w500") -> str:
    if not path:
        return ""
    return f"{TMDB_IMAGE_BASE_URL}/{size}{path}"


class TMDBSearchClient:
    """Best-match lookup against TMDB multi search (movies and series at once)."""

    def __init__(
        self,
        api_key: str,
        proxy: Optional[str] = None,
        language: str = "zh-CN",
        base_url: str = TMDB_BASE_URL,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key
        self._proxy = proxy or None
        self._language = language
        self._base_url = base_url.rstrip("/")
        self._transport = transport
        self._logger = logging.getLogger("media_catalog.tmdb")

    @property
    def timeout(self) -> float:
        return PROXY_TIMEOUT_SEC if self._proxy else DIRECT_TIMEOUT_SEC

    async def search(self, query: str) -> Optional[SearchResult]:
        if not self._api_key:
            raise ConfigurationError("TMDB API key is not configured")

        url = f"{self._base_url}/search/multi"
        params = {
            "api_key": self._api_key,
            "language": self._language,
            "query": query,
            "page": 1,
        }
        response = await self._get(url, params)
        if not response.is_success:
            self._logger.warning(
                "tmdb search failed",
                extra={"query": query, "status": response.status_code},
            )
            raise UpstreamError(
                operation="search",
                url=url,
                status_code=response.status_code,
                message=response.reason_phrase or response.text[:300],
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise ParseError(f"TMDB returned non-JSON body for {query!r}") from exc

        results = payload.get("results") if isinstance(payload, dict) else None
        candidates = [
            item
            for item in results or []
            if isinstance(item, dict) and item.get("media_type") in SUPPORTED_MEDIA_TYPES
        ]
        if not candidates:
            return None
        try:
            return SearchResult.model_validate(candidates[0])
        except ValidationError as exc:
            raise ParseError(f"unexpected TMDB result for {query!r}: {exc}") from exc

    async def _get(self, url: str, params: dict[str, Any]) -> httpx.Response:
        try:
            if self._proxy and self._transport is None:
                client = get_proxy_client(self._proxy)
                return await client.get(url, params=params, timeout=self.timeout)
            async with httpx.AsyncClient(
                timeout=self.timeout, trust_env=False, transport=self._transport
            ) as client:
                return await client.get(url, params=params)
        except httpx.TimeoutException as exc:
            raise RequestTimeoutError(
                operation="search", url=url, status_code=0, message="timed out"
            ) from exc
        except (httpx.RequestError, httpx.InvalidURL) as exc:
            raise UpstreamError(
                operation="search", url=url, status_code=0, message=str(exc)
            ) from exc
