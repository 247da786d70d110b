from __future__ import annotations

import logging
from typing import Any, Optional
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from media_catalog.errors import (
    ConfigurationError,
    ParseError,
    RequestTimeoutError,
    UpstreamError,
)
from media_catalog.models import FileDescriptor, RemoteEntry
from media_catalog.utils import normalize_remote_path, split_remote_path


DOWNLOAD_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept": "*/*",
    "Accept-Language": "zh-CN,zh;q=0.9,en;q=0.8",
}


class OpenListClient:
    """Typed calls against the OpenList ``/api/fs`` endpoints.

    Every call is a single attempt. Non-success HTTP statuses and envelopes
    whose ``code`` is not 200 raise :class:`UpstreamError`.
    """

    def __init__(
        self,
        base_url: str,
        token: str,
        timeout: httpx.Timeout | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not base_url or not token:
            raise ConfigurationError("OpenList base URL and token are required")
        self._base_url = base_url.rstrip("/")
        self._token = token
        self._timeout = timeout or httpx.Timeout(30.0, connect=10.0)
        self._transport = transport
        self._logger = logging.getLogger("media_catalog.openlist")

    @property
    def base_url(self) -> str:
        return self._base_url

    async def list_directory(
        self, path: str, page: int = 1, per_page: int = 0
    ) -> list[RemoteEntry]:
        """List ``path``; ``per_page=0`` asks the server for every entry at once."""
        normalized = normalize_remote_path(path)
        data = await self._post_json(
            "/api/fs/list",
            {
                "path": normalized,
                "password": "",
                "refresh": False,
                "page": page,
                "per_page": per_page,
            },
            operation="list_directory",
        )
        content = (data or {}).get("content") or []
        try:
            return [RemoteEntry.model_validate(item) for item in content]
        except ValidationError as exc:
            raise ParseError(f"unexpected listing entry under {normalized}: {exc}") from exc

    async def get_file(self, path: str) -> FileDescriptor:
        normalized = normalize_remote_path(path)
        data = await self._post_json(
            "/api/fs/get",
            {"path": normalized, "password": ""},
            operation="get_file",
        )
        try:
            descriptor = FileDescriptor.model_validate(data or {})
        except ValidationError as exc:
            raise ParseError(f"unexpected file descriptor for {normalized}: {exc}") from exc
        if descriptor.sign:
            descriptor = descriptor.model_copy(
                update={"signed_url": self._signed_url(normalized, descriptor.sign)}
            )
        return descriptor

    async def upload_file(self, path: str, content: str) -> None:
        normalized = normalize_remote_path(path)
        url = f"{self._base_url}/api/fs/put"
        response = await self._send(
            "PUT",
            url,
            operation="upload_file",
            content=content.encode("utf-8"),
            headers={
                "Authorization": self._token,
                "Content-Type": "text/plain; charset=utf-8",
                "File-Path": quote(normalized, safe=""),
                "As-Task": "false",
            },
        )
        if not response.is_success:
            raise UpstreamError(
                operation="upload_file",
                url=url,
                status_code=response.status_code,
                message=response.text,
            )
        self._check_envelope(response, url, operation="upload_file", strict=False)
        self._logger.info(
            "uploaded file", extra={"path": normalized, "bytes": len(content)}
        )

    async def delete_file(self, path: str) -> None:
        directory, name = split_remote_path(path)
        await self._post_json(
            "/api/fs/remove",
            {"names": [name], "dir": directory},
            operation="delete_file",
        )

    async def fetch_text(self, url: str) -> str:
        """Download the body behind a descriptor URL."""
        response = await self._send(
            "GET", url, operation="fetch_text", headers=DOWNLOAD_HEADERS
        )
        if not response.is_success:
            raise UpstreamError(
                operation="fetch_text",
                url=url,
                status_code=response.status_code,
                message=response.text[:300],
            )
        return response.content.decode("utf-8", errors="replace")

    def _signed_url(self, path: str, sign: str) -> str:
        return f"{self._base_url}/d{quote(path)}?sign={quote(sign, safe='')}"

    def _headers(self) -> dict[str, str]:
        return {"Authorization": self._token, "Content-Type": "application/json"}

    async def _post_json(
        self, endpoint: str, payload: dict[str, Any], operation: str
    ) -> Any:
        url = f"{self._base_url}{endpoint}"
        response = await self._send(
            "POST", url, operation=operation, json=payload, headers=self._headers()
        )
        if not response.is_success:
            raise UpstreamError(
                operation=operation,
                url=url,
                status_code=response.status_code,
                message=response.text[:300],
            )
        return self._check_envelope(response, url, operation=operation)

    def _check_envelope(
        self, response: httpx.Response, url: str, operation: str, strict: bool = True
    ) -> Optional[Any]:
        try:
            body = response.json()
        except ValueError:
            if not strict:
                return None
            raise UpstreamError(
                operation=operation,
                url=url,
                status_code=response.status_code,
                message="response is not JSON",
            )
        if not isinstance(body, dict):
            if not strict:
                return None
            raise UpstreamError(
                operation=operation,
                url=url,
                status_code=response.status_code,
                message="response is not a JSON object",
            )
        code = body.get("code", 200 if not strict else None)
        if code != 200:
            raise UpstreamError(
                operation=operation,
                url=url,
                status_code=code if isinstance(code, int) else response.status_code,
                message=str(body.get("message") or ""),
            )
        return body.get("data")

    async def _send(
        self, method: str, url: str, operation: str, **kwargs: Any
    ) -> httpx.Response:
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout,
                follow_redirects=True,
                trust_env=False,
                transport=self._transport,
            ) as client:
                return await client.request(method, url, **kwargs)
        except httpx.TimeoutException as exc:
            raise RequestTimeoutError(
                operation=operation, url=url, status_code=0, message=str(exc) or "timed out"
            ) from exc
        except (httpx.RequestError, httpx.InvalidURL) as exc:
            raise UpstreamError(
                operation=operation, url=url, status_code=0, message=str(exc)
            ) from exc
