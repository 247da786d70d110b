"""Pytest configuration and fixtures."""

from __future__ import annotations

import asyncio
import json
from typing import Any, Callable, Optional
from urllib.parse import unquote

import httpx
import pytest

from media_catalog.errors import UpstreamError
from media_catalog.models import SearchResult
from media_catalog.services.meta_cache import MetaInfoCache
from media_catalog.services.openlist_client import OpenListClient


BASE_URL = "http://openlist.test"
_DEFAULT = object()


class FakeOpenListServer:
    """In-memory stand-in for the OpenList ``/api/fs`` endpoints."""

    def __init__(self) -> None:
        self.files: dict[str, str] = {}
        self.dirs: dict[str, list[dict[str, Any]]] = {}
        self.requests: list[tuple[str, str]] = []
        self.uploads: list[tuple[str, str]] = []
        self.removed: list[dict[str, Any]] = []
        self.fail_list = False
        self.fail_upload = False
        self.fail_reads_after_upload = False
        self.raw_urls: dict[str, str] = {}

    def add_folders(self, root: str, names: list[str]) -> None:
        entries = self.dirs.setdefault(root, [])
        for name in names:
            entries.append(
                {"name": name, "is_dir": True, "size": 0, "modified": "2024-01-01T00:00:00Z"}
            )

    def add_file_entry(self, root: str, name: str) -> None:
        self.dirs.setdefault(root, []).append(
            {"name": name, "is_dir": False, "size": 10, "modified": "2024-01-01T00:00:00Z"}
        )

    def handle(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        self.requests.append((request.method, path))
        if path == "/api/fs/list":
            if self.fail_list:
                return httpx.Response(200, json={"code": 500, "message": "storage offline"})
            body = json.loads(request.content)
            content = self.dirs.get(body["path"])
            if content is None:
                return httpx.Response(200, json={"code": 500, "message": "object not found"})
            return httpx.Response(
                200,
                json={"code": 200, "message": "success", "data": {"content": content, "total": len(content)}},
            )
        if path == "/api/fs/get":
            body = json.loads(request.content)
            file_path = body["path"]
            if file_path not in self.files or (self.fail_reads_after_upload and self.uploads):
                return httpx.Response(200, json={"code": 500, "message": "object not found"})
            return httpx.Response(
                200,
                json={
                    "code": 200,
                    "message": "success",
                    "data": {
                        "name": file_path.rsplit("/", 1)[-1],
                        "is_dir": False,
                        "size": len(self.files[file_path]),
                        "sign": "",
                        "raw_url": self.raw_urls.get(file_path, f"{BASE_URL}/raw{file_path}"),
                    },
                },
            )
        if path.startswith("/raw/"):
            file_path = path[len("/raw") :]
            if file_path not in self.files:
                return httpx.Response(404, text="not found")
            return httpx.Response(200, content=self.files[file_path].encode("utf-8"))
        if path == "/api/fs/put":
            if self.fail_upload:
                return httpx.Response(500, text="disk full")
            file_path = unquote(request.headers["File-Path"])
            content = request.content.decode("utf-8")
            self.files[file_path] = content
            self.uploads.append((file_path, content))
            return httpx.Response(200, json={"code": 200, "message": "success", "data": None})
        if path == "/api/fs/remove":
            body = json.loads(request.content)
            self.removed.append(body)
            return httpx.Response(200, json={"code": 200, "message": "success", "data": None})
        return httpx.Response(404, json={"code": 404, "message": "no route"})


class FakeSearch:
    """Records queries; answers from ``results`` (a ``SearchResult``, ``None`` or an exception)."""

    def __init__(self, results: Optional[dict[str, Any]] = None) -> None:
        self.results = results or {}
        self.calls: list[str] = []
        self.on_call: Optional[Callable[[str], None]] = None

    async def search(self, query: str) -> Optional[SearchResult]:
        self.calls.append(query)
        if self.on_call is not None:
            self.on_call(query)
        await asyncio.sleep(0)
        outcome = self.results.get(query, _DEFAULT)
        if isinstance(outcome, Exception):
            raise outcome
        if outcome is _DEFAULT:
            return make_result(query)
        return outcome


def make_result(query: str, media_type: str = "movie", **overrides: Any) -> SearchResult:
    data: dict[str, Any] = {
        "id": sum(map(ord, query)),
        "poster_path": f"/{query.lower().replace(' ', '_')}.jpg",
        "overview": f"About {query}",
        "vote_average": 7.5,
        "media_type": media_type,
    }
    if media_type == "movie":
        data.update(title=f"{query} (film)", release_date="2020-05-01")
    else:
        data.update(name=f"{query} (series)", first_air_date="2019-09-10")
    data.update(overrides)
    return SearchResult.model_validate(data)


def upstream_failure(query: str) -> UpstreamError:
    return UpstreamError(operation="search", url="https://api.themoviedb.org/3/search/multi", status_code=503, message=f"busy: {query}")


@pytest.fixture
def server() -> FakeOpenListServer:
    return FakeOpenListServer()


@pytest.fixture
def storage(server: FakeOpenListServer) -> OpenListClient:
    return OpenListClient(BASE_URL, "secret-token", transport=httpx.MockTransport(server.handle))


@pytest.fixture
def cache() -> MetaInfoCache:
    return MetaInfoCache()


@pytest.fixture
def search() -> FakeSearch:
    return FakeSearch()
