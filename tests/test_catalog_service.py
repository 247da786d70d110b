"""Tests for the paginated catalog listing."""

from __future__ import annotations

import asyncio
import json

import pytest

from media_catalog.models import FolderRecord, MetaDocument
from media_catalog.services.catalog_service import CatalogService
from media_catalog.services.metainfo import dump_document


ROOT = "/movies"
METAINFO = "/movies/metainfo.json"


def _record(name: str, last_updated: int, **overrides) -> FolderRecord:
    data = {
        "tmdb_id": 1,
        "title": name,
        "poster_path": f"/{name}.jpg",
        "release_date": "2014-11-05",
        "overview": f"{name} overview",
        "vote_average": 8.0,
        "media_type": "movie",
        "last_updated": last_updated,
    }
    data.update(overrides)
    return FolderRecord(**data)


def _document(count: int) -> MetaDocument:
    return MetaDocument(
        folders={f"folder-{index:02d}": _record(f"folder-{index:02d}", index) for index in range(count)},
        last_refresh=99,
    )


def test_pagination_over_twenty_five_folders(storage, cache) -> None:
    cache.set(ROOT, _document(25))
    catalog = CatalogService(storage, cache=cache)

    page_two = asyncio.run(catalog.list(ROOT, page=2, page_size=10))
    assert len(page_two.items) == 10
    assert page_two.total == 25
    assert page_two.total_pages == 3
    assert page_two.page == 2
    assert page_two.page_size == 10

    page_three = asyncio.run(catalog.list(ROOT, page=3, page_size=10))
    assert len(page_three.items) == 5

    page_four = asyncio.run(catalog.list(ROOT, page=4, page_size=10))
    assert page_four.items == []
    assert page_four.total == 25
    assert page_four.error is None


def test_items_sorted_by_last_updated_desc_then_name(storage, cache) -> None:
    cache.set(
        ROOT,
        MetaDocument(
            folders={
                "b-tie": _record("b-tie", 500),
                "oldest": _record("oldest", 100),
                "a-tie": _record("a-tie", 500),
                "newest": _record("newest", 900),
            },
            last_refresh=1,
        ),
    )

    page = asyncio.run(CatalogService(storage, cache=cache).list(ROOT))

    assert [item.id for item in page.items] == ["newest", "a-tie", "b-tie", "oldest"]


def test_item_view_fields(storage, cache) -> None:
    cache.set(ROOT, MetaDocument(folders={"Interstellar": _record("Interstellar", 7, title="星际穿越")}, last_refresh=1))

    item = asyncio.run(CatalogService(storage, cache=cache).list(ROOT)).items[0]

    assert item.id == "Interstellar"
    assert item.folder == "Interstellar"
    assert item.title == "星际穿越"
    assert item.poster == "https://image.tmdb.org/t/p/w500/Interstellar.jpg"
    assert item.release_date == "2014-11-05"
    assert item.year == "2014"
    assert item.vote_average == 8.0
    assert item.media_type == "movie"
    assert item.last_updated == 7


def test_empty_poster_stays_empty(storage, cache) -> None:
    cache.set(ROOT, MetaDocument(folders={"X": _record("X", 1, poster_path="", release_date="")}, last_refresh=1))

    item = asyncio.run(CatalogService(storage, cache=cache).list(ROOT)).items[0]

    assert item.poster == ""
    assert item.year == ""


def test_cold_load_populates_cache(server, storage, cache) -> None:
    server.files[METAINFO] = dump_document(_document(3))
    catalog = CatalogService(storage, cache=cache)

    page = asyncio.run(catalog.list(ROOT))

    assert page.total == 3
    assert cache.get(ROOT) == _document(3)

    server.requests.clear()
    asyncio.run(catalog.list(ROOT))
    assert server.requests == []


def test_missing_document_returns_empty_page(storage, cache) -> None:
    page = asyncio.run(CatalogService(storage, cache=cache).list(ROOT, page=1, page_size=10))

    assert page.items == []
    assert page.total == 0
    assert page.total_pages == 0
    assert page.error
    assert cache.get(ROOT) is None


def test_malformed_download_url_returns_empty_page(server, storage, cache) -> None:
    server.files[METAINFO] = dump_document(_document(3))
    server.raw_urls[METAINFO] = "http://[::1/raw"

    page = asyncio.run(CatalogService(storage, cache=cache).list(ROOT))

    assert page.items == []
    assert page.total == 0
    assert page.error
    assert cache.get(ROOT) is None


@pytest.mark.parametrize("content",["{broken", json.dumps({"last_refresh": 1}), json.dumps({"folders": []})])
def test_invalid_document_returns_empty_page(server, storage, cache, content: str) -> None:
    server.files[METAINFO] = content

    page = asyncio.run(CatalogService(storage, cache=cache).list(ROOT))

    assert page.items == []
    assert page.total == 0
    assert cache.get(ROOT) is None


def test_invalid_page_arguments_are_clamped(storage, cache) -> None:
    cache.set(ROOT, _document(3))

    page = asyncio.run(CatalogService(storage, cache=cache, default_page_size=2).list(ROOT, page=0, page_size=0))

    assert page.page == 1
    assert page.page_size == 2
    assert len(page.items) == 2
    assert page.total_pages == 2


def test_get_item(storage, cache) -> None:
    cache.set(ROOT, _document(2))
    catalog = CatalogService(storage, cache=cache)

    item = asyncio.run(catalog.get_item(ROOT, "folder-01"))
    assert item is not None
    assert item.title == "folder-01"

    assert asyncio.run(catalog.get_item(ROOT, "missing")) is None


def test_get_item_without_document(storage, cache) -> None:
    assert asyncio.run(CatalogService(storage, cache=cache).get_item(ROOT, "anything")) is None
