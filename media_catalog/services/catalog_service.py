from __future__ import annotations

import logging
import math
from typing import Optional

from media_catalog.errors import CatalogError
from media_catalog.models import CatalogItem, FolderRecord, ListingPage, MetaDocument
from media_catalog.services.meta_cache import MetaInfoCache, meta_cache
from media_catalog.services.metainfo import load_document
from media_catalog.services.openlist_client import OpenListClient
from media_catalog.services.tmdb_search import poster_url
from media_catalog.utils import normalize_remote_path


class CatalogService:
    """Read side of the catalog: paginated listings and single-folder details.

    Never fails on a missing or broken ``metainfo.json``; callers get an empty
    page with ``error`` set instead.
    """

    def __init__(
        self,
        storage: OpenListClient,
        cache: MetaInfoCache | None = None,
        default_page_size: int = 20,
    ) -> None:
        self._storage = storage
        self._cache = cache if cache is not None else meta_cache
        self._default_page_size = default_page_size
        self._logger = logging.getLogger("media_catalog.catalog")

    async def list(
        self, root_path: str, page: int = 1, page_size: int | None = None
    ) -> ListingPage:
        page = max(1, page)
        page_size = max(1, page_size or self._default_page_size)
        document, error = await self._resolve(normalize_remote_path(root_path))
        if document is None:
            return ListingPage(page=page, page_size=page_size, error=error)

        items = sorted(
            (to_catalog_item(name, record) for name, record in document.folders.items()),
            key=lambda item: (-item.last_updated, item.folder),
        )
        total = len(items)
        start = (page - 1) * page_size
        return ListingPage(
            items=items[start : start + page_size],
            total=total,
            page=page,
            page_size=page_size,
            total_pages=math.ceil(total / page_size),
        )

    async def get_item(self, root_path: str, folder: str) -> Optional[CatalogItem]:
        document, _ = await self._resolve(normalize_remote_path(root_path))
        if document is None:
            return None
        record = document.folders.get(folder)
        if record is None:
            return None
        return to_catalog_item(folder, record)

    async def _resolve(self, root: str) -> tuple[Optional[MetaDocument], Optional[str]]:
        cached = self._cache.get(root)
        if cached is not None:
            return cached, None
        try:
            document = await load_document(self._storage, root)
        except CatalogError as exc:
            self._logger.warning(
                "metainfo load failed", extra={"root": root, "error": str(exc)}
            )
            return None, str(exc)
        # a refresh may have committed while the download was in flight
        current = self._cache.get(root)
        if current is not None:
            return current, None
        self._cache.set(root, document)
        return document, None


def to_catalog_item(folder: str, record: FolderRecord) -> CatalogItem:
    return CatalogItem(
        id=folder,
        folder=folder,
        title=record.title,
        poster=poster_url(record.poster_path),
        release_date=record.release_date,
        year=record.release_date.split("-")[0] if record.release_date else "",
        overview=record.overview,
        vote_average=record.vote_average,
        media_type=record.media_type,
        last_updated=record.last_updated,
    )
