from __future__ import annotations

import asyncio
import logging
import warnings
from typing import Optional

from media_catalog.errors import ParseError, UpstreamError, VerificationWarning
from media_catalog.models import FolderRecord, MetaDocument, RefreshSummary, SearchResult
from media_catalog.services.meta_cache import MetaInfoCache, meta_cache
from media_catalog.services.metainfo import (
    dump_document,
    empty_document,
    load_document,
    metainfo_path,
)
from media_catalog.services.openlist_client import OpenListClient
from media_catalog.services.refresh_state import RefreshStateStore
from media_catalog.services.tmdb_search import TMDBSearchClient
from media_catalog.utils import normalize_remote_path, now_ms


DEFAULT_REQUEST_DELAY_SEC = 0.3


class RefreshJob:
    """Reconciles the folders under a root path with TMDB and ``metainfo.json``.

    A run loads the current document (cache, then remote, then empty), enriches
    folders it has never seen in listing order, uploads the merged document,
    reads it back once and finally swaps it into the cache. Only the listing
    and the upload can fail a run. Runs for the same root path are serialized.
    """

    def __init__(
        self,
        storage: OpenListClient,
        search: TMDBSearchClient,
        cache: MetaInfoCache | None = None,
        request_delay: float = DEFAULT_REQUEST_DELAY_SEC,
        state_store: RefreshStateStore | None = None,
    ) -> None:
        self._storage = storage
        self._search = search
        self._cache = cache if cache is not None else meta_cache
        self._request_delay = request_delay
        self._state_store = state_store
        self._locks: dict[str, asyncio.Lock] = {}
        self._logger = logging.getLogger("media_catalog.refresh")

    async def refresh(self, root_path: str) -> RefreshSummary:
        root = normalize_remote_path(root_path)
        lock = self._locks.setdefault(root, asyncio.Lock())
        if lock.locked():
            self._logger.info("refresh already running; waiting", extra={"root": root})
        async with lock:
            return await self._run(root)

    async def _run(self, root: str) -> RefreshSummary:
        self._logger.info("refresh started", extra={"root": root})
        document = await self._load(root)

        entries = await self._storage.list_directory(root)
        folders = [entry for entry in entries if entry.is_dir]
        self._logger.info(
            "folders listed", extra={"root": root, "folders": len(folders)}
        )

        new_count = 0
        error_count = 0
        for entry in folders:
            if entry.name in document.folders:
                continue
            record = await self._enrich(entry.name)
            if record is not None:
                document.folders[entry.name] = record
                new_count += 1
            else:
                error_count += 1
            await self._pause()

        document.last_refresh = max(now_ms(), document.last_refresh)
        await self._persist(root, document)
        await self._verify(root)
        self._commit(root, document)

        summary = RefreshSummary(
            total=len(folders),
            new=new_count,
            existing=len(document.folders) - new_count,
            errors=error_count,
            last_refresh=document.last_refresh,
        )
        self._record_state(root, summary, len(document.folders))
        self._logger.info("refresh finished", extra={"root": root, **summary.model_dump()})
        return summary

    async def _load(self, root: str) -> MetaDocument:
        cached = self._cache.get(root)
        if cached is not None:
            self._logger.info(
                "using cached metainfo", extra={"root": root, "folders": len(cached.folders)}
            )
            # work on a copy so readers keep the committed document until the swap
            return cached.model_copy(deep=True)
        try:
            return await load_document(self._storage, root, repair=True)
        except (UpstreamError, ParseError) as exc:
            self._logger.warning(
                "metainfo unavailable; starting from empty document",
                extra={"root": root, "error": str(exc)},
            )
            return empty_document()

    async def _enrich(self, name: str) -> Optional[FolderRecord]:
        try:
            result = await self._search.search(name)
        except (UpstreamError, ParseError) as exc:
            self._logger.warning(
                "tmdb search failed", extra={"folder": name, "error": str(exc)}
            )
            return None
        if result is None:
            self._logger.info("no tmdb match", extra={"folder": name})
            return None
        return build_folder_record(name, result)

    async def _pause(self) -> None:
        if self._request_delay > 0:
            await asyncio.sleep(self._request_delay)

    async def _persist(self, root: str, document: MetaDocument) -> None:
        path = metainfo_path(root)
        content = dump_document(document)
        await self._storage.upload_file(path, content)
        self._logger.info(
            "metainfo uploaded",
            extra={"path": path, "folders": len(document.folders), "bytes": len(content)},
        )

    async def _verify(self, root: str) -> bool:
        try:
            document = await load_document(self._storage, root)
        except Exception as exc:
            self._logger.warning(
                "metainfo verification failed", extra={"root": root, "error": str(exc)}
            )
            warnings.warn(
                f"read-back of {metainfo_path(root)} failed: {exc}",
                VerificationWarning,
                stacklevel=2,
            )
            return False
        self._logger.info(
            "metainfo verified", extra={"root": root, "folders": len(document.folders)}
        )
        return True

    def _commit(self, root: str, document: MetaDocument) -> None:
        self._cache.invalidate(root)
        self._cache.set(root, document)

    def _record_state(self, root: str, summary: RefreshSummary, resource_count: int) -> None:
        if self._state_store is None:
            return
        try:
            self._state_store.record(root, summary, resource_count)
        except OSError:
            self._logger.exception("failed to save refresh state", extra={"root": root})


def build_folder_record(folder: str, result: SearchResult) -> FolderRecord:
    return FolderRecord(
        tmdb_id=result.id,
        title=result.title or result.name or folder,
        poster_path=result.poster_path or "",
        release_date=result.release_date or result.first_air_date or "",
        overview=result.overview or "",
        vote_average=result.vote_average,
        media_type=result.media_type,
        last_updated=now_ms(),
    )
