from __future__ import annotations

import argparse
import asyncio
import json
import sys
from typing import Optional

from media_catalog.config import Settings, get_settings
from media_catalog.errors import CatalogError, ConfigurationError
from media_catalog.jobs.refresh_job import RefreshJob
from media_catalog.logging import setup_logging
from media_catalog.services.catalog_service import CatalogService
from media_catalog.services.openlist_client import OpenListClient
from media_catalog.services.refresh_state import RefreshStateStore
from media_catalog.services.tmdb_search import TMDBSearchClient, close_proxy_clients


def build_storage(settings: Settings) -> OpenListClient:
    settings.require_openlist()
    return OpenListClient(settings.openlist_url, settings.openlist_token)


def build_refresh_job(settings: Settings) -> RefreshJob:
    storage = build_storage(settings)
    settings.require_tmdb()
    search = TMDBSearchClient(
        settings.tmdb_api_key,
        proxy=settings.tmdb_proxy,
        language=settings.tmdb_language,
        base_url=settings.tmdb_base_url,
    )
    return RefreshJob(
        storage,
        search,
        request_delay=settings.refresh_delay_sec,
        state_store=RefreshStateStore(settings.state_path),
    )


def build_catalog(settings: Settings) -> CatalogService:
    return CatalogService(build_storage(settings), default_page_size=settings.default_page_size)


async def _refresh(settings: Settings, root: str) -> dict:
    job = build_refresh_job(settings)
    try:
        summary = await job.refresh(root)
    finally:
        await close_proxy_clients()
    return {"success": True, **summary.model_dump()}


async def _list(settings: Settings, root: str, page: int, page_size: Optional[int]) -> dict:
    catalog = build_catalog(settings)
    listing = await catalog.list(root, page=page, page_size=page_size)
    return listing.model_dump()


def _parse_args(argv: Optional[list[str]]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="media-catalog",
        description="Sync OpenList folders with TMDB metadata and browse the result.",
    )
    parser.add_argument("--root", help="catalog root path (defaults to OPENLIST_ROOT_PATH)")
    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("refresh", help="enrich new folders and upload metainfo.json")
    list_parser = sub.add_parser("list", help="print one page of the catalog")
    list_parser.add_argument("--page", type=int, default=1)
    list_parser.add_argument("--page-size", type=int, default=None)
    return parser.parse_args(argv)


def main(argv: Optional[list[str]] = None) -> int:
    args = _parse_args(argv)
    settings = get_settings()
    logger = setup_logging(settings.log_level)
    root = args.root or settings.openlist_root_path

    try:
        if args.command == "refresh":
            result = asyncio.run(_refresh(settings, root))
        else:
            result = asyncio.run(_list(settings, root, args.page, args.page_size))
    except ConfigurationError as exc:
        logger.error("configuration error: %s", exc)
        print(json.dumps({"error": str(exc)}, ensure_ascii=False))
        return 2
    except CatalogError as exc:
        logger.error("%s failed: %s", args.command, exc)
        print(json.dumps({"error": f"{args.command} failed", "details": str(exc)}, ensure_ascii=False))
        return 1

    print(json.dumps(result, ensure_ascii=False, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
