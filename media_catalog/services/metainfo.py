from __future__ import annotations

import json
import logging
from typing import Any, Optional

from pydantic import ValidationError

from media_catalog.errors import ParseError, UpstreamError
from media_catalog.models import MetaDocument
from media_catalog.services.openlist_client import OpenListClient
from media_catalog.utils import join_remote_path, now_ms


METAINFO_FILENAME = "metainfo.json"

logger = logging.getLogger("media_catalog.metainfo")


def metainfo_path(root_path: str) -> str:
    return join_remote_path(root_path, METAINFO_FILENAME)


def empty_document(last_refresh: Optional[int] = None) -> MetaDocument:
    return MetaDocument(folders={}, last_refresh=now_ms() if last_refresh is None else last_refresh)


def parse_document(text: str, repair: bool = False) -> MetaDocument:
    """Decode ``metainfo.json`` text.

    With ``repair`` a missing or non-object ``folders`` field is replaced by an
    empty mapping instead of failing; a bad folder record still fails.
    """
    try:
        raw: Any = json.loads(text)
    except ValueError as exc:
        raise ParseError(f"{METAINFO_FILENAME} is not valid JSON: {exc}") from exc
    if not isinstance(raw, dict):
        raise ParseError(f"{METAINFO_FILENAME} is not a JSON object")

    folders = raw.get("folders")
    if not isinstance(folders, dict):
        if not repair:
            raise ParseError(f"{METAINFO_FILENAME} has no folders object")
        logger.warning("metainfo folders missing or invalid; resetting to empty")
        raw = {**raw, "folders": {}}

    try:
        return MetaDocument.model_validate(raw)
    except ValidationError as exc:
        raise ParseError(f"{METAINFO_FILENAME} does not match schema: {exc}") from exc


def dump_document(document: MetaDocument) -> str:
    return json.dumps(document.model_dump(mode="json"), ensure_ascii=False, indent=2)


async def load_document(
    client: OpenListClient, root_path: str, repair: bool = False
) -> MetaDocument:
    """Read and parse ``metainfo.json`` under ``root_path``.

    Raises :class:`UpstreamError` when the file cannot be fetched (including a
    descriptor without any download URL) and :class:`ParseError` when its
    contents do not decode.
    """
    path = metainfo_path(root_path)
    descriptor = await client.get_file(path)
    download_url = descriptor.download_url
    if not download_url:
        raise UpstreamError(
            operation="load_document",
            url=f"{client.base_url}/api/fs/get",
            status_code=200,
            message=f"no download url for {path}",
        )
    text = await client.fetch_text(download_url)
    document = parse_document(text, repair=repair)
    logger.info(
        "metainfo loaded",
        extra={"path": path, "folders": len(document.folders), "bytes": len(text)},
    )
    return document
