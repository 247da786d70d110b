from __future__ import annotations

from typing import Optional

from media_catalog.models import MetaDocument


class MetaInfoCache:
    """Process-wide store of one ``MetaDocument`` per catalog root path.

    Entries never expire on their own; ``RefreshJob`` replaces them after a
    committed run and the listing path fills them on a cold load. Values are
    swapped whole, so readers see either the previous document or the new one.
    """

    def __init__(self) -> None:
        self._documents: dict[str, MetaDocument] = {}

    def get(self, key: str) -> Optional[MetaDocument]:
        return self._documents.get(key)

    def set(self, key: str, document: MetaDocument) -> None:
        self._documents[key] = document

    def invalidate(self, key: str) -> None:
        self._documents.pop(key, None)

    def clear(self) -> None:
        self._documents.clear()

    def __contains__(self, key: str) -> bool:
        return key in self._documents

    def __len__(self) -> int:
        return len(self._documents)


meta_cache = MetaInfoCache()
