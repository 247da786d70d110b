from __future__ import annotations

import time
from pathlib import PurePosixPath


def now_ms() -> int:
    return int(time.time() * 1000)


def normalize_remote_path(path: str) -> str:
    normalized = (path or "").strip().replace("\\", "/")
    if not normalized.startswith("/"):
        normalized = f"/{normalized}"
    if len(normalized) > 1:
        normalized = normalized.rstrip("/") or "/"
    return normalized


def join_remote_path(base: str, name: str) -> str:
    base_norm = normalize_remote_path(base)
    name = (name or "").strip().replace("\\", "/").lstrip("/")
    if not name:
        return base_norm
    if base_norm == "/":
        return f"/{name}"
    return f"{base_norm}/{name}"


def split_remote_path(path: str) -> tuple[str, str]:
    """Split ``/a/b/c.json`` into ``("/a/b", "c.json")``; top-level files live in ``/``."""
    normalized = normalize_remote_path(path)
    pure = PurePosixPath(normalized)
    return str(pure.parent), pure.name
