from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional

from media_catalog.models import RefreshSummary
from media_catalog.utils import now_ms


class RefreshStateStore:
    """Keeps the last refresh time and resource count per root path on disk."""

    def __init__(self, path: Path) -> None:
        self._path = path
        self._logger = logging.getLogger("media_catalog.refresh_state")

    def get(self, root_path: str) -> Optional[dict[str, int]]:
        return self._read().get(root_path)

    def record(self, root_path: str, summary: RefreshSummary, resource_count: int) -> None:
        state = self._read()
        state[root_path] = {
            "last_refresh_time": now_ms(),
            "last_refresh": summary.last_refresh,
            "resource_count": resource_count,
        }
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        tmp_path.write_text(json.dumps(state, ensure_ascii=False, indent=2), encoding="utf-8")
        tmp_path.replace(self._path)

    def _read(self) -> dict[str, dict[str, int]]:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            self._logger.warning("refresh state unreadable; ignoring", extra={"path": str(self._path)})
            return {}
        return data if isinstance(data, dict) else {}
