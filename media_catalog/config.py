from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from media_catalog.errors import ConfigurationError


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        populate_by_name=True,
    )

    openlist_url: str = Field("", alias="OPENLIST_URL")
    openlist_token: str = Field("", alias="OPENLIST_TOKEN")
    openlist_root_path: str = Field("/", alias="OPENLIST_ROOT_PATH")
    tmdb_api_key: str = Field("", alias="TMDB_API_KEY")
    tmdb_proxy: Optional[str] = Field(None, alias="TMDB_PROXY")
    tmdb_language: str = Field("zh-CN", alias="TMDB_LANGUAGE")
    tmdb_base_url: str = Field("https://api.themoviedb.org/3", alias="TMDB_BASE_URL")
    refresh_delay_sec: float = Field(0.3, alias="REFRESH_DELAY_SEC")
    default_page_size: int = Field(20, alias="DEFAULT_PAGE_SIZE")
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    data_dir: Path = Field(Path("./data"), alias="DATA_DIR")

    @field_validator("openlist_url", "tmdb_base_url", mode="before")
    @classmethod
    def strip_trailing_slash(cls, value) -> str:
        if value is None:
            return ""
        return str(value).strip().rstrip("/")

    @field_validator("openlist_root_path", mode="before")
    @classmethod
    def normalize_root_path(cls, value) -> str:
        path = str(value or "").strip().replace("\\", "/")
        if not path.startswith("/"):
            path = f"/{path}"
        if len(path) > 1:
            path = path.rstrip("/") or "/"
        return path

    @field_validator("tmdb_proxy", mode="before")
    @classmethod
    def blank_proxy_is_none(cls, value) -> Optional[str]:
        if value is None:
            return None
        value = str(value).strip()
        return value or None

    @field_validator("refresh_delay_sec", mode="before")
    @classmethod
    def clamp_refresh_delay(cls, value) -> float:
        try:
            delay = float(value)
        except (TypeError, ValueError):
            return 0.3
        return max(0.0, delay)

    @field_validator("default_page_size", mode="before")
    @classmethod
    def clamp_page_size(cls, value) -> int:
        try:
            size = int(value)
        except (TypeError, ValueError):
            return 20
        return max(1, min(size, 100))

    @property
    def state_path(self) -> Path:
        return self.data_dir / "refresh_state.json"

    def require_openlist(self) -> None:
        if not self.openlist_url or not self.openlist_token:
            raise ConfigurationError("OPENLIST_URL and OPENLIST_TOKEN must be set")

    def require_tmdb(self) -> None:
        if not self.tmdb_api_key:
            raise ConfigurationError("TMDB_API_KEY is not set")


@lru_cache
def get_settings() -> Settings:
    return Settings()
