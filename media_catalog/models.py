from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


MediaType = Literal["movie", "tv"]


class FolderRecord(BaseModel):
    tmdb_id: int = 0
    title: str
    poster_path: str = ""
    release_date: str = ""
    overview: str = ""
    vote_average: float = 0.0
    media_type: MediaType
    last_updated: int = 0

    @field_validator("poster_path", "release_date", "overview", mode="before")
    @classmethod
    def none_to_empty(cls, value):
        return "" if value is None else value

    @field_validator("tmdb_id", "vote_average", mode="before")
    @classmethod
    def none_to_zero(cls, value):
        return 0 if value is None else value


class MetaDocument(BaseModel):
    model_config = ConfigDict(extra="ignore")

    folders: dict[str, FolderRecord] = Field(default_factory=dict)
    last_refresh: int = 0


class RemoteEntry(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str
    is_dir: bool = False
    size: int = 0
    modified: str = ""
    sign: str = ""
    raw_url: str = ""
    thumb: str = ""
    type: int = 0

    @field_validator("modified", "sign", "raw_url", "thumb", mode="before")
    @classmethod
    def none_to_empty(cls, value):
        return "" if value is None else value

    @field_validator("size", "type", mode="before")
    @classmethod
    def none_to_zero(cls, value):
        return 0 if value is None else value


class FileDescriptor(RemoteEntry):
    """Result of a file lookup; ``signed_url`` is filled in by the client."""

    signed_url: str = ""

    @property
    def download_url(self) -> Optional[str]:
        return self.raw_url or self.signed_url or None


class SearchResult(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int
    title: Optional[str] = None
    name: Optional[str] = None
    poster_path: Optional[str] = None
    release_date: Optional[str] = None
    first_air_date: Optional[str] = None
    overview: Optional[str] = None
    vote_average: float = 0.0
    media_type: MediaType

    @field_validator("vote_average", mode="before")
    @classmethod
    def none_to_zero(cls, value):
        return 0 if value is None else value


class RefreshSummary(BaseModel):
    total: int
    new: int
    existing: int
    errors: int
    last_refresh: int


class CatalogItem(BaseModel):
    id: str
    folder: str
    title: str
    poster: str
    release_date: str
    year: str
    overview: str
    vote_average: float
    media_type: MediaType
    last_updated: int


class ListingPage(BaseModel):
    items: list[CatalogItem] = Field(default_factory=list)
    total: int = 0
    page: int = 1
    page_size: int = 20
    total_pages: int = 0
    error: Optional[str] = None
