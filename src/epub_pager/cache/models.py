"""Bookmark cache data models."""

from datetime import datetime

from pydantic import BaseModel, Field


class CacheMetadata(BaseModel):
    """Identity of the publication bookmarks were taken in."""

    file_path: str
    file_hash: str
    file_size: int
    file_mtime: float
    cached_at: datetime = Field(default_factory=datetime.now)
    cache_version: str = "1.0"


class Bookmark(BaseModel):
    """Saved reading position.

    ``cfi`` is the durable address; ``spine_index`` and ``offset_in_item``
    are only meaningful while the publication is unchanged.
    """

    cfi: str
    spine_index: int
    offset_in_item: int
    label: str | None = None
    file_hash: str | None = None  # publication the offsets belong to
    created_at: datetime = Field(default_factory=datetime.now)


class CachedBookmarks(BaseModel):
    """Bookmarks of one publication."""

    cache_metadata: CacheMetadata
    bookmarks: list[Bookmark] = Field(default_factory=list)


class CacheIndex(BaseModel):
    """Index mapping publication paths to cache entries."""

    entries: dict[str, str] = Field(default_factory=dict)  # path -> hash
