"""Data models for package document structure."""

import math
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

NOT_IN_SPINE = -1


class PackageItem(BaseModel):
    """Single manifest entry of a package document."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    id: str | None = None
    url: str | None = None
    media_type: str | None = None
    spine_index: int = NOT_IN_SPINE
    # Set once archive metadata arrives
    compressed_size: int = 0
    compressed: bool | None = None
    # Estimated page numbers
    epage: int = 0
    epage_count: int = 0
    itemref_element: Any = Field(default=None, exclude=True, repr=False)

    @property
    def in_spine(self) -> bool:
        return self.spine_index != NOT_IN_SPINE


class ArchiveEntry(BaseModel):
    """Archive listing record for one stored resource.

    Accepts the compact listing shape ``{"n": ..., "m": ..., "c": ...}``.
    """

    model_config = ConfigDict(populate_by_name=True)

    name: str | None = Field(default=None, alias="n")  # percent-encoded path
    method: int = Field(default=0, alias="m")  # 0 = stored
    compressed_size: int = Field(default=0, alias="c")


class ReadingPosition(BaseModel):
    """Position of a reader inside a publication.

    ``page_index`` is ``-1`` when the page has to be resolved from
    ``offset_in_item`` and ``math.inf`` for the last page of the item.
    """

    model_config = ConfigDict(ser_json_inf_nan="constants")

    spine_index: int = 0
    page_index: int | float = 0
    offset_in_item: int = Field(default=0, ge=0)

    @property
    def needs_seek(self) -> bool:
        return self.page_index < 0

    @property
    def at_end(self) -> bool:
        return self.page_index == math.inf
