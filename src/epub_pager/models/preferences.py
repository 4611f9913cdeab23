"""Layout preferences and viewport description."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from pydantic import BaseModel, Field

if TYPE_CHECKING:
    from epub_pager.core.layout import RenderingSurface


class LayoutPreferences(BaseModel):
    """User preferences that affect page layout."""

    font_size: float = Field(default=16.0, gt=0)
    line_height: float = Field(default=1.2, gt=0)
    margin: int = Field(default=0, ge=0)
    night_mode: bool = False


@dataclass
class Viewport:
    """Logical page area and the surface pages are attached to."""

    width: int
    height: int
    font_size: float
    root: RenderingSurface | None = None

    def same_size(self, other: Viewport) -> bool:
        return (
            self.width == other.width
            and self.height == other.height
            and self.font_size == other.font_size
        )
