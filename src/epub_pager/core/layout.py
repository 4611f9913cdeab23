"""Layout sessions, pages and rendering surfaces."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Protocol

from epub_pager.core.content import ContentDocument
from epub_pager.errors import LayoutError
from epub_pager.models.preferences import LayoutPreferences, Viewport

log = logging.getLogger(__name__)

# Average glyph advance as a fraction of the font size
GLYPH_WIDTH = 0.5


@dataclass(eq=False)
class SurfaceNode:
    """Container a page is materialized into."""

    width: int
    height: int
    visible: bool = False
    night_mode: bool = False
    text: str = ""


class RenderingSurface(Protocol):
    def create_page(self, width: int, height: int) -> SurfaceNode: ...

    def release(self, node: SurfaceNode) -> None: ...


class MemorySurface:
    """Rendering surface that keeps attached page containers in a list."""

    def __init__(self):
        self.nodes: list[SurfaceNode] = []

    def create_page(self, width: int, height: int) -> SurfaceNode:
        node = SurfaceNode(width=width, height=height)
        self.nodes.append(node)
        return node

    def release(self, node: SurfaceNode) -> None:
        if node in self.nodes:
            self.nodes.remove(node)


@dataclass(frozen=True)
class LayoutPosition:
    """Checkpoint between two pages of a chapter."""

    offset: int


@dataclass
class Embed:
    """An ``<object>`` rendered through a media-type handler."""

    url: str
    width: str | None = None
    height: str | None = None


@dataclass
class Page:
    container: SurfaceNode
    spine_index: int
    position: LayoutPosition | None
    offset: int
    is_first_page: bool = False
    is_last_page: bool = False
    transform: str | None = None
    embeds: list[Embed] = field(default_factory=list)

    @property
    def text(self) -> str:
        return self.container.text


ObjectRenderer = Callable[[Any], Embed | None]


class LayoutSession(Protocol):
    viewport: Viewport

    async def init(self) -> None: ...

    async def layout_next_page(
        self, page: Page, start: LayoutPosition | None
    ) -> LayoutPosition | None: ...

    def position_of(self, checkpoint: LayoutPosition | None) -> int: ...


def letterbox(view_width, view_height, width, height) -> str | None:
    """CSS matrix that fits a ``width`` x ``height`` page into the view."""
    if view_width == width and view_height == height:
        return None
    scale = min(view_width / width, view_height / height)
    dx = (view_width - width * scale) / 2
    dy = (view_height - height * scale) / 2
    return f"matrix({scale:g},0,0,{scale:g},{dx:g},{dy:g})"


class TextLayoutSession:
    """Lay out a chapter as pages holding a fixed number of characters.

    Page capacity follows from the viewport size, the font size and the
    preferences. Pages break after whitespace when possible.
    """

    def __init__(
        self,
        document: ContentDocument,
        viewport: Viewport,
        preferences: LayoutPreferences,
        lang: str | None = None,
        object_renderer: ObjectRenderer | None = None,
    ):
        self.document = document
        self.viewport = viewport
        self.preferences = preferences
        self.lang = lang
        self.object_renderer = object_renderer
        self.capacity: int | None = None
        self._objects: list[tuple[int, Any]] = []

    async def init(self) -> None:
        margin = 2 * self.preferences.margin
        columns = int((self.viewport.width - margin) // (self.viewport.font_size * GLYPH_WIDTH))
        lines = int(
            (self.viewport.height - margin)
            // (self.viewport.font_size * self.preferences.line_height)
        )
        self.capacity = max(1, columns) * max(1, lines)
        self._objects = [
            (self.document.element_offset(obj), obj) for obj in self.document.objects()
        ]
        log.debug(
            "Layout of %s: %d characters per page", self.document.url, self.capacity
        )

    def position_of(self, checkpoint: LayoutPosition | None) -> int:
        return 0 if checkpoint is None else checkpoint.offset

    async def layout_next_page(
        self, page: Page, start: LayoutPosition | None
    ) -> LayoutPosition | None:
        if self.capacity is None:
            raise LayoutError(f"Layout session for {self.document.url} is not initialized")
        text = self.document.text
        begin = self.position_of(start)
        end = min(begin + self.capacity, len(text))
        if end < len(text):
            space = max(text.rfind(" ", begin, end), text.rfind("\n", begin, end))
            if space > begin:
                end = space + 1
        page.container.text = text[begin:end]
        page.container.night_mode = self.preferences.night_mode
        last = end >= len(text)
        for offset, obj in self._objects:
            if begin <= offset < end or (last and offset == end):
                embed = self.object_renderer(obj) if self.object_renderer else None
                if embed is not None:
                    page.embeds.append(embed)
        if last:
            return None
        return LayoutPosition(end)
