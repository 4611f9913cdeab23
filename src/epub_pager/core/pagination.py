"""Page-by-page navigation through a publication."""

from __future__ import annotations

import asyncio
import logging
import math
from bisect import bisect_right
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable
from urllib.parse import urljoin

from epub_pager.core.content import ContentDocument, local_name
from epub_pager.core.layout import (
    Embed,
    LayoutPosition,
    LayoutSession,
    MemorySurface,
    Page,
    RenderingSurface,
    TextLayoutSession,
    letterbox,
)
from epub_pager.core.package import PackageDocument
from epub_pager.core.position import PositionResolver
from epub_pager.models.package import PackageItem, ReadingPosition
from epub_pager.models.preferences import LayoutPreferences, Viewport

log = logging.getLogger(__name__)

SessionFactory = Callable[..., LayoutSession]


class SeekMode(str, Enum):
    """How the current page index is to be interpreted."""

    SETTLED = "settled"  # page_index is a known checkpoint
    BY_OFFSET = "by_offset"  # page containing offset_in_item
    TO_END = "to_end"  # last page of the item


class LayoutState(str, Enum):
    PARTIAL = "partial"
    COMPLETE = "complete"  # last checkpoint starts the final page


@dataclass
class ViewItem:
    """Layout state of one visited spine item."""

    item: PackageItem
    document: ContentDocument
    session: LayoutSession
    checkpoints: list[LayoutPosition | None] = field(default_factory=lambda: [None])
    state: LayoutState = LayoutState.PARTIAL
    lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)

    @property
    def complete(self) -> bool:
        return self.state is LayoutState.COMPLETE

    @property
    def last_index(self) -> int:
        return len(self.checkpoints) - 1

    def offset_at(self, index: int) -> int:
        return self.session.position_of(self.checkpoints[index])

    def find_page(self, offset: int) -> int | None:
        """Index of the known page containing ``offset``, None if beyond them."""
        index = bisect_right(
            range(len(self.checkpoints)), offset, key=self.offset_at
        )
        if index == len(self.checkpoints):
            return None
        return max(index - 1, 0)


@dataclass
class _Cursor:
    """Working copy of the controller position for one render."""

    spine_index: int
    page_index: int
    offset_in_item: int
    mode: SeekMode

    def settle(self, page_index: int) -> None:
        self.page_index = page_index
        self.mode = SeekMode.SETTLED


class PaginationController:
    """Own the reading position and lay out chapters lazily."""

    def __init__(
        self,
        package: PackageDocument,
        viewport: Viewport,
        preferences: LayoutPreferences | None = None,
        session_factory: SessionFactory = TextLayoutSession,
    ):
        self.package = package
        self.store = package.store
        if viewport.root is None:
            viewport.root = MemorySurface()
        self.viewport = viewport
        self.pref = (preferences or LayoutPreferences()).model_copy(deep=True)
        self.session_factory = session_factory
        self.resolver = PositionResolver(package)
        self.spine_items: dict[int, ViewItem] = {}
        self._pending: dict[int, asyncio.Task] = {}
        self.spine_index = 0
        self.page_index = 0
        self.offset_in_item = 0
        self.mode = SeekMode.SETTLED
        self._generation = 0

    @property
    def surface(self) -> RenderingSurface:
        return self.viewport.root

    def _navigate(self) -> int:
        self._generation += 1
        return self._generation

    def is_first_page(self) -> bool:
        return self.spine_index == 0 and self.page_index == 0 and self.mode is SeekMode.SETTLED

    def is_last_page(self) -> bool:
        if self.spine_index != len(self.package.spine) - 1:
            return False
        view_item = self.spine_items.get(self.spine_index)
        return (
            view_item is not None
            and view_item.complete
            and self.mode is SeekMode.SETTLED
            and self.page_index == view_item.last_index
        )

    async def get_view_item(self, spine_index: int) -> ViewItem | None:
        """Layout state for a spine item, created on first visit."""
        if not 0 <= spine_index < len(self.package.spine):
            return None
        view_item = self.spine_items.get(spine_index)
        if view_item is not None:
            return view_item
        task = self._pending.get(spine_index)
        if task is None:
            task = asyncio.ensure_future(self._create_view_item(spine_index))
            self._pending[spine_index] = task
        try:
            return await task
        finally:
            if self._pending.get(spine_index) is task and task.done():
                del self._pending[spine_index]

    async def _create_view_item(self, spine_index: int) -> ViewItem:
        item = self.package.spine[spine_index]
        document = await self.store.load(item.url)
        viewport = self._size_viewport(document)
        session = self.session_factory(
            document,
            viewport,
            self.pref,
            lang=self.package.lang,
            object_renderer=self._make_object_renderer(document),
        )
        await session.init()
        view_item = ViewItem(item=item, document=document, session=session)
        self.spine_items[spine_index] = view_item
        if spine_index + 1 < len(self.package.spine):
            self.store.fetch(self.package.spine[spine_index + 1].url)
        return view_item

    def _size_viewport(self, document: ContentDocument) -> Viewport:
        declared = document.declared_viewport()
        if declared is None:
            return self.viewport
        width, height = declared
        viewport = Viewport(width, height, self.viewport.font_size, self.viewport.root)
        if viewport.same_size(self.viewport):
            return self.viewport
        log.debug("%s uses its own %dx%d viewport", document.url, width, height)
        return viewport

    def _make_object_renderer(self, document: ContentDocument):
        def render(element) -> Embed | None:
            data = element.get("data")
            if not data:
                return None
            data = urljoin(document.url, data)
            params = {}
            for child in element:
                if not isinstance(child.tag, str) or local_name(child) != "param":
                    continue
                if child.get("name") and child.get("value"):
                    params[child.get("name")] = child.get("value")
            url = self.package.handler_url(data, element.get("media-type"), params)
            if url is None:
                return None
            return Embed(url=url, width=element.get("width"), height=element.get("height"))

        return render

    def _make_page(self, view_item: ViewItem, position: LayoutPosition | None) -> Page:
        viewport = view_item.session.viewport
        container = self.surface.create_page(viewport.width, viewport.height)
        page = Page(
            container=container,
            spine_index=view_item.item.spine_index,
            position=position,
            offset=view_item.session.position_of(position),
        )
        if viewport is not self.viewport:
            page.transform = letterbox(
                self.viewport.width, self.viewport.height, viewport.width, viewport.height
            )
        return page

    def _cursor(self) -> _Cursor:
        return _Cursor(self.spine_index, self.page_index, self.offset_in_item, self.mode)

    async def render_current_page(self) -> Page | None:
        """Render the page at the current position and normalize the position."""
        return await self._render(self._generation)

    async def _render(self, generation: int) -> Page | None:
        cursor = self._cursor()
        view_item = await self.get_view_item(cursor.spine_index)
        if view_item is None:
            return None
        async with view_item.lock:
            page = await self._layout(view_item, cursor)
        if generation != self._generation:
            log.debug("Discarding page of superseded navigation")
            self.surface.release(page.container)
            return None
        self.spine_index = cursor.spine_index
        self.page_index = cursor.page_index
        self.offset_in_item = cursor.offset_in_item
        self.mode = cursor.mode
        page.is_first_page = page.spine_index == 0 and cursor.page_index == 0
        return page

    async def _layout_page(self, view_item: ViewItem, start: LayoutPosition | None):
        page = self._make_page(view_item, start)
        try:
            checkpoint = await view_item.session.layout_next_page(page, start)
        except BaseException:
            self.surface.release(page.container)
            raise
        return page, checkpoint

    def _is_last_spine_item(self, view_item: ViewItem) -> bool:
        return view_item.item.spine_index == len(self.package.spine) - 1

    async def _layout(self, view_item: ViewItem, cursor: _Cursor) -> Page:
        seek_offset = None
        if cursor.mode is SeekMode.BY_OFFSET:
            seek_offset = cursor.offset_in_item
            index = view_item.find_page(seek_offset)
            if index is None:
                cursor.mode = SeekMode.TO_END
            else:
                cursor.settle(index)

        # Produce pages until the cursor points at a known one
        while cursor.mode is not SeekMode.SETTLED or cursor.page_index > view_item.last_index:
            if view_item.complete:
                cursor.settle(view_item.last_index)
                break
            start = view_item.checkpoints[-1]
            page, checkpoint = await self._layout_page(view_item, start)
            if checkpoint is None:
                view_item.state = LayoutState.COMPLETE
                cursor.settle(view_item.last_index)
                cursor.offset_in_item = page.offset
                page.is_last_page = self._is_last_spine_item(view_item)
                return page
            view_item.checkpoints.append(checkpoint)
            if seek_offset is not None and view_item.session.position_of(checkpoint) > seek_offset:
                cursor.settle(view_item.last_index - 1)
                cursor.offset_in_item = page.offset
                return page
            self.surface.release(page.container)

        start = view_item.checkpoints[cursor.page_index]
        cursor.offset_in_item = view_item.session.position_of(start)
        page, checkpoint = await self._layout_page(view_item, start)
        if cursor.page_index == view_item.last_index and not view_item.complete:
            if checkpoint is None:
                view_item.state = LayoutState.COMPLETE
            else:
                view_item.checkpoints.append(checkpoint)
        page.is_last_page = (
            view_item.complete
            and cursor.page_index == view_item.last_index
            and self._is_last_spine_item(view_item)
        )
        return page

    async def first_page(self) -> Page | None:
        generation = self._navigate()
        self.spine_index = 0
        self.page_index = 0
        self.mode = SeekMode.SETTLED
        return await self._render(generation)

    async def last_page(self) -> Page | None:
        generation = self._navigate()
        self.spine_index = len(self.package.spine) - 1
        self.page_index = 0
        self.mode = SeekMode.TO_END
        return await self._render(generation)

    async def next_page(self) -> Page | None:
        generation = self._navigate()
        view_item = await self.get_view_item(self.spine_index)
        if view_item is None or generation != self._generation:
            return None
        if view_item.complete and self.page_index == view_item.last_index:
            if self.spine_index >= len(self.package.spine) - 1:
                return None
            self.spine_index += 1
            self.page_index = 0
        else:
            self.page_index += 1
        self.mode = SeekMode.SETTLED
        return await self._render(generation)

    async def previous_page(self) -> Page | None:
        if self.page_index == 0:
            if self.spine_index == 0:
                return None
            generation = self._navigate()
            self.spine_index -= 1
            self.mode = SeekMode.TO_END
        else:
            generation = self._navigate()
            self.page_index -= 1
            self.mode = SeekMode.SETTLED
        return await self._render(generation)

    async def navigate_to_link(self, href: str) -> Page | None:
        """Move to the page a link points at."""
        log.info("Navigate to %s", href)
        url, _, target = href.partition("#")
        item = self.package.item_by_url(url)
        if item is None or not item.in_spine:
            return None
        generation = self._navigate()
        if item.spine_index != self.spine_index:
            self.spine_index = item.spine_index
            self.page_index = 0
            self.mode = SeekMode.SETTLED
        view_item = await self.get_view_item(self.spine_index)
        if generation != self._generation:
            return None
        if target:
            element = view_item.document.find_element_by_id(target)
            if element is not None:
                self.offset_in_item = view_item.document.element_offset(element)
                self.mode = SeekMode.BY_OFFSET
        return await self._render(generation)

    def get_position(self) -> ReadingPosition:
        if self.mode is SeekMode.BY_OFFSET:
            page_index = -1
        elif self.mode is SeekMode.TO_END:
            page_index = math.inf
        else:
            page_index = self.page_index
        return ReadingPosition(
            spine_index=self.spine_index,
            page_index=page_index,
            offset_in_item=self.offset_in_item,
        )

    async def set_position(self, position: ReadingPosition | None) -> Page | None:
        generation = self._navigate()
        if position is not None:
            self.spine_index = position.spine_index
            self.page_index = 0
            self.offset_in_item = position.offset_in_item
            self.mode = SeekMode.BY_OFFSET
        else:
            self.spine_index = 0
            self.page_index = 0
            self.offset_in_item = 0
            self.mode = SeekMode.SETTLED
        return await self._render(generation)

    async def get_fragment(self) -> str | None:
        """Portable address of the current position."""
        if not 0 <= self.spine_index < len(self.package.spine):
            return None
        return await self.resolver.position_to_fragment(self.spine_index, self.offset_in_item)

    async def navigate_to_fragment(self, fragment: str) -> Page | None:
        position = await self.resolver.fragment_to_position(fragment)
        if position is None:
            return None
        return await self.set_position(position)

    async def estimated_page(self) -> float:
        return await self.resolver.estimated_page_for_offset(
            self.spine_index, self.offset_in_item
        )
