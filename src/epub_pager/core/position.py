"""Translation between reading positions and fragment addresses."""

from __future__ import annotations

import logging

from epub_pager.core.cfi import Fragment
from epub_pager.core.content import NodeRef, local_name
from epub_pager.core.package import PackageDocument
from epub_pager.models.package import ReadingPosition

log = logging.getLogger(__name__)


class PositionResolver:
    """Resolve positions of one package against its store."""

    def __init__(self, package: PackageDocument):
        self.package = package
        self.store = package.store

    async def position_to_fragment(self, spine_index: int, offset_in_item: int) -> str | None:
        """Fragment address of a content offset, None when nothing covers it."""
        item = self.package.spine[spine_index]
        document = await self.store.load(item.url)
        node = document.find_node_at_offset(offset_in_item)
        if node is None:
            return None
        start = document.offset_of_node(node, 0, False)
        fragment = Fragment.from_node(node, offset_in_item - start)
        if item.itemref_element is not None:
            fragment = fragment.compose_outer(Fragment.from_node(NodeRef(item.itemref_element)))
        return str(fragment)

    async def fragment_to_position(self, fragment_text: str | None) -> ReadingPosition | None:
        """Reading position addressed by a fragment, None when it does not resolve."""
        if not fragment_text:
            return None
        try:
            return await self._resolve(fragment_text)
        except Exception as e:
            log.warning("Error resolving fragment %s: %s", fragment_text, e)
            return None

    async def _resolve(self, fragment_text: str) -> ReadingPosition | None:
        fragment = Fragment.parse(fragment_text)
        if self.package.opf_root is not None:
            nav = fragment.navigate(self.package.opf_root)
            if nav.node.is_text or nav.after or nav.ref is None:
                return None
            elem = nav.node.element
            idref = elem.get("idref")
            item = self.package.item_by_id(idref) if idref else None
            if local_name(elem) != "itemref" or item is None or not item.in_spine:
                return None
            fragment = nav.ref
        else:
            item = self.package.spine[0]
        document = await self.store.load(item.url)
        nav = fragment.navigate(document.root)
        offset = document.offset_of_node(nav.node, nav.offset, nav.after)
        return ReadingPosition(spine_index=item.spine_index, page_index=-1, offset_in_item=offset)

    async def estimated_page_for_offset(self, spine_index: int, offset: int) -> float:
        """Estimated page number for progress display."""
        item = self.package.spine[spine_index]
        if offset == 0:
            return item.epage
        document = await self.store.load(item.url)
        total = document.total_content_length()
        if not total:
            return item.epage
        return item.epage + offset * item.epage_count / total
