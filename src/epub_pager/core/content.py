"""Content documents with a character offset index."""

from __future__ import annotations

import logging
import re
from bisect import bisect_right
from dataclasses import dataclass

from lxml import etree, html

log = logging.getLogger(__name__)

_VIEWPORT_PART = re.compile(r"\s*([\w-]+)\s*=\s*([\w.-]+)\s*")


def parse_xml(data: bytes):
    """Parse XML bytes into a root element, falling back to the HTML parser."""
    parser = etree.XMLParser(
        recover=True,
        remove_comments=True,
        remove_pis=True,
        resolve_entities=False,
        no_network=True,
    )
    root = None
    try:
        root = etree.fromstring(data, parser)
    except etree.XMLSyntaxError:
        pass
    if root is None:
        log.debug("Document is not well-formed XML, parsing as HTML")
        root = html.document_fromstring(
            data, parser=html.HTMLParser(remove_comments=True, remove_pis=True)
        )
    return root


def local_name(element) -> str:
    return etree.QName(element).localname


@dataclass(frozen=True)
class NodeRef:
    """An element, or one of its text slots when ``slot`` is set.

    Slot 0 is the leading text of the element, slot ``k`` the tail of its
    ``k``-th child.
    """

    element: object
    slot: int | None = None

    @property
    def is_text(self) -> bool:
        return self.slot is not None

    def text(self) -> str:
        if self.slot is None:
            return ""
        if self.slot == 0:
            return self.element.text or ""
        return self.element[self.slot - 1].tail or ""


class ContentDocument:
    """Parsed chapter document.

    Offsets count the characters of the text under ``<body>`` in document
    order. Elements occupy the span of the text they contain.
    """

    def __init__(self, url: str, root):
        self.url = url
        self.root = root
        self.body = self._find_body(root)
        self._chunk_starts: list[int] = []
        self._chunks: list[NodeRef] = []
        self._spans: dict = {}
        self._pieces: list[str] = []
        self._length = 0
        self._index(self.body)
        self.text = "".join(self._pieces)

    @classmethod
    def from_bytes(cls, url: str, data: bytes) -> ContentDocument:
        return cls(url, parse_xml(data))

    @staticmethod
    def _find_body(root):
        bodies = root.xpath("//*[local-name()='body']")
        return bodies[0] if bodies else root

    def _index(self, element) -> None:
        start = self._length
        self._add_text(NodeRef(element, 0), element.text)
        for i, child in enumerate(element):
            self._index(child)
            self._add_text(NodeRef(element, i + 1), child.tail)
        self._spans[element] = (start, self._length)

    def _add_text(self, node: NodeRef, text: str | None) -> None:
        if not text:
            return
        self._chunk_starts.append(self._length)
        self._chunks.append(node)
        self._pieces.append(text)
        self._length += len(text)

    def total_content_length(self) -> int:
        return self._length

    def find_node_at_offset(self, offset: int) -> NodeRef | None:
        """Return the text node covering ``offset``, or None for empty documents."""
        if not self._chunks:
            return None
        i = max(bisect_right(self._chunk_starts, offset) - 1, 0)
        return self._chunks[i]

    def offset_of_node(self, node: NodeRef, sub_offset: int = 0, after: bool = False) -> int:
        """Convert a node and an offset inside it into a content offset."""
        if node.slot is None:
            start, end = self._spans.get(node.element, (0, 0))
            return end if after else start
        if node.slot == 0:
            start = self._spans.get(node.element, (0, 0))[0]
        else:
            start = self._spans.get(node.element[node.slot - 1], (0, 0))[1]
        length = len(node.text())
        if after:
            return start + length
        return start + max(0, min(sub_offset, length))

    def find_element_by_id(self, element_id: str):
        found = self.root.xpath("//*[@id=$id]", id=element_id)
        return found[0] if found else None

    def element_offset(self, element) -> int:
        return self.offset_of_node(NodeRef(element))

    def objects(self) -> list:
        return self.body.xpath(".//*[local-name()='object']")

    def declared_viewport(self) -> tuple[int, int] | None:
        """Page size declared by ``<meta name="viewport">``, if any."""
        contents = self.root.xpath(
            "//*[local-name()='meta'][@name='viewport']/@content"
        )
        if not contents:
            return None
        values = {}
        for part in contents[0].split(","):
            match = _VIEWPORT_PART.fullmatch(part)
            if match:
                values[match.group(1).lower()] = match.group(2)
        try:
            return int(float(values["width"])), int(float(values["height"]))
        except (KeyError, ValueError):
            log.debug("Ignoring viewport declaration %r in %s", contents[0], self.url)
            return None
