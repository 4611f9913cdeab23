"""EPUB canonical fragment identifiers.

A fragment is a list of segments separated by indirections (``!``). Each
segment is a list of steps; even step indices select child elements
(``2`` is the first child), odd ones select the text between them. The
last step of the last segment may carry a character offset::

    epubcfi(/6/4[chap01ref]!/4[body01]/10[para05]/3:10)

The string grammar is handled by ``epubcfi``; ranges are reduced to their
start point.
"""

from __future__ import annotations

import functools
from dataclasses import dataclass, field

import epubcfi

from epub_pager.core.content import NodeRef
from epub_pager.errors import FragmentError

_PARSE_ERRORS = (epubcfi.EpubCFIException, epubcfi.TokenizerException, ValueError)


@dataclass(frozen=True)
class Step:
    index: int
    id: str | None = None

    def __str__(self) -> str:
        return str(epubcfi.Step(self.index, self.id or None))


@dataclass
class Navigation:
    """Where a fragment segment lands in a document."""

    node: NodeRef
    offset: int = 0
    after: bool = False
    ref: Fragment | None = None  # remainder after an indirection


@functools.total_ordering
@dataclass
class Fragment:
    segments: list[list[Step]] = field(default_factory=list)
    offset: int | None = None

    @classmethod
    def parse(cls, text: str) -> Fragment:
        value = text.strip()
        if not value.startswith("epubcfi("):
            value = f"epubcfi({value})"
        try:
            parsed = epubcfi.parse(value)
        except _PARSE_ERRORS as e:
            raise FragmentError(f"Malformed fragment {text!r}: {e}") from e
        if isinstance(parsed, epubcfi.PathRange):
            parsed, _ = epubcfi.to_absolute(parsed)

        segments = [[]]
        for step in parsed.steps:
            if isinstance(step, epubcfi.Redirect):
                segments.append([])
            else:
                segments[-1].append(Step(step.index, step.assertion))
        if not all(segments):
            raise FragmentError(f"Malformed fragment: {text!r}")

        offset = None
        if parsed.offset is not None:
            if not isinstance(parsed.offset, epubcfi.CharacterOffset):
                raise FragmentError(f"Unsupported offset {parsed.offset} in {text!r}")
            offset = parsed.offset.value
        return cls(segments, offset)

    @classmethod
    def from_node(cls, node: NodeRef, offset: int = 0) -> Fragment:
        """Build the path from the document root element to ``node``."""
        steps = []
        char_offset = None
        if node.slot is not None:
            steps.append(Step(2 * node.slot + 1))
            char_offset = offset
        element = node.element
        parent = element.getparent()
        if node.slot is None and parent is None:
            raise FragmentError("Cannot address the document root element")
        while parent is not None:
            steps.append(Step(2 * (parent.index(element) + 1), element.get("id")))
            element, parent = parent, parent.getparent()
        steps.reverse()
        return cls([steps], char_offset)

    def compose_outer(self, outer: Fragment) -> Fragment:
        """Prefix this fragment with ``outer`` followed by an indirection."""
        return Fragment(outer.segments + self.segments, self.offset)

    def navigate(self, root) -> Navigation:
        """Follow the first segment starting at the document ``root`` element."""
        if not self.segments or not self.segments[0]:
            raise FragmentError("Empty fragment")
        steps = self.segments[0]
        last_segment = len(self.segments) == 1
        current = root
        for k, step in enumerate(steps):
            is_last = k == len(steps) - 1
            children = list(current)
            if step.index % 2:
                slot = step.index // 2
                if not is_last or slot > len(children):
                    raise FragmentError(f"Text step {step} does not match")
                result = Navigation(NodeRef(current, slot))
                break
            position = step.index // 2 - 1
            if position == -1 or position == len(children):
                if not is_last:
                    raise FragmentError(f"Step {step} leaves the document")
                result = Navigation(NodeRef(current), after=position >= 0)
                break
            if not 0 <= position < len(children):
                raise FragmentError(f"Step {step} is out of range")
            current = self._check_id(root, children[position], step)
            if is_last:
                result = Navigation(NodeRef(current))
        if last_segment:
            result.offset = self.offset or 0
        else:
            result.ref = Fragment(self.segments[1:], self.offset)
        return result

    @staticmethod
    def _check_id(root, element, step: Step):
        if not step.id or element.get("id") == step.id:
            return element
        found = root.getroottree().xpath("//*[@id=$id]", id=step.id)
        if not found:
            raise FragmentError(f"No element with id {step.id!r}")
        return found[0]

    def sort_key(self) -> tuple:
        indices = tuple(tuple(s.index for s in segment) for segment in self.segments)
        return indices, self.offset or 0

    def __eq__(self, other) -> bool:
        if not isinstance(other, Fragment):
            return NotImplemented
        return self.sort_key() == other.sort_key()

    def __lt__(self, other: Fragment) -> bool:
        return self.sort_key() < other.sort_key()

    def __hash__(self) -> int:
        return hash(self.sort_key())

    def __str__(self) -> str:
        path = "!".join("".join(str(s) for s in segment) for segment in self.segments)
        if self.offset is not None:
            path += f":{self.offset}"
        return f"epubcfi({path})"
