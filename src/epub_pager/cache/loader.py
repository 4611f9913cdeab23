"""Cached asynchronous resource loading."""

from __future__ import annotations

import asyncio
import functools
import logging
from typing import Awaitable, Callable, Mapping
from urllib.parse import urldefrag

from epub_pager.cache.fetch import ResourceFetcher
from epub_pager.core.content import ContentDocument, parse_xml
from epub_pager.core.deobfuscator import Deobfuscator
from epub_pager.errors import ResourceNotFoundError
from epub_pager.models.package import ArchiveEntry

log = logging.getLogger(__name__)


class ResourceLoader:
    """Load and cache content documents, plain XML and the archive listing.

    Loads in flight are shared between callers. A failed load is dropped
    from the cache so the next request retries it.
    """

    def __init__(
        self,
        fetcher: ResourceFetcher,
        deobfuscators: Mapping[str, Deobfuscator] | None = None,
    ):
        self.fetcher = fetcher
        self.deobfuscators = deobfuscators if deobfuscators is not None else {}
        self._documents: dict[str, asyncio.Task] = {}
        self._xml: dict[str, asyncio.Task] = {}
        self._listing: dict[str, asyncio.Task] = {}

    def _cached(
        self,
        cache: dict[str, asyncio.Task],
        url: str,
        factory: Callable[[str], Awaitable],
    ) -> asyncio.Task:
        task = cache.get(url)
        if task is None:
            task = asyncio.ensure_future(factory(url))
            task.add_done_callback(functools.partial(self._forget_failed, cache, url))
            cache[url] = task
        return task

    @staticmethod
    def _forget_failed(cache: dict[str, asyncio.Task], url: str, task: asyncio.Task) -> None:
        if task.cancelled() or task.exception() is not None:
            if cache.get(url) is task:
                del cache[url]

    async def read_bytes(self, url: str) -> bytes:
        """Raw bytes of a resource, deobfuscated when a transform is registered."""
        url = urldefrag(url)[0]
        data = await asyncio.to_thread(self.fetcher.read, url)
        deobfuscate = self.deobfuscators.get(url)
        if deobfuscate is not None:
            log.debug("Deobfuscating %s", url)
            data = deobfuscate(data)
        return data

    async def _load_document(self, url: str) -> ContentDocument:
        return ContentDocument.from_bytes(url, await self.read_bytes(url))

    async def _load_xml(self, url: str):
        try:
            data = await self.read_bytes(url)
        except ResourceNotFoundError:
            log.debug("Missing XML resource %s", url)
            return None
        return parse_xml(data)

    async def _load_listing(self, url: str) -> list[ArchiveEntry] | None:
        return await asyncio.to_thread(self.fetcher.listing)

    async def load(self, url: str) -> ContentDocument:
        return await self._cached(self._documents, urldefrag(url)[0], self._load_document)

    def fetch(self, url: str) -> None:
        """Start loading a content document without waiting for it."""
        self._cached(self._documents, urldefrag(url)[0], self._load_document)

    async def load_xml(self, url: str):
        """Root element of an XML resource, None when it does not exist."""
        return await self._cached(self._xml, url, self._load_xml)

    def fetch_xml(self, url: str) -> None:
        self._cached(self._xml, url, self._load_xml)

    async def load_listing(self) -> list[ArchiveEntry] | None:
        return await self._cached(self._listing, self.fetcher.base_url, self._load_listing)

    def fetch_listing(self) -> None:
        self._cached(self._listing, self.fetcher.base_url, self._load_listing)
