"""Publication-aware store for package documents and protected resources."""

from __future__ import annotations

import logging
from pathlib import Path
from urllib.parse import urljoin

from epub_pager.cache.fetch import ResourceFetcher, open_container
from epub_pager.cache.loader import ResourceLoader
from epub_pager.core.content import ContentDocument
from epub_pager.core.deobfuscator import Deobfuscator
from epub_pager.core.package import PackageDocument
from epub_pager.errors import ResourceNotFoundError

log = logging.getLogger(__name__)

CONTAINER_PATH = "META-INF/container.xml"
ENCRYPTION_PATH = "META-INF/encryption.xml"


class PackageStore:
    """Load package documents and serve content with deobfuscation applied."""

    def __init__(self, fetcher: ResourceFetcher):
        self.fetcher = fetcher
        self.deobfuscators: dict[str, Deobfuscator] = {}
        self.loader = ResourceLoader(fetcher, deobfuscators=self.deobfuscators)
        self.opf_by_url: dict[str, PackageDocument] = {}
        self.primary_opf_by_epub_url: dict[str, PackageDocument] = {}

    @property
    def base_url(self) -> str:
        return self.fetcher.base_url

    def register_deobfuscator(self, url: str, deobfuscator: Deobfuscator) -> None:
        self.deobfuscators[url] = deobfuscator

    def deobfuscator_for(self, url: str) -> Deobfuscator | None:
        return self.deobfuscators.get(url)

    async def load(self, url: str) -> ContentDocument:
        return await self.loader.load(url)

    def fetch(self, url: str) -> None:
        self.loader.fetch(url)

    async def read_bytes(self, url: str) -> bytes:
        return await self.loader.read_bytes(url)

    async def load_epub(
        self, epub_url: str | None = None, have_archive_metadata: bool | None = None
    ) -> PackageDocument | None:
        """Find the package document through ``META-INF/container.xml``."""
        epub_url = epub_url or self.base_url
        if have_archive_metadata is None:
            have_archive_metadata = self.fetcher.has_listing
        if have_archive_metadata:
            self.loader.fetch_listing()
        self.loader.fetch_xml(epub_url + ENCRYPTION_PATH)
        container = await self.loader.load_xml(epub_url + CONTAINER_PATH)
        if container is None:
            log.warning("No container document in %s", epub_url)
            return None
        for root in container.xpath("//*[local-name()='rootfile']/@full-path"):
            if root:
                return await self.load_opf(epub_url, root, have_archive_metadata)
        log.warning("Container of %s lists no package document", epub_url)
        return None

    async def load_opf(
        self, epub_url: str, root: str, have_archive_metadata: bool = False
    ) -> PackageDocument:
        url = urljoin(epub_url, root)
        opf = self.opf_by_url.get(url)
        if opf is not None:
            return opf
        opf_root = await self.loader.load_xml(url)
        if opf_root is None:
            raise ResourceNotFoundError(f"Package document not found: {url}")
        enc_root = await self.loader.load_xml(epub_url + ENCRYPTION_PATH)
        listing = await self.loader.load_listing() if have_archive_metadata else None
        opf = PackageDocument.from_xml(self, epub_url, url, opf_root, enc_root, listing)
        self.opf_by_url[url] = opf
        self.primary_opf_by_epub_url[epub_url] = opf
        log.debug("Loaded package %s with %d spine items", url, len(opf.spine))
        return opf

    def load_single_chapter(self, url: str) -> PackageDocument:
        return PackageDocument.single_chapter(self, url)

    def close(self) -> None:
        """Release the publication container."""
        self.fetcher.close()

    def __enter__(self) -> PackageStore:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


async def open_publication(path: Path) -> tuple[PackageStore, PackageDocument | None]:
    """Open an ``.epub`` file, an unpacked directory or a bare XHTML file.

    The caller owns the returned store and closes it when done.
    """
    store = PackageStore(open_container(path))
    try:
        if store.fetcher.entry_url:
            return store, store.load_single_chapter(store.fetcher.entry_url)
        return store, await store.load_epub()
    except BaseException:
        store.close()
        raise
