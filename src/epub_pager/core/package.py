"""Package (OPF) document model."""

from __future__ import annotations

import logging
import math
from typing import TYPE_CHECKING
from urllib.parse import quote, unquote, urljoin

from epub_pager.core.deobfuscator import OBFUSCATION_ALGORITHM, make_deobfuscator
from epub_pager.models.package import ArchiveEntry, PackageItem

if TYPE_CHECKING:
    from epub_pager.cache.store import PackageStore

log = logging.getLogger(__name__)

BYTES_PER_EPAGE = 1024


def _children(element, name: str) -> list:
    """Child elements with the given local name, in any namespace."""
    if element is None:
        return []
    return element.xpath("./*[local-name()=$name]", name=name)


def _child(element, name: str):
    found = _children(element, name)
    return found[0] if found else None


class PackageDocument:
    """Parsed publication: manifest, spine, bindings and estimated pages."""

    def __init__(self, store: PackageStore | None, epub_url: str | None):
        self.store = store
        self.epub_url = epub_url
        self.opf_url: str | None = None
        self.opf_root = None
        self.items: list[PackageItem] = []
        self.spine: list[PackageItem] = []
        self.item_map: dict[str, PackageItem] = {}
        self.item_map_by_path: dict[str, PackageItem] = {}
        self.uid: str | None = None
        self.bindings: dict[str, str] = {}
        self.lang: str | None = None
        self.epage_count = 0

    @classmethod
    def from_xml(
        cls,
        store: PackageStore | None,
        epub_url: str | None,
        opf_url: str,
        opf_root,
        enc_root=None,
        archive_metadata: list[ArchiveEntry] | None = None,
    ) -> PackageDocument:
        """Build the model from a parsed package document."""
        doc = cls(store, epub_url)
        doc.opf_url = opf_url
        doc.opf_root = opf_root
        doc._read_uid()
        doc._read_manifest()
        doc._read_spine()
        doc._read_encryption(enc_root)
        doc._read_bindings()
        doc._read_language()
        if archive_metadata:
            doc.merge_archive_metadata(archive_metadata)
        else:
            log.debug("No archive metadata for %s", opf_url)
        return doc

    @classmethod
    def single_chapter(cls, store: PackageStore | None, url: str) -> PackageDocument:
        """Fake package holding the single content document at ``url``."""
        doc = cls(store, None)
        item = PackageItem(id="item1", url=url, spine_index=0)
        doc.items = [item]
        doc.spine = [item]
        doc.item_map = {"item1": item}
        doc.item_map_by_path = {url: item}
        return doc

    def _read_uid(self) -> None:
        uidref = self.opf_root.get("unique-identifier")
        if not uidref:
            log.debug("Package %s declares no unique identifier", self.opf_url)
            return
        found = self.opf_root.xpath("//*[@id=$id]", id=uidref)
        if not found:
            log.debug("Unique identifier %r not found in %s", uidref, self.opf_url)
            return
        self.uid = "".join((found[0].text or "").split())

    def _read_manifest(self) -> None:
        for elem in _children(_child(self.opf_root, "manifest"), "item"):
            href = elem.get("href")
            self.items.append(
                PackageItem(
                    id=elem.get("id"),
                    url=urljoin(self.opf_url, href) if href else None,
                    media_type=elem.get("media-type"),
                )
            )
        self.item_map = {item.id: item for item in self.items}
        self.item_map_by_path = {
            self.path_from_url(item.url): item for item in self.items if item.url
        }

    def _read_spine(self) -> None:
        for elem in _children(_child(self.opf_root, "spine"), "itemref"):
            idref = elem.get("idref")
            item = self.item_map.get(idref)
            if item is None:
                log.debug("Dropping spine reference to unknown item %r", idref)
                continue
            item.itemref_element = elem
            item.spine_index = len(self.spine)
            self.spine.append(item)

    def _read_encryption(self, enc_root) -> None:
        if enc_root is None:
            log.debug("No encryption manifest for %s", self.opf_url)
            return
        uris = []
        for data in _children(enc_root, "EncryptedData"):
            method = _child(data, "EncryptionMethod")
            if method is None or method.get("Algorithm") != OBFUSCATION_ALGORITHM:
                continue
            for ref in _children(_child(data, "CipherData"), "CipherReference"):
                if ref.get("URI"):
                    uris.append(ref.get("URI"))
        if not uris:
            return
        if not self.uid:
            log.warning("Obfuscated resources in %s but no unique identifier", self.opf_url)
            return
        deobfuscator = make_deobfuscator(self.uid)
        for uri in uris:
            url = urljoin(self.epub_url, uri) if self.epub_url else uri
            if self.store is not None:
                self.store.register_deobfuscator(url, deobfuscator)

    def _read_bindings(self) -> None:
        for elem in _children(_child(self.opf_root, "bindings"), "mediaType"):
            handler_id = elem.get("handler")
            media_type = elem.get("media-type")
            if media_type and handler_id and handler_id in self.item_map:
                self.bindings[media_type] = self.item_map[handler_id].url

    def _read_language(self) -> None:
        langs = [
            elem.text.strip()
            for elem in _children(_child(self.opf_root, "metadata"), "language")
            if elem.text and elem.text.strip()
        ]
        if langs:
            self.lang = langs[0]

    def merge_archive_metadata(self, entries: list[ArchiveEntry]) -> None:
        """Copy compression info onto the manifest and recompute estimated pages."""
        for entry in entries:
            if not entry.name:
                continue
            item = self.item_map_by_path.get(unquote(entry.name))
            if item is not None:
                item.compressed = entry.method != 0
                item.compressed_size = entry.compressed_size
        self.assign_estimated_pages()

    def assign_estimated_pages(self) -> None:
        epage = 0
        for item in self.spine:
            item.epage = epage
            item.epage_count = math.ceil(item.compressed_size / BYTES_PER_EPAGE)
            epage += item.epage_count
        self.epage_count = epage

    def path_from_url(self, url: str) -> str | None:
        """Path of ``url`` relative to the publication, None when outside it."""
        if not self.epub_url:
            return url
        if not url.startswith(self.epub_url):
            return None
        return unquote(url[len(self.epub_url) :])

    def item_by_id(self, item_id: str) -> PackageItem | None:
        return self.item_map.get(item_id)

    def item_by_path(self, path: str) -> PackageItem | None:
        return self.item_map_by_path.get(path)

    def item_by_url(self, url: str) -> PackageItem | None:
        path = self.path_from_url(url)
        return None if path is None else self.item_map_by_path.get(path)

    def handler_url(
        self, data_url: str, media_type: str | None, params: dict[str, str] | None = None
    ) -> str | None:
        """URL of the handler bound to the media type of an embedded object."""
        if not media_type:
            item = self.item_by_url(data_url)
            media_type = item.media_type if item else None
        handler = self.bindings.get(media_type) if media_type else None
        if not handler:
            return None
        parts = [
            f"{handler}?src={quote(data_url, safe=':/')}",
            f"type={quote(media_type, safe='/')}",
        ]
        for name, value in (params or {}).items():
            parts.append(f"{quote(name, safe='')}={quote(value, safe='')}")
        return "&".join(parts)
