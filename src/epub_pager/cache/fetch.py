"""Read raw resources from a publication container."""

from __future__ import annotations

import zipfile
from pathlib import Path
from typing import Protocol
from urllib.parse import quote, unquote, urldefrag

from epub_pager.errors import ResourceNotFoundError
from epub_pager.models.package import ArchiveEntry


class ResourceFetcher(Protocol):
    base_url: str
    entry_url: str | None
    has_listing: bool

    def read(self, url: str) -> bytes: ...

    def listing(self) -> list[ArchiveEntry] | None: ...

    def close(self) -> None: ...


def _relative_path(base_url: str, url: str) -> str:
    url = urldefrag(url)[0]
    if not url.startswith(base_url):
        raise ResourceNotFoundError(f"Resource outside of the publication: {url}")
    return unquote(url[len(base_url) :])


class DirectoryFetcher:
    """Resources of an unpacked publication directory."""

    has_listing = False

    def __init__(self, root: Path, entry: str | None = None):
        self.root = root.resolve()
        self.base_url = self.root.as_uri() + "/"
        # Set when a bare content document was opened
        self.entry_url = self.base_url + quote(entry) if entry else None

    def read(self, url: str) -> bytes:
        path = (self.root / _relative_path(self.base_url, url)).resolve()
        if not path.is_relative_to(self.root) or not path.is_file():
            raise ResourceNotFoundError(f"Resource not found: {url}")
        return path.read_bytes()

    def listing(self) -> list[ArchiveEntry] | None:
        return None

    def close(self) -> None:
        pass


class ZipFetcher:
    """Resources of a zipped ``.epub`` container."""

    has_listing = True
    entry_url = None

    def __init__(self, path: Path):
        self.path = path.resolve()
        # The archive is addressed like a directory
        self.base_url = self.path.as_uri() + "/"
        self._zip = zipfile.ZipFile(self.path)

    def read(self, url: str) -> bytes:
        name = _relative_path(self.base_url, url)
        try:
            return self._zip.read(name)
        except KeyError:
            raise ResourceNotFoundError(f"Resource not found: {url}") from None

    def listing(self) -> list[ArchiveEntry] | None:
        return [
            ArchiveEntry(
                name=quote(info.filename),
                method=info.compress_type,
                compressed_size=info.compress_size,
            )
            for info in self._zip.infolist()
            if not info.is_dir()
        ]

    def close(self) -> None:
        self._zip.close()


def open_container(path: Path) -> ResourceFetcher:
    """Create the fetcher for an ``.epub`` file, a directory or a bare XHTML file."""
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")
    if path.is_dir():
        return DirectoryFetcher(path)
    if zipfile.is_zipfile(path):
        return ZipFetcher(path)
    return DirectoryFetcher(path.parent, entry=path.name)
