"""Bookmark persistence with hash/mtime change detection."""

from __future__ import annotations

import hashlib
import json
import shutil
from datetime import datetime
from pathlib import Path

from epub_pager.cache.models import Bookmark, CachedBookmarks, CacheIndex, CacheMetadata
from epub_pager.core.cfi import Fragment
from epub_pager.errors import FragmentError


class BookmarkManager:
    """Manages bookmarks of publications in a project-local cache."""

    CACHE_DIR = ".epub_pager_cache"
    INDEX_FILE = "index.json"
    CACHE_VERSION = "1.0"

    def __init__(self, project_dir: Path):
        self.cache_root = project_dir / self.CACHE_DIR
        self.index_path = self.cache_root / self.INDEX_FILE
        self._index: CacheIndex | None = None

    def _ensure_cache_dir(self) -> None:
        """Create cache directory if it doesn't exist."""
        self.cache_root.mkdir(parents=True, exist_ok=True)

    def _load_index(self) -> CacheIndex:
        """Load or create cache index."""
        if self._index is not None:
            return self._index

        if self.index_path.exists():
            try:
                data = json.loads(self.index_path.read_text())
                self._index = CacheIndex.model_validate(data)
            except Exception:
                self._index = CacheIndex()
        else:
            self._index = CacheIndex()

        return self._index

    def _save_index(self) -> None:
        """Save cache index to disk."""
        self._ensure_cache_dir()
        index = self._load_index()
        self.index_path.write_text(index.model_dump_json(indent=2))

    @staticmethod
    def _entry_key(file_path: Path) -> str:
        return hashlib.sha256(str(file_path.resolve()).encode("utf-8")).hexdigest()[:16]

    def _entry_file(self, file_path: Path) -> Path:
        return self.cache_root / "bookmarks" / f"{self._entry_key(file_path)}.json"

    def get_file_hash(self, file_path: Path) -> str:
        """Compute SHA-256 hash of a file (or of the files of a directory)."""
        sha256 = hashlib.sha256()
        if file_path.is_dir():
            paths = sorted(
                p
                for p in file_path.rglob("*")
                if p.is_file() and self.CACHE_DIR not in p.parts
            )
        else:
            paths = [file_path]
        for path in paths:
            with open(path, "rb") as f:
                for chunk in iter(lambda: f.read(8192), b""):
                    sha256.update(chunk)
        return sha256.hexdigest()

    def _load_entry(self, file_path: Path) -> CachedBookmarks | None:
        entry_file = self._entry_file(file_path)
        if not entry_file.exists():
            return None
        try:
            return CachedBookmarks.model_validate_json(entry_file.read_text())
        except Exception:
            return None

    def _save_entry(self, file_path: Path, entry: CachedBookmarks) -> None:
        entry_file = self._entry_file(file_path)
        entry_file.parent.mkdir(parents=True, exist_ok=True)
        entry_file.write_text(entry.model_dump_json(indent=2))

        index = self._load_index()
        index.entries[str(file_path.resolve())] = entry.cache_metadata.file_hash
        self._save_index()

    def current_hash(self, file_path: Path) -> str:
        """Hash of the publication, reusing the stored one when mtime and size match."""
        stat = file_path.stat()
        entry = self._load_entry(file_path)

        # Fast path: check mtime and size first
        if (
            entry is not None
            and not file_path.is_dir()
            and entry.cache_metadata.file_mtime == stat.st_mtime
            and entry.cache_metadata.file_size == stat.st_size
        ):
            return entry.cache_metadata.file_hash

        file_hash = self.get_file_hash(file_path)
        if entry is not None:
            entry.cache_metadata.file_hash = file_hash
            entry.cache_metadata.file_mtime = stat.st_mtime
            entry.cache_metadata.file_size = stat.st_size
            self._save_entry(file_path, entry)
        return file_hash

    def positions_valid(self, file_path: Path, bookmark: Bookmark) -> bool:
        """Whether the raw offsets of ``bookmark`` still match the publication."""
        return bookmark.file_hash == self.current_hash(file_path)

    def add_bookmark(self, file_path: Path, bookmark: Bookmark) -> Bookmark:
        """Save a bookmark taken in the current version of the publication."""
        stat = file_path.stat()
        file_hash = self.current_hash(file_path)
        entry = self._load_entry(file_path)
        if entry is None:
            entry = CachedBookmarks(
                cache_metadata=CacheMetadata(
                    file_path=str(file_path.resolve()),
                    file_hash=file_hash,
                    file_size=stat.st_size,
                    file_mtime=stat.st_mtime,
                    cached_at=datetime.now(),
                    cache_version=self.CACHE_VERSION,
                )
            )
        bookmark = bookmark.model_copy(update={"file_hash": file_hash})
        entry.bookmarks.append(bookmark)
        self._save_entry(file_path, entry)
        return bookmark

    def list_bookmarks(self, file_path: Path) -> list[Bookmark]:
        """Bookmarks of a publication in reading order."""
        entry = self._load_entry(file_path)
        if entry is None:
            return []

        def reading_order(bookmark: Bookmark):
            try:
                return 0, Fragment.parse(bookmark.cfi).sort_key()
            except FragmentError:
                return 1, ()

        return sorted(entry.bookmarks, key=reading_order)

    def remove_bookmark(self, file_path: Path, bookmark: Bookmark) -> bool:
        entry = self._load_entry(file_path)
        if entry is None or bookmark not in entry.bookmarks:
            return False
        entry.bookmarks.remove(bookmark)
        self._save_entry(file_path, entry)
        return True

    def clear_cache(self) -> int:
        """Clear all cached data. Returns number of entries cleared."""
        if not self.cache_root.exists():
            return 0

        bookmarks_dir = self.cache_root / "bookmarks"
        if bookmarks_dir.exists():
            count = len(list(bookmarks_dir.iterdir()))
        else:
            count = 0

        shutil.rmtree(self.cache_root)
        self._index = None
        return count

    def list_cached(self) -> list[tuple[str, str]]:
        """List all publications with bookmarks. Returns list of (path, hash)."""
        index = self._load_index()
        return list(index.entries.items())
