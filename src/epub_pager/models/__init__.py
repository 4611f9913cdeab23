"""Data models."""

from epub_pager.models.package import (
    NOT_IN_SPINE,
    ArchiveEntry,
    PackageItem,
    ReadingPosition,
)
from epub_pager.models.preferences import LayoutPreferences, Viewport

__all__ = [
    # Package models
    "NOT_IN_SPINE",
    "ArchiveEntry",
    "PackageItem",
    "ReadingPosition",
    # Layout models
    "LayoutPreferences",
    "Viewport",
]
