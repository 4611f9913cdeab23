"""Bookmark command implementations."""

from __future__ import annotations

import asyncio
from pathlib import Path
from urllib.parse import urljoin

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from epub_pager.cache.manager import BookmarkManager
from epub_pager.cache.models import Bookmark
from epub_pager.commands.pages import ViewOptions, open_controller


async def _take_bookmark(
    book_path: Path, cfi: str | None, link: str | None, label: str | None
) -> Bookmark | None:
    async with open_controller(book_path, ViewOptions()) as controller:
        if cfi:
            page = await controller.navigate_to_fragment(cfi)
        elif link:
            base = controller.package.epub_url
            page = await controller.navigate_to_link(urljoin(base, link) if base else link)
        else:
            page = await controller.first_page()
        if page is None:
            return None
        fragment = await controller.get_fragment()
        if fragment is None:
            return None
        position = controller.get_position()
    return Bookmark(
        cfi=fragment,
        spine_index=position.spine_index,
        offset_in_item=position.offset_in_item,
        label=label,
    )


def execute_bookmark_add(
    book_path: Path,
    manager: BookmarkManager,
    console: Console,
    cfi: str | None = None,
    link: str | None = None,
    label: str | None = None,
) -> bool:
    """Save a bookmark for the page at a fragment address or link."""
    bookmark = asyncio.run(_take_bookmark(book_path, cfi, link, label))
    if bookmark is None:
        console.print("[yellow]No page at that position, nothing saved[/]")
        return False
    manager.add_bookmark(book_path, bookmark)
    console.print(f"[green]Saved bookmark {escape(bookmark.cfi)}[/]")
    return True


def execute_bookmark_list(book_path: Path, manager: BookmarkManager, console: Console) -> None:
    bookmarks = manager.list_bookmarks(book_path)
    if not bookmarks:
        console.print("[dim]No bookmarks[/]")
        return

    table = Table(title="Bookmarks", show_header=True, header_style="bold cyan")
    table.add_column("#", style="dim", width=4)
    table.add_column("Label", style="white")
    table.add_column("Fragment", style="white")
    table.add_column("Item", justify="right")
    table.add_column("Offset", justify="right")
    table.add_column("Offsets Valid", justify="center")

    for i, bookmark in enumerate(bookmarks):
        valid = manager.positions_valid(book_path, bookmark)
        table.add_row(
            str(i + 1),
            escape(bookmark.label or ""),
            escape(bookmark.cfi),
            str(bookmark.spine_index + 1),
            str(bookmark.offset_in_item),
            "[green]yes[/]" if valid else "[yellow]no[/]",
        )

    console.print(table)


def execute_bookmark_remove(
    book_path: Path, number: int, manager: BookmarkManager, console: Console
) -> bool:
    """Remove the bookmark at a 1-based position of the listing."""
    bookmarks = manager.list_bookmarks(book_path)
    if not 1 <= number <= len(bookmarks):
        console.print(f"[red]No bookmark #{number}[/]")
        return False
    manager.remove_bookmark(book_path, bookmarks[number - 1])
    console.print(f"[green]Removed bookmark #{number}[/]")
    return True
