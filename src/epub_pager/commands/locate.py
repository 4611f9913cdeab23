"""Fragment address command implementations."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from epub_pager.cache.store import open_publication
from epub_pager.core.position import PositionResolver
from epub_pager.models.package import ReadingPosition


@asynccontextmanager
async def _resolver(book_path: Path) -> AsyncIterator[PositionResolver]:
    store, package = await open_publication(book_path)
    with store:
        if package is None:
            raise ValueError(f"No package document found in {book_path}")
        yield PositionResolver(package)


async def _to_fragment(book_path: Path, spine_index: int, offset: int) -> str | None:
    async with _resolver(book_path) as resolver:
        if not 0 <= spine_index < len(resolver.package.spine):
            raise ValueError(
                f"Spine index {spine_index + 1} out of range (1-{len(resolver.package.spine)})"
            )
        return await resolver.position_to_fragment(spine_index, offset)


async def _to_position(book_path: Path, fragment: str) -> tuple[ReadingPosition | None, float]:
    async with _resolver(book_path) as resolver:
        position = await resolver.fragment_to_position(fragment)
        if position is None:
            return None, 0.0
        epage = await resolver.estimated_page_for_offset(
            position.spine_index, position.offset_in_item
        )
    return position, epage


def execute_cfi(book_path: Path, spine_index: int, offset: int, console: Console) -> bool:
    """Print the fragment address of a spine item offset (0-based index)."""
    fragment = asyncio.run(_to_fragment(book_path, spine_index, offset))
    if fragment is None:
        console.print("[yellow]No content at that offset[/]")
        return False
    console.print(escape(fragment))
    return True


def execute_resolve(book_path: Path, fragment: str, console: Console) -> bool:
    """Print the reading position a fragment address points at."""
    position, epage = asyncio.run(_to_position(book_path, fragment))
    if position is None:
        console.print(f"[yellow]Fragment does not resolve: {escape(fragment)}[/]")
        return False

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Item", justify="right")
    table.add_column("Offset", justify="right")
    table.add_column("Estimated Page", justify="right", style="green")
    table.add_row(
        str(position.spine_index + 1), str(position.offset_in_item), f"{epage:.2f}"
    )
    console.print(table)
    return True
