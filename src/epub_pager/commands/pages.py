"""Pagination command implementations."""

from __future__ import annotations

import asyncio
from collections import Counter
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import AsyncIterator
from urllib.parse import urljoin

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from epub_pager.cache.store import open_publication
from epub_pager.core.pagination import PaginationController
from epub_pager.models.preferences import LayoutPreferences, Viewport


@dataclass
class ViewOptions:
    """Page geometry chosen on the command line."""

    width: int = 600
    height: int = 800
    font_size: float = 16.0
    line_height: float = 1.2
    margin: int = 0

    def viewport(self) -> Viewport:
        return Viewport(self.width, self.height, self.font_size)

    def preferences(self) -> LayoutPreferences:
        return LayoutPreferences(
            font_size=self.font_size, line_height=self.line_height, margin=self.margin
        )


@asynccontextmanager
async def open_controller(
    book_path: Path, options: ViewOptions
) -> AsyncIterator[PaginationController]:
    """Controller over an opened publication, closed again on exit."""
    store, package = await open_publication(book_path)
    with store:
        if package is None:
            raise ValueError(f"No package document found in {book_path}")
        yield PaginationController(package, options.viewport(), options.preferences())


async def _walk(book_path: Path, options: ViewOptions) -> tuple[PaginationController, list]:
    async with open_controller(book_path, options) as controller:
        pages = []
        page = await controller.first_page()
        while page is not None:
            pages.append((page.spine_index, controller.page_index, page.offset, page.text))
            controller.surface.release(page.container)
            page = await controller.next_page()
    return controller, pages


def execute_pages(
    book_path: Path, options: ViewOptions, show_text: bool, console: Console
) -> None:
    """Lay out the whole publication and report pages per spine item."""
    controller, pages = asyncio.run(_walk(book_path, options))

    if show_text:
        for spine_index, page_index, offset, text in pages:
            console.print(
                Panel(
                    escape(text.strip()) or "[dim](empty)[/]",
                    title=f"Item {spine_index + 1}, page {page_index + 1}",
                    subtitle=f"offset {offset}",
                    border_style="blue",
                )
            )

    counts = Counter(spine_index for spine_index, *_ in pages)
    table = Table(title="Pages", show_header=True, header_style="bold cyan")
    table.add_column("#", style="dim", width=4)
    table.add_column("Item", style="white")
    table.add_column("Pages", justify="right", style="green")
    table.add_column("Estimated", justify="right", style="dim")

    for item in controller.package.spine:
        table.add_row(
            str(item.spine_index + 1),
            item.id or "",
            str(counts.get(item.spine_index, 0)),
            str(item.epage_count),
        )

    console.print(table)
    console.print(f"[green]Total pages: {len(pages)}[/]")


async def _show(
    book_path: Path,
    options: ViewOptions,
    cfi: str | None,
    link: str | None,
    last: bool,
):
    async with open_controller(book_path, options) as controller:
        if cfi:
            page = await controller.navigate_to_fragment(cfi)
        elif link:
            base = controller.package.epub_url
            page = await controller.navigate_to_link(urljoin(base, link) if base else link)
        elif last:
            page = await controller.last_page()
        else:
            page = await controller.first_page()
        if page is None:
            return None, None, None
        return page, await controller.get_fragment(), await controller.estimated_page()


def execute_show(
    book_path: Path,
    options: ViewOptions,
    console: Console,
    cfi: str | None = None,
    link: str | None = None,
    last: bool = False,
) -> bool:
    """Render one page. Returns False when there is no such page."""
    page, fragment, epage = asyncio.run(_show(book_path, options, cfi, link, last))
    if page is None:
        console.print("[yellow]No page at that position[/]")
        return False

    flags = []
    if page.is_first_page:
        flags.append("first")
    if page.is_last_page:
        flags.append("last")
    console.print(
        Panel(
            escape(page.text.strip()) or "[dim](empty)[/]",
            title=f"Item {page.spine_index + 1}" + (f" ({', '.join(flags)})" if flags else ""),
            subtitle=f"{escape(fragment or '-')}  ~page {epage:.1f}",
            border_style="green",
        )
    )
    for embed in page.embeds:
        console.print(f"[dim]Embedded:[/] {embed.url}")
    return True
