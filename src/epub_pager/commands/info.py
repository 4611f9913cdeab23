"""Info command implementation."""

from __future__ import annotations

import asyncio
from pathlib import Path

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from epub_pager.cache.store import PackageStore, open_publication
from epub_pager.core.package import PackageDocument


def load_package(book_path: Path) -> tuple[PackageStore, PackageDocument]:
    """Open a publication, failing when it has no package document."""
    store, package = asyncio.run(open_publication(book_path))
    # Everything shown is parsed already
    store.close()
    if package is None:
        raise ValueError(f"No package document found in {book_path}")
    return store, package


def execute_info(book_path: Path, console: Console) -> None:
    """Display package metadata and the spine."""
    store, package = load_package(book_path)

    info_lines = [
        f"[bold]{book_path.name}[/]",
        "",
        f"[dim]Identifier:[/] {package.uid or 'Unknown'}",
        f"[dim]Language:[/] {package.lang or 'Unknown'}",
        f"[dim]Manifest Items:[/] {len(package.items)}",
        f"[dim]Spine Items:[/] {len(package.spine)}",
        f"[dim]Estimated Pages:[/] {package.epage_count}",
    ]
    if store.deobfuscators:
        info_lines.append(f"[dim]Obfuscated Resources:[/] {len(store.deobfuscators)}")
    for media_type, handler in package.bindings.items():
        info_lines.append(f"[dim]Binding:[/] {media_type} -> {handler}")
    if package.opf_root is None:
        info_lines.append("")
        info_lines.append("[yellow]Single content document (no package file)[/]")

    console.print()
    console.print(Panel("\n".join(info_lines), title="Publication", border_style="green"))

    console.print()
    table = Table(title="Spine", show_header=True, header_style="bold cyan")
    table.add_column("#", style="dim", width=4)
    table.add_column("Id", style="white")
    table.add_column("Path", style="white")
    table.add_column("Media Type", style="dim")
    table.add_column("EPage", justify="right", style="green")
    table.add_column("EPages", justify="right", style="green")

    for item in package.spine:
        path = package.path_from_url(item.url) or item.url
        table.add_row(
            str(item.spine_index + 1),
            item.id or "",
            path,
            item.media_type or "",
            str(item.epage),
            str(item.epage_count),
        )

    console.print(table)
    console.print()
