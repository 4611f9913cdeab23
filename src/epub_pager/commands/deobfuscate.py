"""Deobfuscate command implementation."""

from __future__ import annotations

import asyncio
from pathlib import Path
from urllib.parse import quote

from rich.console import Console
from rich.markup import escape

from epub_pager.cache.store import open_publication


async def _read(book_path: Path, resource: str) -> tuple[bytes, bool]:
    store, package = await open_publication(book_path)
    with store:
        if package is None:
            raise ValueError(f"No package document found in {book_path}")
        url = store.base_url + quote(resource.lstrip("/"))
        return await store.read_bytes(url), store.deobfuscator_for(url) is not None


def execute_deobfuscate(
    book_path: Path, resource: str, output: Path, console: Console
) -> None:
    """Write the plain bytes of a resource of the publication."""
    data, obfuscated = asyncio.run(_read(book_path, resource))
    output.write_bytes(data)
    if not obfuscated:
        console.print(f"[yellow]{escape(resource)} is not obfuscated, copied as is[/]")
    console.print(f"[green]Wrote {len(data):,} bytes to {output}[/]")
