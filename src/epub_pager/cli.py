"""Main CLI application."""

import logging
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from epub_pager.cache.manager import BookmarkManager
from epub_pager.commands.pages import ViewOptions

app = typer.Typer(
    name="epub-pager",
    help="Inspect, paginate and bookmark EPUB publications.",
    add_completion=False,
)

console = Console()

# Bookmark subcommand group
bookmark_app = typer.Typer(help="Bookmark management commands")
app.add_typer(bookmark_app, name="bookmark")

BookPath = Annotated[
    Path,
    typer.Argument(
        help="Path to an .epub file, an unpacked EPUB directory or an XHTML file",
        exists=True,
        file_okay=True,
        dir_okay=True,
        resolve_path=True,
    ),
]
Width = Annotated[int, typer.Option("--width", help="Page width in pixels", min=1)]
Height = Annotated[int, typer.Option("--height", help="Page height in pixels", min=1)]
FontSize = Annotated[float, typer.Option("--font-size", help="Font size in pixels", min=1)]
LineHeight = Annotated[
    float, typer.Option("--line-height", help="Line height as a multiple of the font size")
]
Margin = Annotated[int, typer.Option("--margin", help="Page margin in pixels", min=0)]
ProjectDir = Annotated[
    Path,
    typer.Option(
        "--dir",
        "-d",
        help="Project directory containing the bookmark cache (default: current directory)",
    ),
]


@app.callback()
def main(
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Show debug logging"),
    ] = False,
) -> None:
    """Inspect, paginate and bookmark EPUB publications."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


@app.command()
def info(book_path: BookPath) -> None:
    """Display package metadata and the spine."""
    try:
        from epub_pager.commands.info import execute_info

        execute_info(book_path=book_path, console=console)
    except Exception as e:
        console.print(f"[red]Error reading file: {e}[/]")
        raise typer.Exit(1)


@app.command()
def pages(
    book_path: BookPath,
    width: Width = 600,
    height: Height = 800,
    font_size: FontSize = 16.0,
    line_height: LineHeight = 1.2,
    margin: Margin = 0,
    show_text: Annotated[
        bool,
        typer.Option("--text", "-t", help="Print the text of every page"),
    ] = False,
) -> None:
    """Lay out the whole publication and count pages per spine item."""
    options = ViewOptions(width, height, font_size, line_height, margin)
    try:
        from epub_pager.commands.pages import execute_pages

        execute_pages(
            book_path=book_path, options=options, show_text=show_text, console=console
        )
    except Exception as e:
        console.print(f"[red]Error: {e}[/]")
        raise typer.Exit(1)


@app.command()
def show(
    book_path: BookPath,
    cfi: Annotated[
        Optional[str],
        typer.Option("--cfi", "-c", help="Fragment address of the page to show"),
    ] = None,
    link: Annotated[
        Optional[str],
        typer.Option("--link", "-l", help="Link (path#id) relative to the publication"),
    ] = None,
    last: Annotated[
        bool,
        typer.Option("--last", help="Show the last page"),
    ] = False,
    width: Width = 600,
    height: Height = 800,
    font_size: FontSize = 16.0,
    line_height: LineHeight = 1.2,
    margin: Margin = 0,
) -> None:
    """Render a single page (the first one by default)."""
    options = ViewOptions(width, height, font_size, line_height, margin)
    try:
        from epub_pager.commands.pages import execute_show

        found = execute_show(
            book_path=book_path,
            options=options,
            console=console,
            cfi=cfi,
            link=link,
            last=last,
        )
    except Exception as e:
        console.print(f"[red]Error: {e}[/]")
        raise typer.Exit(1)
    if not found:
        raise typer.Exit(1)


@app.command()
def cfi(
    book_path: BookPath,
    item: Annotated[int, typer.Argument(help="Spine item number (see 'epub-pager info')", min=1)],
    offset: Annotated[int, typer.Argument(help="Character offset inside the item", min=0)] = 0,
) -> None:
    """Print the fragment address of an offset inside a spine item."""
    try:
        from epub_pager.commands.locate import execute_cfi

        found = execute_cfi(
            book_path=book_path, spine_index=item - 1, offset=offset, console=console
        )
    except Exception as e:
        console.print(f"[red]Error: {e}[/]")
        raise typer.Exit(1)
    if not found:
        raise typer.Exit(1)


@app.command()
def resolve(
    book_path: BookPath,
    fragment: Annotated[str, typer.Argument(help="Fragment address, e.g. epubcfi(/6/4!/4/2/1:0)")],
) -> None:
    """Resolve a fragment address into a spine item and offset."""
    try:
        from epub_pager.commands.locate import execute_resolve

        found = execute_resolve(book_path=book_path, fragment=fragment, console=console)
    except Exception as e:
        console.print(f"[red]Error: {e}[/]")
        raise typer.Exit(1)
    if not found:
        raise typer.Exit(1)


@app.command()
def deobfuscate(
    book_path: BookPath,
    resource: Annotated[str, typer.Argument(help="Resource path inside the publication")],
    output: Annotated[
        Path,
        typer.Option("--output", "-o", help="File to write the plain resource to"),
    ],
) -> None:
    """Extract an embedded resource with font obfuscation removed."""
    try:
        from epub_pager.commands.deobfuscate import execute_deobfuscate

        execute_deobfuscate(
            book_path=book_path, resource=resource, output=output, console=console
        )
    except Exception as e:
        console.print(f"[red]Error: {e}[/]")
        raise typer.Exit(1)


@bookmark_app.command("add")
def bookmark_add(
    book_path: BookPath,
    cfi: Annotated[
        Optional[str],
        typer.Option("--cfi", "-c", help="Fragment address to bookmark"),
    ] = None,
    link: Annotated[
        Optional[str],
        typer.Option("--link", "-l", help="Link (path#id) to bookmark"),
    ] = None,
    label: Annotated[
        Optional[str],
        typer.Option("--label", help="Label shown in the bookmark list"),
    ] = None,
    project_dir: ProjectDir = Path("."),
) -> None:
    """Bookmark the page at a fragment address or link (first page by default)."""
    try:
        from epub_pager.commands.bookmark import execute_bookmark_add

        saved = execute_bookmark_add(
            book_path=book_path,
            manager=BookmarkManager(project_dir.resolve()),
            console=console,
            cfi=cfi,
            link=link,
            label=label,
        )
    except Exception as e:
        console.print(f"[red]Error: {e}[/]")
        raise typer.Exit(1)
    if not saved:
        raise typer.Exit(1)


@bookmark_app.command("list")
def bookmark_list(book_path: BookPath, project_dir: ProjectDir = Path(".")) -> None:
    """List the bookmarks of a publication in reading order."""
    from epub_pager.commands.bookmark import execute_bookmark_list

    execute_bookmark_list(
        book_path=book_path, manager=BookmarkManager(project_dir.resolve()), console=console
    )


@bookmark_app.command("remove")
def bookmark_remove(
    book_path: BookPath,
    number: Annotated[int, typer.Argument(help="Bookmark number from 'bookmark list'", min=1)],
    project_dir: ProjectDir = Path("."),
) -> None:
    """Remove a bookmark."""
    from epub_pager.commands.bookmark import execute_bookmark_remove

    removed = execute_bookmark_remove(
        book_path=book_path,
        number=number,
        manager=BookmarkManager(project_dir.resolve()),
        console=console,
    )
    if not removed:
        raise typer.Exit(1)


@bookmark_app.command("clear")
def bookmark_clear(project_dir: ProjectDir = Path(".")) -> None:
    """Clear all bookmarks."""
    manager = BookmarkManager(project_dir.resolve())
    count = manager.clear_cache()

    if count > 0:
        console.print(f"[green]Cleared bookmarks of {count} publication(s)[/]")
    else:
        console.print("[dim]No bookmarks to clear[/]")


@bookmark_app.command("publications")
def bookmark_publications(project_dir: ProjectDir = Path(".")) -> None:
    """List all publications with bookmarks."""
    manager = BookmarkManager(project_dir.resolve())
    cached = manager.list_cached()

    if not cached:
        console.print("[dim]No bookmarked publications[/]")
        return

    table = Table(title="Bookmarked Publications", show_header=True, header_style="bold cyan")
    table.add_column("Path", style="white")
    table.add_column("Hash", style="dim", width=12)

    for path, file_hash in cached:
        # Truncate path for display
        display_path = path if len(path) < 60 else "..." + path[-57:]
        table.add_row(display_path, file_hash[:12])

    console.print(table)


if __name__ == "__main__":
    app()
