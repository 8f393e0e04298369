"""Main CLI application."""

import logging
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from novel_ingest.commands.convert import execute_convert, parse_book
from novel_ingest.errors import BookIngestError, EmptyResultError, FormatError
from novel_ingest.models.options import ConversionOptions, ParseOptions

app = typer.Typer(
    name="novel-ingest",
    help="Convert EPUB books into Markdown chapter files and book metadata.",
    add_completion=False,
)

console = Console()

SUPPORTED_SUFFIXES = (".epub",)


def describe_error(error: Exception, book_path: Path) -> str:
    """Compose the user-facing message for a failed import."""
    if isinstance(error, FormatError):
        return (
            f"Failed to import {book_path.name}: not a valid EPUB "
            f"({error.stage.value} stage: {error.detail})"
        )
    if isinstance(error, EmptyResultError):
        return f"Failed to import {book_path.name}: no readable chapters found"
    return f"Failed to import {book_path.name}: {error}"


def _check_supported(book_path: Path) -> None:
    if book_path.suffix.lower() not in SUPPORTED_SUFFIXES:
        console.print(f"[red]Unsupported file format: {escape(book_path.suffix)}[/]")
        console.print("[dim]Supported formats: .epub[/]")
        raise typer.Exit(1)


@app.callback()
def main(
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            "-v",
            help="Show debug logging",
        ),
    ] = False,
) -> None:
    """Convert EPUB books into Markdown chapter files and book metadata."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )


@app.command()
def info(
    book_path: Annotated[
        Path,
        typer.Argument(
            help="Path to the EPUB file",
            exists=True,
            file_okay=True,
            dir_okay=False,
            resolve_path=True,
        ),
    ],
) -> None:
    """Display book metadata and chapter list."""
    _check_supported(book_path)

    try:
        parsed = parse_book(book_path, ParseOptions(), quiet=True, console=console)
    except BookIngestError as e:
        console.print(f"[red]{escape(describe_error(e, book_path))}[/]")
        raise typer.Exit(1)

    metadata = parsed.metadata
    info_lines = [
        f"[bold]{escape(metadata.title)}[/]",
        "",
        f"[dim]Author:[/] {escape(metadata.author)}",
        f"[dim]Language:[/] {escape(metadata.language or 'Unknown')}",
        f"[dim]Publisher:[/] {escape(metadata.publisher or 'Unknown')}",
        f"[dim]Chapters:[/] {parsed.chapter_count}",
        f"[dim]Total words:[/] {parsed.total_word_count:,}",
    ]
    if metadata.cover_image_href:
        info_lines.append(f"[dim]Cover:[/] {escape(metadata.cover_image_href)}")

    if parsed.skipped:
        info_lines.append("")
        for entry in parsed.skipped:
            info_lines.append(
                f"[yellow]⚠ Skipped {escape(entry.item_id)}: {entry.reason.value}[/]"
            )

    console.print()
    console.print(
        Panel(
            "\n".join(info_lines),
            title="Book Information",
            border_style="green",
        )
    )

    console.print()
    table = Table(title="Chapters", show_header=True, header_style="bold cyan")
    table.add_column("#", style="dim", width=4)
    table.add_column("Title", style="white")
    table.add_column("Words", justify="right", style="green")

    for chapter in parsed.chapters:
        table.add_row(
            str(chapter.index + 1), escape(chapter.title), f"{chapter.word_count:,}"
        )

    console.print(table)
    console.print()


@app.command()
def convert(
    book_path: Annotated[
        Path,
        typer.Argument(
            help="Path to the EPUB file",
            exists=True,
            file_okay=True,
            dir_okay=False,
            resolve_path=True,
        ),
    ],
    output_dir: Annotated[
        Optional[Path],
        typer.Option(
            "--output-dir",
            "-o",
            help="Directory to create the book folder in (default: next to the EPUB)",
        ),
    ] = None,
    no_numbers: Annotated[
        bool,
        typer.Option(
            "--no-numbers",
            help="Do not prefix chapter headings with 第N章",
        ),
    ] = False,
    title_level: Annotated[
        int,
        typer.Option(
            "--title-level",
            help="Markdown heading level for chapter titles",
            min=1,
        ),
    ] = 1,
    no_separators: Annotated[
        bool,
        typer.Option(
            "--no-separators",
            help="Do not append a horizontal rule after each chapter",
        ),
    ] = False,
    preserve_markup: Annotated[
        bool,
        typer.Option(
            "--preserve-markup",
            help="Do not strip markup left in chapter text",
        ),
    ] = False,
    rich_markdown: Annotated[
        bool,
        typer.Option(
            "--rich-markdown",
            help="Render chapter bodies from the source markup (keeps emphasis, lists)",
        ),
    ] = False,
    workers: Annotated[
        int,
        typer.Option(
            "--workers",
            "-w",
            help="Threads used to extract chapters",
            min=1,
        ),
    ] = 1,
    quiet: Annotated[
        bool,
        typer.Option(
            "--quiet",
            "-q",
            help="Suppress progress output",
        ),
    ] = False,
) -> None:
    """Convert an EPUB into Markdown chapter files, README.md and book.json."""
    _check_supported(book_path)

    conversion_options = ConversionOptions(
        preserve_markup=preserve_markup,
        number_chapters=not no_numbers,
        title_level=title_level,
        add_separators=not no_separators,
        markdown_from_markup=rich_markdown,
    )
    parse_options = ParseOptions(keep_raw_markup=rich_markdown, max_workers=workers)

    try:
        ok = execute_convert(
            book_path=book_path,
            output_dir=output_dir,
            conversion_options=conversion_options,
            parse_options=parse_options,
            quiet=quiet,
            console=console,
        )
    except BookIngestError as e:
        console.print(f"[red]{escape(describe_error(e, book_path))}[/]")
        raise typer.Exit(1)

    if not ok:
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
