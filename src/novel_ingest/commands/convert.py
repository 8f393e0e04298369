"""Convert command implementation."""

import time
from pathlib import Path

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn

from novel_ingest.core.epub_parser import EpubParser
from novel_ingest.core.markdown_converter import (
    conversion_stats,
    convert_book,
    validate_result_set,
)
from novel_ingest.core.output_writer import FileOrganizer, OutputWriter
from novel_ingest.models.book import Book
from novel_ingest.models.options import ConversionOptions, ParseOptions


def parse_book(
    book_path: Path,
    parse_options: ParseOptions,
    quiet: bool,
    console: Console,
) -> Book:
    """Parse a book file, with a spinner unless quiet."""
    parser = EpubParser.from_path(book_path, parse_options)
    if quiet:
        return parser.parse()

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
    ) as progress:
        progress.add_task("Parsing EPUB...", total=None)
        return parser.parse()


def execute_convert(
    book_path: Path,
    output_dir: Path | None,
    conversion_options: ConversionOptions,
    parse_options: ParseOptions,
    quiet: bool,
    console: Console,
    organizer: FileOrganizer | None = None,
) -> bool:
    """Execute the convert command. Returns False when the output is invalid."""
    parsed = parse_book(book_path, parse_options, quiet, console)

    started = time.perf_counter()
    results = convert_book(parsed, conversion_options)
    if not validate_result_set(results):
        console.print("[red]Conversion produced an incomplete file set; nothing written.[/]")
        return False
    stats = conversion_stats(results, started)

    if organizer is None:
        organizer = OutputWriter(output_dir or book_path.parent)
    written = organizer.save_files(parsed, results)

    if not quiet:
        summary_lines = [
            f"[green]Converted {stats.chapters_generated} chapter(s)[/]",
            "",
            f"[dim]Title:[/] {escape(parsed.metadata.title)}",
            f"[dim]Author:[/] {escape(parsed.metadata.author)}",
            f"[dim]Total words:[/] {parsed.total_word_count:,}",
            f"[dim]Files written:[/] {len(written)}",
            f"[dim]Output size:[/] {stats.total_file_size:,} bytes",
        ]
        if written:
            summary_lines.append(
                f"[dim]Output directory:[/] {escape(str(written[0].parent))}"
            )

        if parsed.skipped:
            summary_lines.append("")
            for entry in parsed.skipped:
                summary_lines.append(
                    f"[yellow]⚠ Skipped {escape(entry.item_id)}: {entry.reason.value}[/]"
                )

        console.print()
        console.print(
            Panel(
                "\n".join(summary_lines),
                title="Complete",
                border_style="green",
            )
        )

    return True
