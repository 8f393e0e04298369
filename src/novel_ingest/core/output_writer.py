"""Persist a conversion result-set."""

import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Protocol

from novel_ingest.core.markdown_converter import sanitize_filename
from novel_ingest.models.book import Book

log = logging.getLogger(__name__)


class FileOrganizer(Protocol):
    """Collaborator that stores rendered files for a book."""

    def save_files(self, book: Book, results: Mapping[str, str]) -> list[Path]: ...


class OutputWriter:
    """Write rendered files under ``output_root/<book title>/``."""

    def __init__(self, output_root: Path):
        self.output_root = output_root

    def book_directory(self, book: Book) -> Path:
        return self.output_root / (sanitize_filename(book.metadata.title) or "book")

    def save_files(self, book: Book, results: Mapping[str, str]) -> list[Path]:
        """Write every entry of ``results``; returns the written paths."""
        book_dir = self.book_directory(book)
        book_dir.mkdir(parents=True, exist_ok=True)

        written = []
        for filename, content in results.items():
            filepath = book_dir / filename
            filepath.write_text(content, encoding="utf-8")
            written.append(filepath)

        log.debug("Wrote %d files to %s", len(written), book_dir)
        return written
