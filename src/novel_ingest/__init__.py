"""Ingest EPUB books into a normalized model and Markdown/JSON files."""

from novel_ingest.core.epub_parser import EpubParser, parse_epub
from novel_ingest.core.markdown_converter import convert_book, validate_result_set
from novel_ingest.errors import (
    BookIngestError,
    EmptyResultError,
    FormatError,
    IndexOutOfRangeError,
    ParseStage,
)
from novel_ingest.models import Book, Chapter, ConversionOptions, ParseOptions

__version__ = "0.1.0"

__all__ = [
    "Book",
    "BookIngestError",
    "Chapter",
    "ConversionOptions",
    "EmptyResultError",
    "EpubParser",
    "FormatError",
    "IndexOutOfRangeError",
    "ParseOptions",
    "ParseStage",
    "convert_book",
    "parse_epub",
    "validate_result_set",
]
