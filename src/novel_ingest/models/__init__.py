"""Data models."""

from novel_ingest.models.book import (
    UNKNOWN_AUTHOR,
    UNKNOWN_TITLE,
    Book,
    BookMetadata,
    Chapter,
    ParseStats,
    SkippedEntry,
    SkipReason,
)
from novel_ingest.models.options import (
    ConversionOptions,
    ParseOptions,
    resolve_options,
)
from novel_ingest.models.output import ConversionResultSet, ConversionStats
from novel_ingest.models.package import (
    ContainerPointer,
    ManifestItem,
    PackageDocument,
)

__all__ = [
    # Book models
    "UNKNOWN_TITLE",
    "UNKNOWN_AUTHOR",
    "Book",
    "BookMetadata",
    "Chapter",
    "ParseStats",
    "SkipReason",
    "SkippedEntry",
    # Package models
    "ContainerPointer",
    "ManifestItem",
    "PackageDocument",
    # Options
    "ParseOptions",
    "ConversionOptions",
    "resolve_options",
    # Output models
    "ConversionResultSet",
    "ConversionStats",
]
