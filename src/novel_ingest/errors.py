"""Error taxonomy for book ingestion."""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from novel_ingest.models.book import SkippedEntry


class ParseStage(str, Enum):
    """Pipeline stage at which a fatal format problem was detected."""

    ARCHIVE = "archive"
    CONTAINER = "container"
    PACKAGE = "package"


class BookIngestError(Exception):
    """Base class for all ingestion errors."""


class FormatError(BookIngestError):
    """The input is not a valid document at the given stage."""

    def __init__(self, stage: ParseStage, detail: str):
        self.stage = ParseStage(stage)
        self.detail = detail
        super().__init__(f"[{self.stage.value}] {detail}")


class EmptyResultError(BookIngestError):
    """Parsing succeeded structurally but no chapter survived extraction."""

    def __init__(self, skipped: tuple[SkippedEntry, ...] = ()):
        self.skipped = tuple(skipped)
        super().__init__(
            f"no chapters could be extracted ({len(self.skipped)} entries skipped)"
        )


class IndexOutOfRangeError(BookIngestError, IndexError):
    """Chapter index outside ``[0, chapter_count)``."""

    def __init__(self, index: int, chapter_count: int):
        self.index = index
        self.chapter_count = chapter_count
        super().__init__(
            f"chapter index {index} out of range (valid: 0-{chapter_count - 1})"
        )
