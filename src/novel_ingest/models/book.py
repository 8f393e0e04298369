"""Data models for the assembled book."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, computed_field, model_validator

from novel_ingest.errors import IndexOutOfRangeError

UNKNOWN_TITLE = "未知标题"
UNKNOWN_AUTHOR = "未知作者"


class SkipReason(str, Enum):
    """Why a spine entry did not become a chapter."""

    NOT_IN_MANIFEST = "not_in_manifest"
    MISSING_FILE = "missing_file"
    UNREADABLE = "unreadable"
    EMPTY_CONTENT = "empty_content"


class SkippedEntry(BaseModel):
    """Diagnostic record for a dropped spine entry."""

    model_config = ConfigDict(frozen=True)

    item_id: str
    reason: SkipReason
    detail: str = ""


class Chapter(BaseModel):
    """Chapter content and metadata."""

    model_config = ConfigDict(frozen=True)

    index: int = Field(ge=0)
    title: str = Field(min_length=1)
    content: str
    word_count: int = Field(default=0, ge=0)
    id: str = ""
    file_name: str = ""
    raw_markup: str | None = None


class BookMetadata(BaseModel):
    """Book-level metadata."""

    model_config = ConfigDict(frozen=True)

    title: str = UNKNOWN_TITLE
    author: str = UNKNOWN_AUTHOR
    description: str | None = None
    cover_image_href: str | None = None
    language: str | None = None
    publisher: str | None = None


class ParseStats(BaseModel):
    """Timing and size figures for one parse call."""

    model_config = ConfigDict(frozen=True)

    parse_time_ms: float = 0.0
    original_size_bytes: int = 0
    parsed_size_bytes: int = 0


class Book(BaseModel):
    """Immutable result of parsing one EPUB."""

    model_config = ConfigDict(frozen=True)

    metadata: BookMetadata
    chapters: tuple[Chapter, ...]
    parse_stats: ParseStats = Field(default_factory=ParseStats)
    skipped: tuple[SkippedEntry, ...] = ()
    spine_order: tuple[str, ...] = ()

    @model_validator(mode="after")
    def _check_dense_indices(self) -> "Book":
        for position, chapter in enumerate(self.chapters):
            if chapter.index != position:
                raise ValueError(
                    f"chapter at position {position} has index {chapter.index}"
                )
        return self

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total_word_count(self) -> int:
        return sum(chapter.word_count for chapter in self.chapters)

    @property
    def chapter_count(self) -> int:
        return len(self.chapters)

    def get_chapter(self, index: int) -> Chapter:
        """Return the chapter at ``index`` or raise IndexOutOfRangeError."""
        if index < 0 or index >= len(self.chapters):
            raise IndexOutOfRangeError(index, len(self.chapters))
        return self.chapters[index]

    def get_chapter_range(self, start: int, end: int) -> list[Chapter]:
        """Return chapters ``start..end`` inclusive, clamped to the book.

        Never raises: bounds outside the book are clamped and an inverted
        range yields an empty list.
        """
        start = max(start, 0)
        end = min(end, len(self.chapters) - 1)
        if start > end:
            return []
        return list(self.chapters[start : end + 1])
