"""Render a parsed book into Markdown chapter files, a TOC and metadata.

Every function here is pure: options are passed in per call and results
are fresh strings.
"""

import json
import logging
import re
import time
from collections.abc import Iterable, Mapping
from datetime import datetime, timezone
from typing import Any

from novel_ingest.core.content_processor import (
    ContentProcessor,
    reflow_paragraphs,
    strip_markup,
)
from novel_ingest.models.book import Book, BookMetadata, Chapter
from novel_ingest.models.options import ConversionOptions, resolve_options
from novel_ingest.models.output import ConversionResultSet, ConversionStats

log = logging.getLogger(__name__)

TOC_FILENAME = "README.md"
METADATA_FILENAME = "book.json"
METADATA_VERSION = "1.0.0"
FILENAME_MAX_LENGTH = 50

_FORBIDDEN_FILENAME_CHARS = re.compile(r'[<>:"/\\|?*]')
_WHITESPACE_RUN = re.compile(r"\s+")
_NOT_FILENAME_SAFE = re.compile(r"[^A-Za-z0-9\u4e00-\u9fff-]")


def sanitize_filename(title: str) -> str:
    """Reduce a title to a filename-safe stem of at most 50 characters."""
    stem = _FORBIDDEN_FILENAME_CHARS.sub("", title)
    stem = _WHITESPACE_RUN.sub("-", stem)
    stem = _NOT_FILENAME_SAFE.sub("", stem)
    return stem[:FILENAME_MAX_LENGTH]


def chapter_filename(index: int, title: str) -> str:
    """``{index+1:03d}-{sanitized title}.md``"""
    return f"{index + 1:03d}-{sanitize_filename(title)}.md"


def _chapter_label(chapter: Chapter) -> str:
    return f"第{chapter.index + 1}章 {chapter.title}"


def render_chapter(
    chapter: Chapter,
    options: ConversionOptions | Mapping[str, Any] | None = None,
) -> str:
    """Render one chapter as Markdown."""
    opts = resolve_options(ConversionOptions, options)

    heading_text = _chapter_label(chapter) if opts.number_chapters else chapter.title
    content = f"{'#' * opts.title_level} {heading_text}\n\n"

    if opts.markdown_from_markup and chapter.raw_markup:
        body = ContentProcessor().to_markdown(chapter.raw_markup)
    else:
        body = chapter.content
        if not opts.preserve_markup:
            body = strip_markup(body)
        body = reflow_paragraphs(body)
    content += body

    if opts.add_separators:
        content += "\n\n---\n\n"

    return content


def render_table_of_contents(
    chapters: Iterable[Chapter], metadata: BookMetadata
) -> str:
    """Render the README.md table of contents."""
    chapters = list(chapters)
    total_words = sum(chapter.word_count for chapter in chapters)

    toc = f"# {metadata.title}\n\n"
    toc += f"**作者**: {metadata.author}\n\n"
    if metadata.description:
        toc += f"**简介**: {metadata.description}\n\n"
    toc += f"**总章节数**: {len(chapters)}\n"
    toc += f"**总字数**: {total_words:,}\n\n"

    toc += "## 目录\n\n"
    for chapter in chapters:
        filename = chapter_filename(chapter.index, chapter.title)
        toc += (
            f"- [{_chapter_label(chapter)}](./{filename}) "
            f"({chapter.word_count:,}字)\n"
        )

    return toc


def _iso_timestamp(moment: datetime) -> str:
    moment = moment.astimezone(timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def render_metadata(metadata: BookMetadata, *, now: datetime | None = None) -> str:
    """Render book.json; absent values are omitted rather than null."""
    if now is None:
        now = datetime.now(timezone.utc)

    document = {
        "title": metadata.title,
        "author": metadata.author,
        "description": metadata.description,
        "coverImage": metadata.cover_image_href,
        "importTime": _iso_timestamp(now),
        "version": METADATA_VERSION,
    }
    document = {key: value for key, value in document.items() if value is not None}
    return json.dumps(document, ensure_ascii=False, indent=2)


def convert_book(
    book: Book,
    options: ConversionOptions | Mapping[str, Any] | None = None,
    *,
    now: datetime | None = None,
) -> ConversionResultSet:
    """Render every chapter plus README.md and book.json."""
    opts = resolve_options(ConversionOptions, options)

    results: ConversionResultSet = {}
    for chapter in book.chapters:
        results[chapter_filename(chapter.index, chapter.title)] = render_chapter(
            chapter, opts
        )
    results[TOC_FILENAME] = render_table_of_contents(book.chapters, book.metadata)
    results[METADATA_FILENAME] = render_metadata(book.metadata, now=now)
    return results


def _chapter_files(results: Mapping[str, str]) -> list[str]:
    return [name for name in results if name.endswith(".md") and name != TOC_FILENAME]


def validate_result_set(results: Mapping[str, str]) -> bool:
    """Check the file-set for structural completeness. Never raises."""
    if TOC_FILENAME not in results:
        log.warning("Conversion result is missing %s", TOC_FILENAME)
        return False

    if METADATA_FILENAME not in results:
        log.warning("Conversion result is missing %s", METADATA_FILENAME)
        return False

    if not _chapter_files(results):
        log.warning("Conversion result has no chapter files")
        return False

    for name, content in results.items():
        if not content or not content.strip():
            log.warning("Conversion result file %s is empty", name)
            return False

    return True


def conversion_stats(results: Mapping[str, str], started_at: float) -> ConversionStats:
    """Summarise a conversion; ``started_at`` is a ``time.perf_counter()`` value."""
    return ConversionStats(
        conversion_time_ms=(time.perf_counter() - started_at) * 1000,
        chapters_generated=len(_chapter_files(results)),
        total_file_size=sum(len(content.encode("utf-8")) for content in results.values()),
    )
