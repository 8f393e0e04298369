"""EPUB parsing from an in-memory buffer.

The pipeline runs in fixed stages: open the archive, resolve the container
descriptor, parse the package document, extract chapters along the spine,
and assemble an immutable :class:`Book`. Archive, container and package
problems abort the parse with :class:`FormatError`; problems with single
spine entries are recorded as :class:`SkippedEntry` values and the entry is
dropped.
"""

from __future__ import annotations

import logging
import posixpath
import re
import time
from collections.abc import Mapping
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Any
from urllib.parse import unquote

from bs4.builder import ParserRejectedMarkup
from lxml import etree

from novel_ingest.core.archive import ArchiveEntryError, BookArchive, ZipArchive
from novel_ingest.core.content_processor import ContentProcessor, count_words
from novel_ingest.errors import EmptyResultError, FormatError, ParseStage
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
from novel_ingest.models.options import ParseOptions, resolve_options
from novel_ingest.models.package import (
    HTML_SUFFIXES,
    ContainerPointer,
    ManifestItem,
    PackageDocument,
)

log = logging.getLogger(__name__)

CONTAINER_PATH = "META-INF/container.xml"
MIMETYPE_PATH = "mimetype"
EPUB_MIMETYPE = "application/epub+zip"

DC_NS = "http://purl.org/dc/elements/1.1/"

# Archive-scan fallback ignores navigation documents.
_NON_CHAPTER_HINTS = ("cover", "toc", "nav")
_NUMBER_RE = re.compile(r"\d+")


def _xml_parser() -> etree.XMLParser:
    return etree.XMLParser(resolve_entities=False, no_network=True)


def resolve_href(base_dir: str, href: str) -> str:
    """Resolve a manifest href against the package directory."""
    path = unquote(href.split("#", 1)[0])
    if path.startswith("/"):
        return posixpath.normpath(path.lstrip("/"))
    return posixpath.normpath(posixpath.join(base_dir, path))


# =============================================================================
# Container
# =============================================================================


def _check_mimetype(archive: BookArchive) -> None:
    if not archive.exists(MIMETYPE_PATH):
        log.debug("No %s entry; continuing without it", MIMETYPE_PATH)
        return
    try:
        value = archive.read_bytes(MIMETYPE_PATH).decode("ascii", "replace").strip()
    except ArchiveEntryError as e:
        log.warning("Could not read %s entry: %s", MIMETYPE_PATH, e.detail)
        return
    if value != EPUB_MIMETYPE:
        log.warning("Unexpected mimetype %r; continuing", value)


def resolve_container(archive: BookArchive) -> ContainerPointer:
    """Find the root package document named by the container descriptor."""
    _check_mimetype(archive)

    try:
        raw = archive.read_bytes(CONTAINER_PATH)
    except ArchiveEntryError as e:
        raise FormatError(
            ParseStage.CONTAINER, f"{CONTAINER_PATH} unavailable: {e.detail}"
        ) from e

    try:
        root = etree.fromstring(raw, parser=_xml_parser())
    except etree.XMLSyntaxError as e:
        raise FormatError(ParseStage.CONTAINER, f"malformed {CONTAINER_PATH}: {e}") from e

    for rootfile in root.iter("{*}rootfile"):
        full_path = (rootfile.get("full-path") or "").strip()
        if full_path:
            log.debug("Package document at %s", full_path)
            return ContainerPointer(rootfile_path=full_path)

    raise FormatError(ParseStage.CONTAINER, f"{CONTAINER_PATH} declares no rootfile")


# =============================================================================
# Package document
# =============================================================================


def _element_text(element: etree._Element) -> str:
    return "".join(element.itertext()).strip()


def _dc_value(root: etree._Element, name: str) -> str | None:
    for element in root.iter(f"{{{DC_NS}}}{name}"):
        text = _element_text(element)
        if text:
            return text
    return None


def _read_manifest(root: etree._Element) -> dict[str, ManifestItem]:
    manifest: dict[str, ManifestItem] = {}
    for manifest_el in root.iter("{*}manifest"):
        for item in manifest_el.iter("{*}item"):
            item_id = (item.get("id") or "").strip()
            href = (item.get("href") or "").strip()
            if not item_id or not href or item_id in manifest:
                continue
            manifest[item_id] = ManifestItem(
                id=item_id,
                href=href,
                media_type=(item.get("media-type") or "").strip(),
                properties=(item.get("properties") or "").strip(),
            )
    return manifest


def _read_spine(root: etree._Element) -> tuple[str, ...]:
    for spine_el in root.iter("{*}spine"):
        return tuple(
            idref
            for idref in ((ref.get("idref") or "").strip() for ref in spine_el.iter("{*}itemref"))
            if idref
        )
    return ()


def _cover_href(
    root: etree._Element, manifest: dict[str, ManifestItem], base_dir: str
) -> str | None:
    for meta in root.iter("{*}meta"):
        content = (meta.get("content") or "").strip()
        if (meta.get("name") or "").lower() == "cover" and content:
            item = manifest.get(content)
            return resolve_href(base_dir, item.href) if item else content

    # EPUB 3 marks the cover on the manifest item itself
    for item in manifest.values():
        if "cover-image" in item.properties.split():
            return resolve_href(base_dir, item.href)
    return None


def parse_package(archive: BookArchive, pointer: ContainerPointer) -> PackageDocument:
    """Parse metadata, manifest and spine from the root package document."""
    try:
        raw = archive.read_bytes(pointer.rootfile_path)
    except ArchiveEntryError as e:
        raise FormatError(
            ParseStage.PACKAGE, f"package document unavailable: {e.detail}"
        ) from e

    try:
        root = etree.fromstring(raw, parser=_xml_parser())
    except etree.XMLSyntaxError as e:
        raise FormatError(ParseStage.PACKAGE, f"malformed package document: {e}") from e

    manifest = _read_manifest(root)
    spine = _read_spine(root)
    base_dir = pointer.base_dir

    metadata = BookMetadata(
        title=_dc_value(root, "title") or UNKNOWN_TITLE,
        author=_dc_value(root, "creator") or UNKNOWN_AUTHOR,
        description=_dc_value(root, "description"),
        cover_image_href=_cover_href(root, manifest, base_dir),
        language=_dc_value(root, "language"),
        publisher=_dc_value(root, "publisher"),
    )

    log.debug("Package parsed: %d manifest items, %d spine entries", len(manifest), len(spine))
    return PackageDocument(
        metadata=metadata,
        manifest=manifest,
        spine=spine,
        base_dir=base_dir,
    )


# =============================================================================
# Chapters
# =============================================================================


@dataclass(frozen=True)
class ExtractionResult:
    """Surviving chapters plus diagnostics for every dropped entry."""

    chapters: tuple[Chapter, ...]
    skipped: tuple[SkippedEntry, ...]


@dataclass(frozen=True)
class _SpineTarget:
    position: int
    item_id: str
    item: ManifestItem | None


@dataclass(frozen=True)
class _EntryOutcome:
    position: int
    item_id: str
    path: str = ""
    title: str | None = None
    text: str = ""
    raw_markup: str | None = None
    skip: SkippedEntry | None = None


def _first_number(path: str) -> int:
    match = _NUMBER_RE.search(path)
    return int(match.group()) if match else 0


def _spine_targets(archive: BookArchive, package: PackageDocument) -> list[_SpineTarget]:
    """Reading order: the spine, else HTML manifest items, else HTML entries."""
    if package.spine:
        return [
            _SpineTarget(position, item_id, package.manifest.get(item_id))
            for position, item_id in enumerate(package.spine)
        ]

    html_items = [item for item in package.manifest.values() if item.is_html]
    if html_items:
        log.info("Spine is empty; using %d HTML manifest items", len(html_items))
        return [
            _SpineTarget(position, item.id, item)
            for position, item in enumerate(html_items)
        ]

    paths = sorted(
        (
            name
            for name in archive.names()
            if name.lower().endswith(HTML_SUFFIXES)
            and not any(hint in name.lower() for hint in _NON_CHAPTER_HINTS)
        ),
        key=_first_number,
    )
    log.info("Spine and manifest are empty; scanning %d archive entries", len(paths))
    return [
        _SpineTarget(position, path, ManifestItem(id=path, href=path))
        for position, path in enumerate(paths)
    ]


def _locate(archive: BookArchive, base_dir: str, href: str) -> str | None:
    resolved = resolve_href(base_dir, href)
    if archive.exists(resolved):
        return resolved
    raw = unquote(href.split("#", 1)[0])
    if archive.exists(raw):
        return raw
    return None


class _EntryExtractor:
    """Reads one spine entry. Safe to call from several threads."""

    def __init__(self, archive: BookArchive, base_dir: str, keep_raw_markup: bool):
        self.archive = archive
        self.base_dir = base_dir
        self.keep_raw_markup = keep_raw_markup
        self.processor = ContentProcessor()

    def _skipped(
        self, target: _SpineTarget, reason: SkipReason, detail: str = ""
    ) -> _EntryOutcome:
        return _EntryOutcome(
            position=target.position,
            item_id=target.item_id,
            skip=SkippedEntry(item_id=target.item_id, reason=reason, detail=detail),
        )

    def __call__(self, target: _SpineTarget) -> _EntryOutcome:
        if target.item is None:
            return self._skipped(target, SkipReason.NOT_IN_MANIFEST)

        path = _locate(self.archive, self.base_dir, target.item.href)
        if path is None:
            return self._skipped(
                target,
                SkipReason.MISSING_FILE,
                resolve_href(self.base_dir, target.item.href),
            )

        try:
            markup = self.archive.read_text(path)
            document = self.processor.extract(markup)
        except ArchiveEntryError as e:
            return self._skipped(target, SkipReason.UNREADABLE, e.detail)
        except ParserRejectedMarkup as e:
            return self._skipped(target, SkipReason.UNREADABLE, str(e))

        if not document.text:
            return self._skipped(target, SkipReason.EMPTY_CONTENT, path)

        return _EntryOutcome(
            position=target.position,
            item_id=target.item_id,
            path=path,
            title=document.title,
            text=document.text,
            raw_markup=markup if self.keep_raw_markup else None,
        )


def extract_chapters(
    archive: BookArchive,
    package: PackageDocument,
    options: ParseOptions | Mapping[str, Any] | None = None,
) -> ExtractionResult:
    """Extract chapters in reading order, skipping unresolvable entries.

    Indices are assigned densely over the surviving entries. With
    ``max_workers > 1`` entries are read on a thread pool; outcomes are
    put back into spine order before indexing.
    """
    opts = resolve_options(ParseOptions, options)
    targets = _spine_targets(archive, package)
    extract_entry = _EntryExtractor(archive, package.base_dir, opts.keep_raw_markup)

    if opts.max_workers > 1 and len(targets) > 1:
        with ThreadPoolExecutor(max_workers=opts.max_workers) as pool:
            outcomes = list(pool.map(extract_entry, targets))
    else:
        outcomes = [extract_entry(target) for target in targets]
    outcomes.sort(key=lambda outcome: outcome.position)

    chapters: list[Chapter] = []
    skipped: list[SkippedEntry] = []
    for outcome in outcomes:
        if outcome.skip is not None:
            log.warning(
                "Skipping spine entry %s: %s %s",
                outcome.skip.item_id,
                outcome.skip.reason.value,
                outcome.skip.detail,
            )
            skipped.append(outcome.skip)
            continue

        index = len(chapters)
        chapters.append(
            Chapter(
                index=index,
                title=outcome.title or f"第 {index + 1} 章",
                content=outcome.text,
                word_count=count_words(outcome.text),
                id=outcome.item_id,
                file_name=outcome.path,
                raw_markup=outcome.raw_markup,
            )
        )

    log.debug("Extracted %d chapters, skipped %d entries", len(chapters), len(skipped))
    return ExtractionResult(chapters=tuple(chapters), skipped=tuple(skipped))


# =============================================================================
# Assembly
# =============================================================================


def assemble_book(
    metadata: BookMetadata,
    chapters: tuple[Chapter, ...] | list[Chapter],
    *,
    skipped: tuple[SkippedEntry, ...] | list[SkippedEntry] = (),
    spine_order: tuple[str, ...] | list[str] = (),
    stats: ParseStats | None = None,
) -> Book:
    """Combine metadata and chapters into an immutable Book."""
    return Book(
        metadata=metadata,
        chapters=tuple(chapters),
        parse_stats=stats or ParseStats(),
        skipped=tuple(skipped),
        spine_order=tuple(spine_order),
    )


class EpubParser:
    """Parse an in-memory EPUB into a :class:`Book`."""

    def __init__(
        self,
        data: bytes,
        options: ParseOptions | Mapping[str, Any] | None = None,
    ):
        self.data = data
        self.options = resolve_options(ParseOptions, options)

    @classmethod
    def from_path(
        cls,
        path: Path,
        options: ParseOptions | Mapping[str, Any] | None = None,
    ) -> EpubParser:
        return cls(Path(path).read_bytes(), options)

    def parse(self) -> Book:
        """Run the full pipeline.

        Raises:
            FormatError: archive, container or package stage failed
            EmptyResultError: no chapter survived extraction
        """
        started = time.perf_counter()

        with ZipArchive.open(self.data) as archive:
            pointer = resolve_container(archive)
            package = parse_package(archive, pointer)
            extraction = extract_chapters(archive, package, self.options)

        if not extraction.chapters:
            raise EmptyResultError(extraction.skipped)

        stats = ParseStats(
            parse_time_ms=(time.perf_counter() - started) * 1000,
            original_size_bytes=len(self.data),
            parsed_size_bytes=sum(
                len(chapter.content.encode("utf-8")) for chapter in extraction.chapters
            ),
        )
        return assemble_book(
            package.metadata,
            extraction.chapters,
            skipped=extraction.skipped,
            spine_order=package.spine,
            stats=stats,
        )


def parse_epub(
    data: bytes, options: ParseOptions | Mapping[str, Any] | None = None
) -> Book:
    """Parse EPUB bytes into a Book."""
    return EpubParser(data, options).parse()
