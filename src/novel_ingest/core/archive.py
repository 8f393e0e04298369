"""Read-only access to the entries of an EPUB archive held in memory."""

from __future__ import annotations

import io
import logging
import zipfile
import zlib
from typing import Protocol

from bs4 import UnicodeDammit

from novel_ingest.errors import FormatError, ParseStage

log = logging.getLogger(__name__)

# Tried after a BOM or a declared encoding, before UnicodeDammit sniffs.
# GB18030 is a superset of GBK and GB2312.
TEXT_ENCODINGS = ["utf-8", "gb18030"]


class ArchiveEntryError(Exception):
    """An entry could not be read. Never fatal for the whole parse."""

    def __init__(self, path: str, detail: str):
        self.path = path
        self.detail = detail
        super().__init__(f"{path}: {detail}")


class MissingEntryError(ArchiveEntryError):
    """The archive has no entry at the requested path."""

    def __init__(self, path: str):
        super().__init__(path, "entry not found")


class UnreadableEntryError(ArchiveEntryError):
    """The entry exists but its bytes could not be read or decoded."""


class BookArchive(Protocol):
    """Capability interface over an opened archive."""

    def names(self) -> list[str]: ...

    def exists(self, path: str) -> bool: ...

    def read_bytes(self, path: str) -> bytes: ...

    def read_text(self, path: str) -> str: ...


def normalize_entry_path(path: str) -> str:
    return path.lstrip("/")


class ZipArchive:
    """BookArchive backed by the standard library ZIP reader."""

    def __init__(self, zf: zipfile.ZipFile, size: int):
        self._zip = zf
        self._names = set(zf.namelist())
        self.size = size

    @classmethod
    def open(cls, data: bytes) -> ZipArchive:
        """Open ``data`` as a ZIP archive or raise FormatError(archive)."""
        if not data:
            raise FormatError(ParseStage.ARCHIVE, "empty input buffer")

        buffer = io.BytesIO(data)
        if not zipfile.is_zipfile(buffer):
            raise FormatError(ParseStage.ARCHIVE, "not a ZIP archive")

        try:
            zf = zipfile.ZipFile(buffer)
        except (zipfile.BadZipFile, zipfile.LargeZipFile, OSError, ValueError) as e:
            raise FormatError(ParseStage.ARCHIVE, f"corrupt archive: {e}") from e

        log.debug("Opened archive with %d entries", len(zf.namelist()))
        return cls(zf, len(data))

    def __enter__(self) -> ZipArchive:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        self._zip.close()

    def names(self) -> list[str]:
        return self._zip.namelist()

    def exists(self, path: str) -> bool:
        return normalize_entry_path(path) in self._names

    def read_bytes(self, path: str) -> bytes:
        name = normalize_entry_path(path)
        if name not in self._names:
            raise MissingEntryError(name)
        try:
            return self._zip.read(name)
        except (
            zipfile.BadZipFile,
            zlib.error,
            EOFError,
            NotImplementedError,
            RuntimeError,
            OSError,
        ) as e:
            raise UnreadableEntryError(name, str(e)) from e

    def read_text(self, path: str) -> str:
        """Read and decode an entry.

        A BOM or declared encoding wins; otherwise UTF-8, then GB18030.
        """
        raw = self.read_bytes(path)
        dammit = UnicodeDammit(raw, user_encodings=TEXT_ENCODINGS, is_html=True)
        if dammit.unicode_markup is None:
            raise UnreadableEntryError(normalize_entry_path(path), "undecodable text")
        return dammit.unicode_markup
