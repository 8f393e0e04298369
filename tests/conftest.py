"""Shared fixtures: EPUB archives built in memory."""

import io
import struct
import zipfile

import pytest

from novel_ingest.models.book import Book, BookMetadata, Chapter

# ---------------------------------------------------------------------------
# EPUB fixture builders
# ---------------------------------------------------------------------------

CONTAINER_XML = """\
<?xml version="1.0" encoding="UTF-8"?>
<container xmlns="urn:oasis:names:tc:opendocument:xmlns:container" version="1.0">
  <rootfiles>
    <rootfile full-path="{opf_path}" media-type="application/oebps-package+xml"/>
  </rootfiles>
</container>"""


def build_opf(
    title: str | None = "Test Book",
    author: str | None = "Test Author",
    description: str | None = None,
    items: list[tuple[str, str]] | None = None,
    spine: list[str] | None = None,
    cover_id: str | None = None,
) -> str:
    """Build an OPF package document.

    items: [(manifest_id, href), ...]; spine defaults to every item id.
    """
    if items is None:
        items = [("ch1", "chapter1.xhtml")]
    if spine is None:
        spine = [item_id for item_id, _ in items]

    metadata_lines = []
    if title is not None:
        metadata_lines.append(f"    <dc:title>{title}</dc:title>")
    if author is not None:
        metadata_lines.append(f"    <dc:creator>{author}</dc:creator>")
    if description is not None:
        metadata_lines.append(f"    <dc:description>{description}</dc:description>")
    if cover_id is not None:
        metadata_lines.append(f'    <meta name="cover" content="{cover_id}"/>')

    manifest_lines = []
    for item_id, href in items:
        media_type = "image/jpeg" if href.endswith(".jpg") else "application/xhtml+xml"
        manifest_lines.append(
            f'    <item id="{item_id}" href="{href}" media-type="{media_type}"/>'
        )
    spine_lines = [f'    <itemref idref="{idref}"/>' for idref in spine]

    return f"""\
<?xml version="1.0" encoding="UTF-8"?>
<package xmlns="http://www.idpf.org/2007/opf"
         xmlns:dc="http://purl.org/dc/elements/1.1/"
         version="2.0">
  <metadata>
{chr(10).join(metadata_lines)}
  </metadata>
  <manifest>
{chr(10).join(manifest_lines)}
  </manifest>
  <spine>
{chr(10).join(spine_lines)}
  </spine>
</package>"""


def build_chapter(body: str, title: str | None = None) -> str:
    head = f"<head><title>{title}</title></head>" if title is not None else "<head></head>"
    return f"""\
<?xml version="1.0" encoding="UTF-8"?>
<html xmlns="http://www.w3.org/1999/xhtml">
{head}
<body>
{body}
</body>
</html>"""


def make_epub(
    files: dict[str, str | bytes],
    opf_path: str = "OEBPS/content.opf",
    mimetype: bool = True,
    container: bool = True,
    stored: tuple[str, ...] = (),
) -> bytes:
    """Build an EPUB ZIP in memory.

    ``files`` paths are archive paths; the OPF itself is passed in ``files``
    under ``opf_path``. Paths listed in ``stored`` are written uncompressed.
    """
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as zf:
        if mimetype:
            zf.writestr("mimetype", "application/epub+zip", compress_type=zipfile.ZIP_STORED)
        if container:
            zf.writestr("META-INF/container.xml", CONTAINER_XML.format(opf_path=opf_path))
        for path, content in files.items():
            compress_type = zipfile.ZIP_STORED if path in stored else None
            zf.writestr(path, content, compress_type=compress_type)
    return buffer.getvalue()


def patch_central_entry(
    data: bytes, name: str, *, extra_size: int = 0, flags: int = 0
) -> bytes:
    """Rewrite the central directory record of ``name``.

    ``extra_size`` is added to the recorded compressed and uncompressed
    sizes; ``flags`` is OR-ed into the general purpose bit flags.
    """
    buffer = bytearray(data)
    offset = buffer.find(b"PK\x01\x02")
    while offset != -1:
        (name_length,) = struct.unpack_from("<H", buffer, offset + 28)
        if buffer[offset + 46 : offset + 46 + name_length] == name.encode("utf-8"):
            (flag_bits,) = struct.unpack_from("<H", buffer, offset + 8)
            struct.pack_into("<H", buffer, offset + 8, flag_bits | flags)
            compress_size, file_size = struct.unpack_from("<II", buffer, offset + 20)
            struct.pack_into(
                "<II", buffer, offset + 20, compress_size + extra_size, file_size + extra_size
            )
            return bytes(buffer)
        offset = buffer.find(b"PK\x01\x02", offset + 4)
    raise AssertionError(f"{name} not found in central directory")


def make_book_epub(
    chapters: list[tuple[str, str]],
    title: str | None = "Test Book",
    author: str | None = "Test Author",
    description: str | None = None,
) -> bytes:
    """EPUB whose spine lists one document per (title, body) pair."""
    files: dict[str, str | bytes] = {}
    items = []
    for number, (chapter_title, body) in enumerate(chapters, start=1):
        href = f"chapter{number}.xhtml"
        items.append((f"ch{number}", href))
        files[f"OEBPS/{href}"] = build_chapter(body, chapter_title)
    files["OEBPS/content.opf"] = build_opf(
        title=title, author=author, description=description, items=items
    )
    return make_epub(files)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def simple_epub() -> bytes:
    """One chapter titled "Test" with mixed English and Chinese text."""
    return make_book_epub(
        [("Test", "<h1>Test</h1>\n<p>Hello world 你好世界</p>")],
        title="Test Book",
        author="Test Author",
    )


@pytest.fixture
def three_chapter_epub() -> bytes:
    return make_book_epub(
        [
            ("第一章 开始", "<p>第一段。</p><p>第二段。</p>"),
            ("第二章 发展", "<p>故事继续。</p>"),
            ("第三章 结局", "<p>The end.</p>"),
        ],
        title="测试小说",
        author="作者甲",
        description="一个简单的故事",
    )


def make_book(
    titles: list[str],
    metadata: BookMetadata | None = None,
) -> Book:
    chapters = tuple(
        Chapter(
            index=index,
            title=title,
            content=f"{title} content line one\n\nline two",
            word_count=index + 5,
        )
        for index, title in enumerate(titles)
    )
    return Book(metadata=metadata or BookMetadata(title="Book", author="Author"), chapters=chapters)


@pytest.fixture
def three_chapter_book() -> Book:
    return make_book(["One", "Two", "Three"])
