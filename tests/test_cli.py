"""Tests for the command line interface."""

import json

import pytest
from typer.testing import CliRunner

from conftest import make_book_epub, make_epub
from novel_ingest.cli import app

runner = CliRunner()


@pytest.fixture
def book_file(tmp_path, three_chapter_epub):
    path = tmp_path / "novel.epub"
    path.write_bytes(three_chapter_epub)
    return path


def test_info_shows_metadata_and_chapters(book_file):
    result = runner.invoke(app, ["info", str(book_file)])
    assert result.exit_code == 0, result.output
    assert "测试小说" in result.output
    assert "作者甲" in result.output
    assert "第二章 发展" in result.output


def test_convert_writes_book_directory(tmp_path, book_file):
    out = tmp_path / "out"
    result = runner.invoke(app, ["convert", str(book_file), "-o", str(out), "--quiet"])
    assert result.exit_code == 0, result.output

    book_dir = out / "测试小说"
    names = sorted(path.name for path in book_dir.iterdir())
    assert names == [
        "001-第一章-开始.md",
        "002-第二章-发展.md",
        "003-第三章-结局.md",
        "README.md",
        "book.json",
    ]
    metadata = json.loads((book_dir / "book.json").read_text(encoding="utf-8"))
    assert metadata["author"] == "作者甲"
    assert metadata["description"] == "一个简单的故事"


def test_convert_options_reach_renderer(tmp_path, book_file):
    out = tmp_path / "out"
    result = runner.invoke(
        app,
        [
            "convert",
            str(book_file),
            "-o",
            str(out),
            "--no-numbers",
            "--no-separators",
            "--title-level",
            "2",
            "--workers",
            "2",
            "--quiet",
        ],
    )
    assert result.exit_code == 0, result.output

    chapter = (out / "测试小说" / "003-第三章-结局.md").read_text(encoding="utf-8")
    assert chapter == "## 第三章 结局\n\nThe end."


def test_convert_defaults_to_book_directory(book_file):
    result = runner.invoke(app, ["convert", str(book_file)])
    assert result.exit_code == 0, result.output
    assert "Complete" in result.output
    assert (book_file.parent / "测试小说" / "README.md").exists()


def test_invalid_archive_exits_nonzero(tmp_path):
    path = tmp_path / "broken.epub"
    path.write_bytes(b"not a zip at all")
    result = runner.invoke(app, ["convert", str(path), "-q"])
    assert result.exit_code == 1
    assert "archive" in result.output


def test_book_without_chapters_exits_nonzero(tmp_path):
    data = make_book_epub([("Blank", "   ")])
    path = tmp_path / "blank.epub"
    path.write_bytes(data)
    result = runner.invoke(app, ["info", str(path)])
    assert result.exit_code == 1
    assert "no readable chapters" in result.output


def test_unsupported_extension(tmp_path):
    path = tmp_path / "book.pdf"
    path.write_bytes(make_epub({}))
    result = runner.invoke(app, ["info", str(path)])
    assert result.exit_code == 1
    assert "Unsupported file format" in result.output


def test_markup_like_metadata_is_printed_verbatim(tmp_path):
    data = make_book_epub(
        [("Part [/b] one", "<p>Body</p>")],
        title="Notes [/b]",
        author="[bold]Anon",
    )
    path = tmp_path / "notes.epub"
    path.write_bytes(data)

    result = runner.invoke(app, ["info", str(path)])
    assert result.exit_code == 0, result.output
    assert "Notes [/b]" in result.output
    assert "[bold]Anon" in result.output
    assert "Part [/b] one" in result.output

    result = runner.invoke(app, ["convert", str(path), "-o", str(tmp_path / "out")])
    assert result.exit_code == 0, result.output
    assert "Notes [/b]" in result.output
