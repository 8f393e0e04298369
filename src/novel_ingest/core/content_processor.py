"""Turn chapter markup into titles, plain text and Markdown."""

import re
import warnings
from dataclasses import dataclass

from bs4 import BeautifulSoup, XMLParsedAsHTMLWarning
from markdownify import markdownify as md

# Content documents are XHTML; the lxml HTML parser handles them fine.
warnings.filterwarnings("ignore", category=XMLParsedAsHTMLWarning)

# Only tag-shaped runs are removed so a bare "<" in prose survives.
_TAG_RE = re.compile(r"<[A-Za-z/!?][^<>]*>")
_ENTITIES = (
    ("&nbsp;", " "),
    ("&lt;", "<"),
    ("&gt;", ">"),
    ("&amp;", "&"),
    ("&quot;", '"'),
    ("&#39;", "'"),
)
_CJK_RE = re.compile(r"[\u4e00-\u9fff]")
_LATIN_WORD_RE = re.compile(r"[A-Za-z]+")

HEADING_TAGS = ["h1", "h2", "h3", "h4", "h5", "h6"]
BLOCK_TAGS = HEADING_TAGS + [
    "p",
    "div",
    "li",
    "ul",
    "ol",
    "dl",
    "dt",
    "dd",
    "blockquote",
    "pre",
    "section",
    "article",
    "header",
    "footer",
    "aside",
    "figure",
    "figcaption",
    "table",
    "tr",
    "hr",
]


def strip_markup(text: str) -> str:
    """Remove tags and decode the fixed entity set.

    Plain text without tag-shaped runs or entities passes through unchanged.
    """
    text = _TAG_RE.sub("", text)
    for entity, char in _ENTITIES:
        text = text.replace(entity, char)
    return text


def reflow_paragraphs(text: str) -> str:
    """Trim every line, drop empty ones, and separate the rest by a blank line."""
    lines = (line.strip() for line in text.split("\n"))
    return "\n\n".join(line for line in lines if line)


def count_words(text: str) -> int:
    """Count CJK ideographs one each plus runs of Latin letters one each.

    Digits, punctuation and every other script count zero.
    """
    return len(_CJK_RE.findall(text)) + len(_LATIN_WORD_RE.findall(text))


def _collapse_whitespace(text: str) -> str:
    return " ".join(text.split())


@dataclass(frozen=True)
class ExtractedDocument:
    """Title candidate and plain-text body of one content document."""

    title: str | None
    text: str


class ContentProcessor:
    """Extract titles, plain text and Markdown from content document markup."""

    def parse(self, markup: str | bytes) -> BeautifulSoup:
        return BeautifulSoup(markup, "lxml")

    def extract(self, markup: str | bytes) -> ExtractedDocument:
        """Derive the title candidate and the reflowed body text."""
        soup = self.parse(markup)
        title = self.title_of(soup)
        return ExtractedDocument(title=title, text=self.to_plain_text(soup))

    def title_of(self, soup: BeautifulSoup) -> str | None:
        """Document title element first, then the first heading."""
        element = soup.find("title")
        if element:
            text = _collapse_whitespace(element.get_text(" "))
            if text:
                return text

        heading = soup.find(HEADING_TAGS)
        if heading:
            text = _collapse_whitespace(heading.get_text(" "))
            if text:
                return text
        return None

    def to_plain_text(self, soup: BeautifulSoup) -> str:
        """Extract body text with one paragraph per block element.

        Mutates ``soup``.
        """
        for tag in soup(["head", "script", "style"]):
            tag.decompose()

        for br in soup.find_all("br"):
            br.replace_with("\n")
        for block in soup.find_all(BLOCK_TAGS):
            block.insert_before("\n")
            block.append("\n")

        text = soup.get_text().replace("\xa0", " ")
        return reflow_paragraphs(text)

    def to_markdown(self, markup: str | bytes) -> str:
        """Convert document markup to clean Markdown."""
        soup = self.parse(markup)

        # Remove scripts, styles, and navigation elements
        for tag in soup(["script", "style", "nav", "header", "footer", "aside"]):
            tag.decompose()

        body = soup.body or soup
        markdown = md(
            str(body),
            heading_style="ATX",
            bullets="-",
            strip=["a"],
        )

        lines = [line.rstrip() for line in markdown.split("\n")]
        cleaned = []
        prev_blank = False
        for line in lines:
            is_blank = not line.strip()
            if is_blank and prev_blank:
                continue
            cleaned.append(line)
            prev_blank = is_blank

        return "\n".join(cleaned).strip()

    def get_stats(self, content: str) -> dict[str, int]:
        """Calculate content statistics."""
        paragraphs = [p for p in content.split("\n\n") if p.strip()]
        return {
            "word_count": count_words(content),
            "character_count": len(content),
            "paragraph_count": len(paragraphs),
        }
