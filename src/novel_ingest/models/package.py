"""Data models for the EPUB container and package document."""

from pydantic import BaseModel, ConfigDict, Field

from novel_ingest.models.book import BookMetadata

HTML_MEDIA_TYPES = frozenset(
    {
        "application/xhtml+xml",
        "application/html",
        "text/html",
    }
)
HTML_SUFFIXES = (".xhtml", ".html", ".htm")


class ContainerPointer(BaseModel):
    """Location of the root package document inside the archive."""

    model_config = ConfigDict(frozen=True)

    rootfile_path: str

    @property
    def base_dir(self) -> str:
        """Directory of the package document, with trailing slash or empty."""
        head, sep, _ = self.rootfile_path.rpartition("/")
        return head + sep


class ManifestItem(BaseModel):
    """Single manifest entry."""

    model_config = ConfigDict(frozen=True)

    id: str
    href: str
    media_type: str = ""
    properties: str = ""

    @property
    def is_html(self) -> bool:
        media_type = self.media_type.lower()
        if media_type in HTML_MEDIA_TYPES or "html" in media_type:
            return True
        return self.href.lower().endswith(HTML_SUFFIXES)


class PackageDocument(BaseModel):
    """Parsed OPF package: metadata, manifest and spine."""

    model_config = ConfigDict(frozen=True)

    metadata: BookMetadata
    manifest: dict[str, ManifestItem] = Field(default_factory=dict)
    spine: tuple[str, ...] = ()
    base_dir: str = ""
