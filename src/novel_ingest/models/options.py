"""Per-call option values for parsing and conversion."""

from collections.abc import Mapping
from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict, Field

_OptionsT = TypeVar("_OptionsT", bound=BaseModel)


class ParseOptions(BaseModel):
    """Options for a single parse call."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    keep_raw_markup: bool = False
    # Values above 1 extract spine entries on a thread pool.
    max_workers: int = Field(default=1, ge=1)


class ConversionOptions(BaseModel):
    """Options for Markdown rendering."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    preserve_markup: bool = False
    number_chapters: bool = True
    title_level: int = Field(default=1, ge=1)
    add_separators: bool = True
    # Render the body from the chapter's raw markup via markdownify when
    # the chapter kept it; plain-text rendering otherwise.
    markdown_from_markup: bool = False


def resolve_options(
    cls: type[_OptionsT],
    overrides: _OptionsT | Mapping[str, Any] | None = None,
) -> _OptionsT:
    """Build a fresh options value, merging caller overrides over defaults."""
    if overrides is None:
        return cls()
    if isinstance(overrides, cls):
        return overrides
    return cls.model_validate({**cls().model_dump(), **dict(overrides)})
