"""Data models for conversion output."""

from pydantic import BaseModel

# filename -> file content
ConversionResultSet = dict[str, str]


class ConversionStats(BaseModel):
    """Figures describing one conversion run."""

    conversion_time_ms: float
    chapters_generated: int
    total_file_size: int
