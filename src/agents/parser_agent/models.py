"""
Data models for the Parser Agent.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from src.core.utils.values import DEFAULT_DATE_FORMATS


class ParserTaskType(str, Enum):
    PARSE_CSV = "parse_csv"
    PARSE_EXCEL = "parse_excel"
    PARSE_PDF = "parse_pdf"
    DETECT_STRUCTURE = "detect_structure"


class ParserSettings(BaseModel):
    """Runtime settings for the parser agent."""

    model_config = ConfigDict(extra="forbid")

    csv_delimiter: str = Field(default="auto", description="Fixed delimiter, or 'auto' to detect from the header line")
    auto_detect_encoding: bool = True
    header_row_index: int = Field(default=0, ge=0)
    skip_empty_rows: bool = True
    max_rows_to_analyze: int = Field(default=1000, gt=0, description="Rows sampled for column type inference")
    date_formats: list[str] = Field(default_factory=lambda: list(DEFAULT_DATE_FORMATS))


class ParsedTable(BaseModel):
    """Normalised table produced by every parse_* task."""

    headers: list[str]
    rows: list[dict[str, Any]]
    column_types: dict[str, str]
    metadata: dict[str, Any] = Field(default_factory=dict)
