"""
Data models for the Cleaner Agent.
"""

from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class CleanerTaskType(str, Enum):
    CLEAN_DATA = "clean_data"
    NORMALIZE_TEXT = "normalize_text"
    STANDARDIZE_CURRENCY = "standardize_currency"
    VALIDATE_DATES = "validate_dates"
    DETECT_OUTLIERS = "detect_outliers"


class CleanerSettings(BaseModel):
    """Runtime settings for the cleaner agent."""

    model_config = ConfigDict(extra="forbid")

    normalize_text: bool = True
    standardize_currency: bool = True
    validate_dates: bool = True
    remove_invalid_entries: bool = False
    fill_missing_values: Literal["none", "mean", "median", "forward", "backward"] = "forward"
    outlier_detection: bool = True
    outlier_threshold: float = Field(default=2.5, gt=0, description="Absolute z-score above which a value is flagged")


class CleaningIssue(BaseModel):
    row: int
    column: str
    issue: str
    action: str
