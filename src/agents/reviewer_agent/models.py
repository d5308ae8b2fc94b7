"""
Data models for the Reviewer Agent.
"""

from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class ReviewerTaskType(str, Enum):
    REVIEW_DATA = "review_data"
    VALIDATE_RECORDS = "validate_records"
    DETECT_ANOMALIES = "detect_anomalies"
    FLAG_DUPLICATES = "flag_duplicates"
    ASSESS_QUALITY = "assess_quality"


class ReviewerSettings(BaseModel):
    """Runtime settings for the reviewer agent."""

    model_config = ConfigDict(extra="forbid")

    anomaly_threshold: float = Field(
        default=0.85, gt=0, description="Absolute z-score above which an amount is anomalous"
    )
    confidence_threshold: float = Field(default=0.90, ge=0.0, le=1.0)
    auto_approve: bool = True
    strict_mode: bool = Field(default=False, description="Reject any flagged record, whatever its confidence")
    review_categories: list[str] = Field(default_factory=lambda: ["high-value", "suspicious", "outlier"])
    flag_duplicates: bool = True
    validate_business_rules: bool = True
    high_value_limit: float = Field(default=100_000, gt=0)


class ReviewIssue(BaseModel):
    type: str
    field: str
    severity: Literal["low", "medium", "high"]
    message: str


class RecordReview(BaseModel):
    flagged: bool = False
    approved: bool = True
    confidence: float = 1.0
    issues: list[ReviewIssue] = Field(default_factory=list)


class QualityAssessment(BaseModel):
    completeness: float = 0.0
    accuracy: float = 0.0
    consistency: float = 0.0
    validity: float = 0.0
    overall: float = 0.0
