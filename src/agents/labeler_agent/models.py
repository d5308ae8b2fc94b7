"""
Data models for the Labeler Agent.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_CATEGORY_MAPPINGS: dict[str, list[str]] = {
    "Income": ["salary", "wages", "dividend", "interest", "bonus", "refund"],
    "Food": ["restaurant", "grocery", "cafe", "food", "dining", "supermarket"],
    "Transportation": ["gas", "fuel", "uber", "taxi", "parking", "transit"],
    "Housing": ["rent", "mortgage", "utilities", "electric", "water", "internet"],
    "Healthcare": ["medical", "doctor", "pharmacy", "hospital", "dental"],
    "Entertainment": ["movie", "netflix", "spotify", "game", "concert"],
}


class LabelerTaskType(str, Enum):
    LABEL_TRANSACTIONS = "label_transactions"
    CATEGORIZE_DATA = "categorize_data"
    EXTRACT_ENTITIES = "extract_entities"
    ANALYZE_PATTERNS = "analyze_patterns"


class LabelerSettings(BaseModel):
    """Runtime settings for the labeler agent."""

    model_config = ConfigDict(extra="forbid")

    confidence_threshold: float = Field(default=0.85, ge=0.0, le=1.0)
    enable_auto_labeling: bool = True
    use_contextual_analysis: bool = Field(
        default=True, description="Adjust confidence using the transaction amount"
    )
    category_mappings: dict[str, list[str]] = Field(
        default_factory=lambda: {k: list(v) for k, v in DEFAULT_CATEGORY_MAPPINGS.items()}
    )
    rule_based_labeling: bool = Field(
        default=True, description="Fall back to built-in rules when no mapping keyword matches"
    )


class Entity(BaseModel):
    type: str
    value: str


class LabelingStats(BaseModel):
    total_labeled: int = 0
    average_confidence: float = 0.0
    categories_used: int = 0
    high_confidence_count: int = 0
