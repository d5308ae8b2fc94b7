"""
Data models for the Trainer Agent.
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class TrainerTaskType(str, Enum):
    TRAIN_MODEL = "train_model"
    FINE_TUNE = "fine_tune"
    VALIDATE_MODEL = "validate_model"
    PROCESS_FEEDBACK = "process_feedback"
    BACKUP_MODELS = "backup_models"
    OPTIMIZE_HYPERPARAMETERS = "optimize_hyperparameters"


class TrainerSettings(BaseModel):
    """Runtime settings for the trainer agent."""

    model_config = ConfigDict(extra="forbid")

    validation_split: float = Field(default=0.2, ge=0.0, lt=1.0)
    enable_incremental_learning: bool = Field(default=True, description="Allow fine_tune to derive new versions")
    feedback_threshold: float = Field(default=0.8, description="Ratings at or above this count as positive")
    retrain_ratio: float = Field(
        default=0.3, ge=0.0, le=1.0, description="Negative feedback ratio that triggers retraining"
    )
    model_backup_interval: int = Field(default=10, ge=0, description="Back up all models every N trainings; 0 disables")
    min_token_length: int = Field(default=3, ge=1)
    smoothing: float = Field(default=1.0, gt=0)
    accuracy_threshold: float = Field(default=0.85, ge=0.0, le=1.0)


class ModelVersion(BaseModel):
    version: str
    model_type: str
    accuracy: float
    samples: int
    created: datetime = Field(default_factory=lambda: datetime.now(UTC))
    parent: str | None = None
    session_id: str | None = None
    state: dict[str, Any] = Field(default_factory=dict, exclude=True)


class TrainingSession(BaseModel):
    id: str
    kind: str
    model_type: str
    model_version: str
    start_time: datetime
    end_time: datetime | None = None
    samples: int = 0
    metrics: dict[str, float] = Field(default_factory=dict)
