"""
Trainer Agent

Trains, fine-tunes, validates and backs up versioned transaction categorizers
built from labeled records and user feedback.
"""

from src.agents.trainer_agent.agent import TrainerAgent
from src.agents.trainer_agent.categorizer import KeywordCategorizer
from src.agents.trainer_agent.models import ModelVersion, TrainerSettings, TrainerTaskType

__all__ = ["KeywordCategorizer", "ModelVersion", "TrainerAgent", "TrainerSettings", "TrainerTaskType"]
