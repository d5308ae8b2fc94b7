"""
Labeler Agent

Assigns categories and confidence scores to transactions, classifies field
values and extracts simple entities from free text.
"""

from src.agents.labeler_agent.agent import LabelerAgent
from src.agents.labeler_agent.models import LabelerSettings, LabelerTaskType

__all__ = ["LabelerAgent", "LabelerSettings", "LabelerTaskType"]
