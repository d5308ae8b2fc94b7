"""
Cleaner Agent

Normalises text, currency and date fields, fills missing values and flags
statistical outliers in parsed tables.
"""

from src.agents.cleaner_agent.agent import CleanerAgent
from src.agents.cleaner_agent.models import CleanerSettings, CleanerTaskType, CleaningIssue

__all__ = ["CleanerAgent", "CleanerSettings", "CleanerTaskType", "CleaningIssue"]
