"""
Reviewer Agent

Reviews labeled records for missing critical fields, suspicious amounts,
invalid dates, business rule violations and duplicates, and scores overall
data quality.
"""

from src.agents.reviewer_agent.agent import ReviewerAgent
from src.agents.reviewer_agent.models import QualityAssessment, ReviewerSettings, ReviewerTaskType, ReviewIssue

__all__ = ["QualityAssessment", "ReviewIssue", "ReviewerAgent", "ReviewerSettings", "ReviewerTaskType"]
