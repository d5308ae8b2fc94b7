"""
FinClean Agent System

This package provides the data agents (parser, cleaner, labeler, reviewer,
trainer) and the supervisor that composes them into workflows. Every agent
drains its own FIFO task queue one task at a time, with timeouts, metrics
and a bounded log buffer.
"""

from src.agents.base import BaseAgent
from src.agents.cleaner_agent import CleanerAgent
from src.agents.factory import create_agent_manager, get_agent
from src.agents.labeler_agent import LabelerAgent
from src.agents.manager import AgentManager
from src.agents.parser_agent import ParserAgent
from src.agents.reviewer_agent import ReviewerAgent
from src.agents.supervisor_agent import SupervisorAgent
from src.agents.trainer_agent import TrainerAgent

__all__ = [
    "BaseAgent",
    "AgentManager",
    "ParserAgent",
    "CleanerAgent",
    "LabelerAgent",
    "ReviewerAgent",
    "TrainerAgent",
    "SupervisorAgent",
    "create_agent_manager",
    "get_agent",
]
