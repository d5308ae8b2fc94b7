"""
Agent factory for creating agent instances by name.

Provides a simple interface to get agents by their type name,
centralizing agent instantiation for consistency.
"""

import logging
from typing import Any

from src.agents.base import BaseAgent
from src.agents.cleaner_agent import CleanerAgent
from src.agents.labeler_agent import LabelerAgent
from src.agents.manager import AgentManager
from src.agents.parser_agent import ParserAgent
from src.agents.reviewer_agent import ReviewerAgent
from src.agents.supervisor_agent import SupervisorAgent
from src.agents.trainer_agent import TrainerAgent
from src.core.config import Config, config
from src.core.models import AgentName

logger = logging.getLogger(__name__)

AGENT_CLASSES: dict[str, type[BaseAgent]] = {
    AgentName.PARSER.value: ParserAgent,
    AgentName.CLEANER.value: CleanerAgent,
    AgentName.LABELER.value: LabelerAgent,
    AgentName.REVIEWER.value: ReviewerAgent,
    AgentName.TRAINER.value: TrainerAgent,
}


def get_agent(agent_type: str, **kwargs: Any) -> BaseAgent:
    """
    Get an agent instance by type name.

    Args:
        agent_type: Type of agent ("parser", "cleaner", "labeler", "reviewer", "trainer", "supervisor")
        **kwargs: Additional configuration for the agent

    Returns:
        Agent instance

    Raises:
        ValueError: If agent_type is not supported

    Examples:
        >>> parser_agent = get_agent("parser")
        >>> supervisor = get_agent("supervisor", agents={"parser": parser_agent})
    """
    agent_type = agent_type.lower()

    if agent_type == AgentName.SUPERVISOR.value:
        return SupervisorAgent(**kwargs)
    if agent_type in AGENT_CLASSES:
        return AGENT_CLASSES[agent_type](**kwargs)

    supported = ", ".join([*AGENT_CLASSES, AgentName.SUPERVISOR.value])
    raise ValueError(f"Unsupported agent type: {agent_type}. Supported: {supported}")


def create_agent_manager(settings: Config | None = None) -> AgentManager:
    """Build a manager with every built-in agent registered, the supervisor last."""
    settings = settings or config
    manager = AgentManager(cache_config=settings.cache)

    for name in AGENT_CLASSES:
        manager.register_agent(name, get_agent(name, runtime=settings.agents))

    supervisor = get_agent(
        AgentName.SUPERVISOR.value,
        agents=dict(manager.agents),
        runtime=settings.agents,
        supervisor_config=settings.supervisor,
        cache_config=settings.cache,
    )
    manager.register_agent(AgentName.SUPERVISOR.value, supervisor)

    logger.info(f"Agent manager created with {len(manager.agents)} agents")
    return manager
