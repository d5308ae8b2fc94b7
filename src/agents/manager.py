"""
Agent registry and the entry point used by the HTTP layer.
"""

import itertools
from typing import Any

import structlog
from cachetools import TTLCache

from src.agents.base import BaseAgent
from src.agents.supervisor_agent import SupervisorAgent
from src.core.config import CacheConfig, config
from src.core.errors import AgentNotFoundError, QueueFullError
from src.core.models import AgentName
from src.tasks.task_queue import Task

logger = structlog.get_logger()


class AgentManager:
    """
    Maps agent names to agent instances.

    One manager is built per process and handed to whoever owns the HTTP
    layer; tests build a fresh one each time.
    """

    def __init__(self, cache_config: CacheConfig | None = None):
        cache_config = cache_config or config.cache
        self.agents: dict[str, BaseAgent] = {}
        self.tasks: TTLCache = TTLCache(maxsize=cache_config.task_index_maxsize, ttl=cache_config.task_index_ttl)
        self._task_ids = itertools.count(1)

    def register_agent(self, name: str, agent: BaseAgent) -> None:
        if name in self.agents:
            logger.warning("agent_replaced", agent=name)
        self.agents[name] = agent
        logger.info("agent_registered", agent=name, display_name=agent.name)

    def get_agent(self, name: str) -> BaseAgent:
        agent = self.agents.get(name)
        if agent is None:
            raise AgentNotFoundError(name)
        return agent

    @property
    def supervisor(self) -> SupervisorAgent:
        agent = self.get_agent(AgentName.SUPERVISOR.value)
        if not isinstance(agent, SupervisorAgent):
            raise AgentNotFoundError(AgentName.SUPERVISOR.value)
        return agent

    def list_agents(self) -> list[str]:
        return list(self.agents)

    async def submit_task(self, agent_name: str, task_type: str, data: Any, priority: int = 1) -> str:
        """
        Queue a task on the named agent and return its id without waiting for it to run.

        Raises:
            AgentNotFoundError: If the agent is not registered
            QueueFullError: If the agent's queue is at capacity
        """
        agent = self.get_agent(agent_name)
        if agent.queue.is_full:
            raise QueueFullError(agent_name, agent.queue.capacity)

        task = Task(id=f"task_{next(self._task_ids)}", type=task_type, data=data, priority=priority)
        await agent.add_task(task)
        self.tasks[task.id] = task
        logger.info("task_submitted", agent=agent_name, task_id=task.id, task_type=task_type)
        return task.id

    def get_task(self, task_id: str) -> Task | None:
        return self.tasks.get(task_id)

    def get_agent_status(self, agent_name: str) -> dict[str, Any] | None:
        agent = self.agents.get(agent_name)
        return agent.get_status() if agent else None

    def get_all_agents_status(self) -> list[dict[str, Any]]:
        return [agent.get_status() for agent in self.agents.values()]

    def get_agent_logs(self, agent_name: str, limit: int = 100) -> list[dict[str, Any]]:
        return self.get_agent(agent_name).get_logs(limit)

    def get_agent_configuration(self, agent_name: str) -> dict[str, Any] | None:
        agent = self.agents.get(agent_name)
        return agent.get_configuration() if agent else None

    async def update_agent_configuration(self, agent_name: str, partial: dict[str, Any]) -> None:
        await self.get_agent(agent_name).update_configuration(partial)

    async def shutdown(self) -> None:
        for name, agent in self.agents.items():
            await agent.shutdown()
            logger.info("agent_stopped", agent=name)
