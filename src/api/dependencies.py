from fastapi import Depends, Request

from src.agents.manager import AgentManager
from src.agents.supervisor_agent import SupervisorAgent

# --- Service Dependencies ---


def get_agent_manager(request: Request) -> AgentManager:
    """
    The process-wide manager built in the application lifespan.
    """
    return request.app.state.agent_manager


def get_supervisor(manager: AgentManager = Depends(get_agent_manager)) -> SupervisorAgent:
    return manager.supervisor
