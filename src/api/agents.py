from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field

from src.agents.manager import AgentManager
from src.api.dependencies import get_agent_manager
from src.core.errors import AgentNotFoundError

router = APIRouter()


class TaskSubmission(BaseModel):
    type: str = Field(description="Task type handled by the target agent, e.g. parse_csv")
    data: Any = None
    priority: int = Field(default=1, description="Recorded with the task; queues stay FIFO")


@router.get("/agents")
async def list_agents(manager: AgentManager = Depends(get_agent_manager)) -> dict[str, Any]:
    return {"agents": manager.list_agents()}


@router.get("/agents/status")
async def get_all_agents_status(manager: AgentManager = Depends(get_agent_manager)) -> list[dict[str, Any]]:
    return manager.get_all_agents_status()


@router.get("/agents/{agent_name}/status")
async def get_agent_status(agent_name: str, manager: AgentManager = Depends(get_agent_manager)) -> dict[str, Any]:
    agent_status = manager.get_agent_status(agent_name)
    if agent_status is None:
        raise AgentNotFoundError(agent_name)
    return agent_status


@router.get("/agents/{agent_name}/logs")
async def get_agent_logs(
    agent_name: str,
    limit: int = Query(default=100, ge=1, le=1000),
    manager: AgentManager = Depends(get_agent_manager),
) -> list[dict[str, Any]]:
    """Most recent log entries, newest first."""
    return manager.get_agent_logs(agent_name, limit)


@router.get("/agents/{agent_name}/configuration")
async def get_agent_configuration(
    agent_name: str, manager: AgentManager = Depends(get_agent_manager)
) -> dict[str, Any]:
    configuration = manager.get_agent_configuration(agent_name)
    if configuration is None:
        raise AgentNotFoundError(agent_name)
    return configuration


@router.patch("/agents/{agent_name}/configuration")
async def update_agent_configuration(
    agent_name: str, partial: dict[str, Any], manager: AgentManager = Depends(get_agent_manager)
) -> dict[str, Any]:
    """Shallow-merge settings; unknown keys or wrong types are rejected with 422."""
    await manager.update_agent_configuration(agent_name, partial)
    return manager.get_agent_configuration(agent_name)


@router.post("/agents/{agent_name}/tasks", status_code=status.HTTP_202_ACCEPTED)
async def submit_task(
    agent_name: str, submission: TaskSubmission, manager: AgentManager = Depends(get_agent_manager)
) -> dict[str, str]:
    task_id = await manager.submit_task(agent_name, submission.type, submission.data, submission.priority)
    return {"task_id": task_id, "status": "queued"}


@router.get("/tasks/{task_id}")
async def get_task(task_id: str, manager: AgentManager = Depends(get_agent_manager)) -> dict[str, Any]:
    task = manager.get_task(task_id)
    if task is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Task {task_id} not found")
    return task.model_dump()
