from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field

from src.agents.supervisor_agent import FailedTask, SupervisorAgent
from src.api.dependencies import get_supervisor

router = APIRouter()


class WorkflowRunRequest(BaseModel):
    input_data: Any = None
    priority: int = 1


class FailureHandlingRequest(BaseModel):
    failed_tasks: list[FailedTask]
    retry_strategy: str = "immediate"


class LoadBalanceRequest(BaseModel):
    tasks: list[Any]
    target_agents: list[str] = Field(min_length=1)


@router.get("/workflows")
async def list_workflows(supervisor: SupervisorAgent = Depends(get_supervisor)) -> list[dict[str, Any]]:
    return supervisor.get_workflows()


@router.post("/workflows", status_code=status.HTTP_201_CREATED)
async def register_workflow(
    definition: dict[str, Any], supervisor: SupervisorAgent = Depends(get_supervisor)
) -> dict[str, Any]:
    return supervisor.register_workflow(definition).model_dump()


@router.post("/workflows/{workflow_name}/run")
async def run_workflow(
    workflow_name: str, request: WorkflowRunRequest, supervisor: SupervisorAgent = Depends(get_supervisor)
) -> dict[str, Any]:
    """Run a workflow to completion and return its execution record, whatever its final status."""
    execution = await supervisor.orchestrate_workflow(workflow_name, request.input_data, request.priority)
    return execution.model_dump()


@router.get("/executions")
async def list_executions(supervisor: SupervisorAgent = Depends(get_supervisor)) -> list[dict[str, Any]]:
    return [
        {"id": e.id, "workflow": e.workflow, "status": e.status.value, "start_time": e.start_time}
        for e in supervisor.list_executions()
    ]


@router.get("/executions/{execution_id}")
async def get_execution(execution_id: str, supervisor: SupervisorAgent = Depends(get_supervisor)) -> dict[str, Any]:
    execution = supervisor.get_execution(execution_id)
    if execution is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Execution {execution_id} not found")
    return execution.model_dump()


@router.get("/health")
async def monitor_agents(
    agents: list[str] | None = Query(default=None), supervisor: SupervisorAgent = Depends(get_supervisor)
) -> dict[str, Any]:
    return supervisor.monitor_agents(agents)


@router.post("/health/{agent_name}/reset")
async def reset_agent_health(agent_name: str, supervisor: SupervisorAgent = Depends(get_supervisor)) -> dict[str, Any]:
    return supervisor.reset_agent_health(agent_name).model_dump()


@router.post("/failures")
async def handle_failures(
    request: FailureHandlingRequest, supervisor: SupervisorAgent = Depends(get_supervisor)
) -> dict[str, Any]:
    return supervisor.handle_failures(request.failed_tasks, request.retry_strategy)


@router.post("/load-balance")
async def balance_load(
    request: LoadBalanceRequest, supervisor: SupervisorAgent = Depends(get_supervisor)
) -> dict[str, Any]:
    return supervisor.balance_load(request.tasks, request.target_agents)


@router.get("/reports/{report_type}")
async def generate_report(report_type: str, supervisor: SupervisorAgent = Depends(get_supervisor)) -> dict[str, Any]:
    return supervisor.generate_report(report_type)
