"""
Data models for the Supervisor Agent.
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from src.core.models import ExecutionStatus, HealthStatus


def _now() -> datetime:
    return datetime.now(UTC)


class SupervisorTaskType(str, Enum):
    ORCHESTRATE_WORKFLOW = "orchestrate_workflow"
    MONITOR_AGENTS = "monitor_agents"
    BALANCE_LOAD = "balance_load"
    HANDLE_FAILURES = "handle_failures"
    OPTIMIZE_RESOURCES = "optimize_resources"
    GENERATE_REPORT = "generate_report"


class SupervisorSettings(BaseModel):
    """Runtime settings for the supervisor agent."""

    model_config = ConfigDict(extra="forbid")

    max_concurrent_tasks: int = Field(default=10, gt=0, description="Upper bound on parallel workflow steps in flight")
    task_timeout_minutes: float = Field(default=30, gt=0, description="Time budget for each workflow step")
    auto_retry_failed_tasks: bool = True
    max_retry_attempts: int = Field(default=3, ge=0)
    load_balancing_enabled: bool = True
    priority_threshold: int = Field(
        default=5, description="Workflows at or above this priority are marked high priority"
    )
    health_check_interval_seconds: float = Field(default=60.0, gt=0)


class FailedTask(BaseModel):
    """A failed task handed to failure handling; extra fields are carried through to the report."""

    model_config = ConfigDict(extra="allow")

    id: str
    retry_count: int = Field(default=0, ge=0)


class AgentHealth(BaseModel):
    """Supervisor bookkeeping for one monitored agent."""

    agent_name: str
    status: HealthStatus = HealthStatus.HEALTHY
    last_seen: datetime = Field(default_factory=_now)
    task_count: int = 0
    error_rate: float = Field(default=0.0, ge=0.0, le=1.0)
    avg_response_time_ms: float = 0.0

    def record_success(self, duration_ms: float) -> None:
        self.avg_response_time_ms = (
            duration_ms if self.task_count == 0 else (self.avg_response_time_ms + duration_ms) / 2
        )
        self.error_rate = self.error_rate * self.task_count / (self.task_count + 1)
        self.task_count += 1
        self.last_seen = _now()

    def record_failure(self) -> None:
        self.error_rate = (self.error_rate * self.task_count + 1) / (self.task_count + 1)
        self.task_count += 1


class WorkflowStep(BaseModel):
    """One step of a workflow: an agent and the task type it runs."""

    agent: str
    task_type: str | None = None

    @classmethod
    def parse(cls, value: "str | dict[str, Any] | WorkflowStep") -> "WorkflowStep":
        """Accept `agent`, `agent:task_type` or a mapping with those keys."""
        if isinstance(value, WorkflowStep):
            return value
        if isinstance(value, dict):
            return cls.model_validate(value)
        agent, _, task_type = str(value).partition(":")
        return cls(agent=agent.strip(), task_type=task_type.strip() or None)

    @property
    def label(self) -> str:
        return self.agent if self.task_type is None else f"{self.agent}:{self.task_type}"


class Workflow(BaseModel):
    name: str
    description: str | None = None
    steps: list[WorkflowStep]
    parallel: bool = False
    retry_on_failure: bool = False

    @field_validator("steps", mode="before")
    @classmethod
    def _parse_steps(cls, value: Any) -> Any:
        if isinstance(value, list):
            return [WorkflowStep.parse(step) for step in value]
        return value


class StepExecution(BaseModel):
    agent: str
    task_type: str
    status: ExecutionStatus = ExecutionStatus.RUNNING
    attempt: int = 1
    input: Any = None
    output: Any = None
    error: str | None = None
    start_time: datetime = Field(default_factory=_now)
    end_time: datetime | None = None


class WorkflowExecution(BaseModel):
    id: str
    workflow: str
    priority: int = 1
    high_priority: bool = False
    status: ExecutionStatus = ExecutionStatus.RUNNING
    start_time: datetime = Field(default_factory=_now)
    end_time: datetime | None = None
    steps: list[StepExecution] = Field(default_factory=list)
    results: dict[str, Any] = Field(default_factory=dict)
    errors: list[dict[str, str]] = Field(default_factory=list)

    @property
    def duration_ms(self) -> float:
        if self.end_time is None:
            return 0.0
        return (self.end_time - self.start_time).total_seconds() * 1000
