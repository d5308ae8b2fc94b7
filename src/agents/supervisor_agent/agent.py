"""
Supervisor Agent for orchestrating the data agents.
"""

import asyncio
import itertools
import math
from collections.abc import Mapping
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from cachetools import LRUCache
from pydantic import ValidationError

from src.agents.base import BaseAgent, TaskHandler, require_field
from src.agents.supervisor_agent.models import (
    AgentHealth,
    FailedTask,
    StepExecution,
    SupervisorSettings,
    SupervisorTaskType,
    Workflow,
    WorkflowExecution,
    WorkflowStep,
)
from src.agents.supervisor_agent.workflows import DEFAULT_TASK_TYPES, DEFAULT_WORKFLOWS, load_workflows_file
from src.core.config import AgentRuntimeConfig, CacheConfig, SupervisorConfig, config
from src.core.errors import (
    AgentNotFoundError,
    AgentUnhealthyError,
    InvalidWorkflowError,
    TaskExecutionError,
    WorkflowNotFoundError,
)
from src.core.models import AgentName, ExecutionStatus, HealthStatus, LogLevel
from src.core.utils.logging import log_operation

# errorRate above which an agent is reported as degraded, and alerted on.
DEGRADED_ERROR_RATE = 0.2
ALERT_ERROR_RATE = 0.1

REPORT_TYPES = ("performance", "health", "workload")


class SupervisorAgent(BaseAgent):
    """
    Supervisor that composes the data agents into workflows.

    Architecture:
    1. Workflow registry: named step lists, run as a sequential pipe or fanned out in parallel
    2. Health table: one AgentHealth per monitored agent, updated after every step
    3. Execution registry: bounded history of WorkflowExecution records

    Steps are dispatched onto the target agent's own queue, so the supervisor
    never bypasses an agent's FIFO ordering.
    """

    agent_key = AgentName.SUPERVISOR.value
    display_name = "Supervisor Agent"
    task_types = SupervisorTaskType
    settings_model = SupervisorSettings
    capabilities = [
        "Workflow orchestration",
        "Agent monitoring",
        "Load balancing",
        "Failure handling",
        "Resource optimization",
        "Performance reporting",
    ]

    settings: SupervisorSettings

    def __init__(
        self,
        agents: Mapping[str, BaseAgent] | None = None,
        runtime: AgentRuntimeConfig | None = None,
        settings: SupervisorSettings | None = None,
        supervisor_config: SupervisorConfig | None = None,
        cache_config: CacheConfig | None = None,
    ):
        supervisor_config = supervisor_config or config.supervisor
        cache_config = cache_config or config.cache
        super().__init__(
            runtime=runtime,
            settings=settings
            or SupervisorSettings(health_check_interval_seconds=supervisor_config.health_check_interval_seconds),
        )

        self.agents: dict[str, BaseAgent] = dict(agents or {})
        self.agent_health: dict[str, AgentHealth] = {
            name: AgentHealth(agent_name=name) for name in supervisor_config.monitored_agents
        }
        self.workflows: dict[str, Workflow] = {}
        self.executions: LRUCache = LRUCache(maxsize=cache_config.execution_history_maxsize)
        self._execution_ids = itertools.count(1)

        for workflow in DEFAULT_WORKFLOWS:
            self.register_workflow(workflow)
        if supervisor_config.workflows_file:
            for workflow in load_workflows_file(supervisor_config.workflows_file):
                self.register_workflow(workflow)

    def _handlers(self) -> dict[Enum, TaskHandler]:
        return {
            SupervisorTaskType.ORCHESTRATE_WORKFLOW: self._orchestrate_task,
            SupervisorTaskType.MONITOR_AGENTS: self._monitor_task,
            SupervisorTaskType.BALANCE_LOAD: self._balance_task,
            SupervisorTaskType.HANDLE_FAILURES: self._failures_task,
            SupervisorTaskType.OPTIMIZE_RESOURCES: self._optimize_task,
            SupervisorTaskType.GENERATE_REPORT: self._report_task,
        }

    # Workflow registry

    def register_workflow(self, workflow: Workflow | dict[str, Any]) -> Workflow:
        """
        Add or replace a workflow definition.

        Raises:
            InvalidWorkflowError: If a step is repeated, or targets the supervisor, an unmonitored agent
                or an unknown task type
        """
        if isinstance(workflow, dict):
            try:
                workflow = Workflow.model_validate(workflow)
            except ValueError as e:
                raise InvalidWorkflowError(f"Invalid workflow definition: {e}") from e

        if not workflow.steps:
            raise InvalidWorkflowError(f"Workflow {workflow.name} has no steps", {"workflow": workflow.name})

        labels = [step.label for step in workflow.steps]
        duplicates = sorted({label for label in labels if labels.count(label) > 1})
        if duplicates:
            raise InvalidWorkflowError(
                f"Workflow {workflow.name} repeats steps: {', '.join(duplicates)}",
                {"workflow": workflow.name, "steps": duplicates},
            )

        for step in workflow.steps:
            if step.agent == self.agent_key:
                raise InvalidWorkflowError("The supervisor cannot be a workflow step", {"workflow": workflow.name})
            if step.agent not in self.agent_health:
                raise InvalidWorkflowError(
                    f"Unknown agent in workflow {workflow.name}: {step.agent}",
                    {"workflow": workflow.name, "agent": step.agent},
                )
            agent = self.agents.get(step.agent)
            task_type = self._task_type_for(step)
            if agent is not None and task_type not in {t.value for t in agent.task_types}:
                raise InvalidWorkflowError(
                    f"Agent {step.agent} does not support task type {task_type}",
                    {"workflow": workflow.name, "agent": step.agent, "task_type": task_type},
                )

        self.workflows[workflow.name] = workflow
        self.log(LogLevel.INFO, f"Workflow registered: {workflow.name}", steps=[s.label for s in workflow.steps])
        return workflow

    def get_workflows(self) -> list[dict[str, Any]]:
        return [workflow.model_dump() for workflow in self.workflows.values()]

    def get_execution(self, execution_id: str) -> WorkflowExecution | None:
        return self.executions.get(execution_id)

    def list_executions(self) -> list[WorkflowExecution]:
        return list(self.executions.values())

    # Orchestration

    async def orchestrate_workflow(self, workflow_name: str, input_data: Any, priority: int = 1) -> WorkflowExecution:
        """
        Run a registered workflow and return its execution record.

        Sequential workflows pipe each step's output into the next step and stop
        at the first failure (status failed). Parallel workflows give every step
        the same input, let all steps settle and isolate failures (status
        completed_with_errors when some but not all steps failed).

        Raises:
            WorkflowNotFoundError: If no workflow is registered under the name
        """
        workflow = self.workflows.get(workflow_name)
        if workflow is None:
            raise WorkflowNotFoundError(workflow_name)

        execution = WorkflowExecution(
            id=f"workflow_{next(self._execution_ids)}",
            workflow=workflow_name,
            priority=priority,
            high_priority=priority >= self.settings.priority_threshold,
        )
        self.executions[execution.id] = execution
        self.log(LogLevel.INFO, f"Starting workflow orchestration: {workflow_name}", priority=priority)

        subject = {"execution_id": execution.id}
        async with log_operation("workflow_orchestration", subject, workflow=workflow_name) as op_log:
            op_log.debug("workflow_steps_planned", steps=[step.label for step in workflow.steps])
            if workflow.parallel:
                await self._run_parallel(workflow, input_data, execution)
            else:
                await self._run_sequential(workflow, input_data, execution)

        execution.end_time = datetime.now(UTC)
        level = LogLevel.ERROR if execution.status == ExecutionStatus.FAILED else LogLevel.INFO
        self.log(
            level,
            f"Workflow orchestration finished: {workflow_name}",
            execution_id=execution.id,
            status=execution.status.value,
            duration_ms=round(execution.duration_ms, 2),
            errors=len(execution.errors),
        )
        return execution

    async def _run_sequential(self, workflow: Workflow, input_data: Any, execution: WorkflowExecution) -> None:
        current = input_data
        for step in workflow.steps:
            try:
                current = await self._run_step_with_retry(workflow, step, current, execution)
            except Exception as e:
                execution.errors.append({"step": step.label, "error": str(e) or type(e).__name__})
                execution.status = ExecutionStatus.FAILED
                return
            execution.results[step.label] = current
        execution.status = ExecutionStatus.COMPLETED

    async def _run_parallel(self, workflow: Workflow, input_data: Any, execution: WorkflowExecution) -> None:
        limit = asyncio.Semaphore(self.settings.max_concurrent_tasks)

        async def bounded(step: WorkflowStep) -> Any:
            async with limit:
                return await self._run_step_with_retry(workflow, step, input_data, execution)

        outcomes = await asyncio.gather(*(bounded(step) for step in workflow.steps), return_exceptions=True)
        for step, outcome in zip(workflow.steps, outcomes, strict=True):
            if isinstance(outcome, BaseException):
                if isinstance(outcome, asyncio.CancelledError):
                    raise outcome
                execution.errors.append({"step": step.label, "error": str(outcome) or type(outcome).__name__})
            else:
                execution.results[step.label] = outcome

        if not execution.errors:
            execution.status = ExecutionStatus.COMPLETED
        elif execution.results:
            execution.status = ExecutionStatus.COMPLETED_WITH_ERRORS
        else:
            execution.status = ExecutionStatus.FAILED

    async def _run_step_with_retry(
        self, workflow: Workflow, step: WorkflowStep, data: Any, execution: WorkflowExecution
    ) -> Any:
        retries = 0
        if workflow.retry_on_failure and self.settings.auto_retry_failed_tasks:
            retries = self.settings.max_retry_attempts
        for attempt in range(1, retries + 2):
            try:
                return await self._execute_step(step, data, execution, attempt)
            except AgentUnhealthyError:
                raise
            except Exception as e:
                if attempt > retries:
                    raise
                self.log(LogLevel.WARNING, f"Retrying step {step.label}", attempt=attempt, error=str(e))

    async def _execute_step(self, step: WorkflowStep, data: Any, execution: WorkflowExecution, attempt: int) -> Any:
        task_type = self._task_type_for(step)
        record = StepExecution(agent=step.agent, task_type=task_type, input=data, attempt=attempt)
        execution.steps.append(record)
        health = self.agent_health.get(step.agent)

        try:
            if health is None or health.status == HealthStatus.UNHEALTHY:
                raise AgentUnhealthyError(step.agent)
            agent = self.agents.get(step.agent)
            if agent is None:
                raise AgentNotFoundError(step.agent)

            result = await agent.run_task(
                task_type,
                data,
                task_id=f"{execution.id}_{step.agent}_{attempt}",
                priority=execution.priority,
                timeout=self.settings.task_timeout_minutes * 60,
            )
        except Exception as e:
            record.status = ExecutionStatus.FAILED
            record.error = str(e) or type(e).__name__
            record.end_time = datetime.now(UTC)
            if health is not None:
                health.record_failure()
            raise

        record.status = ExecutionStatus.COMPLETED
        record.output = result
        record.end_time = datetime.now(UTC)
        health.record_success((record.end_time - record.start_time).total_seconds() * 1000)
        return result

    def _task_type_for(self, step: WorkflowStep) -> str:
        if step.task_type:
            return step.task_type
        if step.agent not in DEFAULT_TASK_TYPES:
            raise InvalidWorkflowError(f"No default task type for agent {step.agent}", {"agent": step.agent})
        return DEFAULT_TASK_TYPES[step.agent]

    # Health monitoring

    def perform_health_checks(self) -> None:
        """Recompute every agent's health status from staleness and error rate."""
        now = datetime.now(UTC)
        stale_after = self.settings.health_check_interval_seconds * 3

        for name, health in self.agent_health.items():
            previous = health.status
            if (now - health.last_seen).total_seconds() > stale_after:
                health.status = HealthStatus.UNHEALTHY
            elif health.error_rate > DEGRADED_ERROR_RATE:
                health.status = HealthStatus.DEGRADED
            else:
                health.status = HealthStatus.HEALTHY

            if health.status != previous:
                self.log(
                    LogLevel.WARNING,
                    f"Agent {name} health changed",
                    previous=previous.value,
                    current=health.status.value,
                )

    def reset_agent_health(self, agent_name: str) -> AgentHealth:
        """Mark an agent as freshly seen and healthy, keeping its counters."""
        health = self.agent_health.get(agent_name)
        if health is None:
            raise AgentNotFoundError(agent_name)
        health.last_seen = datetime.now(UTC)
        health.status = HealthStatus.DEGRADED if health.error_rate > DEGRADED_ERROR_RATE else HealthStatus.HEALTHY
        self.log(LogLevel.INFO, f"Health reset for agent {agent_name}", status=health.status.value)
        return health

    def get_agent_health(self) -> list[dict[str, Any]]:
        return [health.model_dump() for health in self.agent_health.values()]

    def monitor_agents(self, agent_names: list[str] | None = None) -> dict[str, Any]:
        names = agent_names or list(self.agent_health)
        report: dict[str, Any] = {
            "timestamp": datetime.now(UTC).isoformat(),
            "overall_health": "healthy",
            "agents": [],
            "alerts": [],
            "recommendations": [],
        }

        monitored = unhealthy = 0
        for name in names:
            health = self.agent_health.get(name)
            if health is None:
                continue
            monitored += 1

            entry = {
                "name": name,
                "status": health.status.value,
                "metrics": {
                    "task_count": health.task_count,
                    "error_rate": f"{health.error_rate * 100:.2f}%",
                    "avg_response_time": f"{health.avg_response_time_ms:.0f}ms",
                    "last_seen": health.last_seen.isoformat(),
                },
            }
            if name in self.agents:
                entry["agent"] = self.agents[name].get_status()
            report["agents"].append(entry)

            if health.status == HealthStatus.UNHEALTHY:
                unhealthy += 1
                report["alerts"].append(
                    {"type": "agent_unhealthy", "agent": name, "message": f"Agent {name} is unhealthy"}
                )
            if health.error_rate > ALERT_ERROR_RATE:
                report["alerts"].append(
                    {
                        "type": "high_error_rate",
                        "agent": name,
                        "message": f"High error rate detected: {health.error_rate * 100:.1f}%",
                    }
                )

        if monitored and unhealthy > monitored * 0.5:
            report["overall_health"] = "critical"
        elif unhealthy > 0:
            report["overall_health"] = "degraded"

        if report["alerts"]:
            report["recommendations"].append("Investigate and resolve agent health issues")

        self.log(
            LogLevel.INFO,
            "Agent monitoring completed",
            overall_health=report["overall_health"],
            alerts=len(report["alerts"]),
        )
        return report

    # Load balancing and failure policy

    def balance_load(self, tasks: list[Any], target_agents: list[str]) -> dict[str, Any]:
        """Split tasks into contiguous blocks of ceil(len/agents), one block per target agent."""
        if not self.settings.load_balancing_enabled:
            return {"enabled": False, "message": "Load balancing is disabled"}
        if not target_agents:
            raise TaskExecutionError("At least one target agent is required")

        self.log(LogLevel.INFO, "Starting load balancing", tasks=len(tasks), agents=len(target_agents))
        block = math.ceil(len(tasks) / len(target_agents))
        assignments = {agent: tasks[i * block : (i + 1) * block] for i, agent in enumerate(target_agents)}

        loads = [len(assigned) for assigned in assignments.values()]
        efficiency = 1.0 if max(loads) == 0 else 1 - (max(loads) - min(loads)) / max(loads)

        self.log(LogLevel.INFO, "Load balancing completed", efficiency=f"{efficiency * 100:.1f}%")
        return {
            "enabled": True,
            "total_tasks": len(tasks),
            "agent_assignments": assignments,
            "redistributed": 0,
            "efficiency": efficiency,
        }

    def handle_failures(
        self, failed_tasks: list[FailedTask | dict[str, Any]], retry_strategy: str = "immediate"
    ) -> dict[str, Any]:
        """
        Decide retry or escalation for each failed task.

        Bookkeeping only: tasks marked for retry are not resubmitted here.

        Raises:
            TaskExecutionError: If an entry lacks an id or has a negative or non-integer retry_count
        """
        try:
            entries = [FailedTask.model_validate(failed) for failed in failed_tasks]
        except ValidationError as e:
            raise TaskExecutionError(f"Invalid failed task entry: {e}") from e

        self.log(LogLevel.INFO, "Starting failure handling", failed_tasks=len(failed_tasks), strategy=retry_strategy)
        report: dict[str, Any] = {
            "total_failures": len(failed_tasks),
            "retried_tasks": [],
            "permanent_failures": [],
            "recovery_actions": [],
        }

        for failed in entries:
            task_id = failed.id
            retry_count = failed.retry_count
            if self.settings.auto_retry_failed_tasks and retry_count < self.settings.max_retry_attempts:
                report["retried_tasks"].append(
                    {"task_id": task_id, "retry_count": retry_count + 1, "retry_strategy": retry_strategy}
                )
                report["recovery_actions"].append(
                    {"action": "retry", "task_id": task_id, "reason": "Within retry limit"}
                )
            else:
                report["permanent_failures"].append(failed.model_dump())
                report["recovery_actions"].append(
                    {"action": "escalate", "task_id": task_id, "reason": "Max retries exceeded"}
                )

        self.log(
            LogLevel.INFO,
            "Failure handling completed",
            retried=len(report["retried_tasks"]),
            permanent_failures=len(report["permanent_failures"]),
        )
        return report

    def optimize_resources(self, target_efficiency: float = 0.9) -> dict[str, Any]:
        processed = sum(agent.metrics.tasks_processed for agent in self.agents.values())
        successful = sum(agent.metrics.tasks_successful for agent in self.agents.values())
        current = successful / processed if processed else 1.0

        recommendations = []
        gap = target_efficiency - current
        if gap > 0.2:
            recommendations += ["Scale up agent instances", "Optimize task distribution"]
        elif gap > 0.1:
            recommendations.append("Fine-tune agent configurations")
        elif gap > 0:
            recommendations.append("Minor performance adjustments")

        for name, agent in self.agents.items():
            if len(agent.queue) > self.settings.max_concurrent_tasks:
                recommendations.append(f"Reduce backlog on {name} ({len(agent.queue)} queued tasks)")

        result = {
            "current_efficiency": round(current, 4),
            "target_efficiency": target_efficiency,
            "recommendations": recommendations,
            "estimated_improvement": round(max(gap, 0.0) * 0.7, 4),
        }
        self.log(LogLevel.INFO, "Resource optimization completed", recommendations=len(recommendations))
        return result

    def generate_report(self, report_type: str, time_range: dict[str, Any] | None = None) -> dict[str, Any]:
        if report_type not in REPORT_TYPES:
            raise TaskExecutionError(f"Unknown report type: {report_type}")

        agents = list(self.agents.values())
        if report_type == "performance":
            processed = sum(a.metrics.tasks_processed for a in agents)
            summary: dict[str, Any] = {
                "total_tasks": processed,
                "completed_tasks": sum(a.metrics.tasks_successful for a in agents),
                "failed_tasks": sum(a.metrics.tasks_failed for a in agents),
                "average_processing_time": (
                    sum(a.metrics.average_processing_time_ms * a.metrics.tasks_processed for a in agents) / processed
                    if processed
                    else 0.0
                ),
            }
        elif report_type == "health":
            statuses = [h.status for h in self.agent_health.values()]
            summary = {
                "healthy_agents": statuses.count(HealthStatus.HEALTHY),
                "degraded_agents": statuses.count(HealthStatus.DEGRADED),
                "unhealthy_agents": statuses.count(HealthStatus.UNHEALTHY),
            }
        else:
            queued = {name: len(agent.queue) for name, agent in self.agents.items()}
            busy = sum(1 for agent in agents if agent.status.value in ("processing", "training"))
            summary = {
                "queued_tasks": queued,
                "total_queued": sum(queued.values()),
                "busy_agents": busy,
                "resource_utilization": round(busy / len(agents) * 100, 2) if agents else 0.0,
            }

        self.log(LogLevel.INFO, f"{report_type} report generated")
        return {
            "type": report_type,
            "generated_at": datetime.now(UTC).isoformat(),
            "time_range": time_range,
            "summary": summary,
        }

    # Task handlers

    async def _orchestrate_task(self, data: dict[str, Any]) -> dict[str, Any]:
        name = require_field(data, "workflow_name", str)
        execution = await self.orchestrate_workflow(name, data.get("input_data"), int(data.get("priority") or 1))
        if execution.status == ExecutionStatus.FAILED:
            raise TaskExecutionError(
                f"Workflow {name} failed: {execution.errors[-1]['error'] if execution.errors else 'unknown error'}",
                {"execution_id": execution.id},
            )
        return execution.model_dump()

    async def _monitor_task(self, data: dict[str, Any]) -> dict[str, Any]:
        return self.monitor_agents(data.get("agent_names"))

    async def _balance_task(self, data: dict[str, Any]) -> dict[str, Any]:
        return self.balance_load(require_field(data, "tasks", list), require_field(data, "target_agents", list))

    async def _failures_task(self, data: dict[str, Any]) -> dict[str, Any]:
        failed = require_field(data, "failed_tasks", list)
        return self.handle_failures(failed, data.get("retry_strategy") or "immediate")

    async def _optimize_task(self, data: dict[str, Any]) -> dict[str, Any]:
        return self.optimize_resources(float(data.get("target_efficiency", 0.9)))

    async def _report_task(self, data: dict[str, Any]) -> dict[str, Any]:
        return self.generate_report(require_field(data, "report_type", str), data.get("time_range"))
