"""
Core error classes for the agent system.
"""

from typing import Any


class AgentSystemError(Exception):
    """Base class for every error raised by the agent core."""

    code = "agent_system_error"

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)


class AgentNotFoundError(AgentSystemError):
    """Raised when an agent name is not registered."""

    code = "agent_not_found"

    def __init__(self, agent_name: str) -> None:
        self.agent_name = agent_name
        super().__init__(f"Agent {agent_name} not found", {"agent": agent_name})


class UnknownTaskTypeError(AgentSystemError):
    """Raised when an agent has no handler for a task type."""

    code = "unknown_task_type"

    def __init__(self, agent_name: str, task_type: str) -> None:
        self.agent_name = agent_name
        self.task_type = task_type
        super().__init__(f"Unknown task type: {task_type}", {"agent": agent_name, "task_type": task_type})


class TaskExecutionError(AgentSystemError):
    """Raised by a task handler when the payload cannot be processed."""

    code = "task_execution_error"


class TaskTimeoutError(AgentSystemError):
    """Raised when a task handler exceeds its time budget."""

    code = "timeout"

    def __init__(self, task_id: str, timeout: float) -> None:
        self.task_id = task_id
        self.timeout = timeout
        super().__init__(f"Task {task_id} timed out after {timeout} seconds", {"task_id": task_id})


class QueueFullError(AgentSystemError):
    """Raised when an agent queue is at capacity and rejects new tasks."""

    code = "queue_full"

    def __init__(self, agent_name: str, capacity: int) -> None:
        self.agent_name = agent_name
        self.capacity = capacity
        super().__init__(
            f"Queue for agent {agent_name} is full ({capacity} tasks)", {"agent": agent_name, "capacity": capacity}
        )


class AgentUnhealthyError(AgentSystemError):
    """Raised when the supervisor refuses to dispatch to an unhealthy agent."""

    code = "agent_unhealthy"

    def __init__(self, agent_name: str) -> None:
        self.agent_name = agent_name
        super().__init__(f"Agent {agent_name} is unhealthy", {"agent": agent_name})


class WorkflowNotFoundError(AgentSystemError):
    """Raised when a workflow name is not registered with the supervisor."""

    code = "workflow_not_found"

    def __init__(self, workflow_name: str) -> None:
        self.workflow_name = workflow_name
        super().__init__(f"Workflow {workflow_name} not found", {"workflow": workflow_name})


class InvalidWorkflowError(AgentSystemError):
    """Raised when a workflow definition cannot be registered."""

    code = "invalid_workflow"
