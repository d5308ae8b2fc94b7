"""
Supervisor Agent

Orchestrates the data agents through named sequential or parallel workflows,
tracks per-agent health and applies load-balancing and retry policy.
"""

from src.agents.supervisor_agent.agent import SupervisorAgent
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

__all__ = [
    "AgentHealth",
    "FailedTask",
    "StepExecution",
    "SupervisorAgent",
    "SupervisorSettings",
    "SupervisorTaskType",
    "Workflow",
    "WorkflowExecution",
    "WorkflowStep",
]
