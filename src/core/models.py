from enum import Enum


class AgentName(str, Enum):
    """Registry keys of the built-in agents."""

    PARSER = "parser"
    CLEANER = "cleaner"
    LABELER = "labeler"
    REVIEWER = "reviewer"
    TRAINER = "trainer"
    SUPERVISOR = "supervisor"


class AgentStatus(str, Enum):
    """Lifecycle state of an agent's drain loop."""

    IDLE = "idle"
    ACTIVE = "active"
    PROCESSING = "processing"
    TRAINING = "training"
    ERROR = "error"


class LogLevel(str, Enum):
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class HealthStatus(str, Enum):
    """Supervisor view of an agent's health."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


class ExecutionStatus(str, Enum):
    """State of a workflow execution or one of its steps."""

    RUNNING = "running"
    COMPLETED = "completed"
    COMPLETED_WITH_ERRORS = "completed_with_errors"
    FAILED = "failed"


# Agents the supervisor tracks health for, in pipeline order.
MONITORED_AGENTS: list[str] = [
    AgentName.PARSER.value,
    AgentName.CLEANER.value,
    AgentName.LABELER.value,
    AgentName.REVIEWER.value,
    AgentName.TRAINER.value,
]
