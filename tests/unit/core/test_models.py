import pytest

from src.core.errors import (
    AgentNotFoundError,
    AgentSystemError,
    QueueFullError,
    TaskTimeoutError,
    UnknownTaskTypeError,
)
from src.core.models import MONITORED_AGENTS, AgentName, AgentStatus, ExecutionStatus, HealthStatus


class TestEnums:
    def test_agent_status_values(self) -> None:
        """Statuses serialise to their lowercase wire names."""
        assert [s.value for s in AgentStatus] == ["idle", "active", "processing", "training", "error"]

    def test_enums_compare_as_strings(self) -> None:
        assert AgentStatus.IDLE == "idle"
        assert HealthStatus.UNHEALTHY == "unhealthy"
        assert ExecutionStatus.COMPLETED_WITH_ERRORS == "completed_with_errors"

    def test_supervisor_is_not_monitored(self) -> None:
        assert MONITORED_AGENTS == ["parser", "cleaner", "labeler", "reviewer", "trainer"]
        assert AgentName.SUPERVISOR.value not in MONITORED_AGENTS


class TestErrors:
    def test_errors_share_a_base(self) -> None:
        for error in (AgentNotFoundError("x"), QueueFullError("x", 1), TaskTimeoutError("t", 1.0)):
            assert isinstance(error, AgentSystemError)

    def test_messages_and_details(self) -> None:
        error = UnknownTaskTypeError("parser", "parse_xml")
        assert str(error) == "Unknown task type: parse_xml"
        assert error.details == {"agent": "parser", "task_type": "parse_xml"}
        assert error.code == "unknown_task_type"

    def test_queue_full_message(self) -> None:
        error = QueueFullError("cleaner", 10)
        assert error.message == "Queue for agent cleaner is full (10 tasks)"

    def test_details_default_to_empty(self) -> None:
        with pytest.raises(AgentSystemError) as exc_info:
            raise AgentSystemError("boom")
        assert exc_info.value.details == {}
