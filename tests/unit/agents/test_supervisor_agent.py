import asyncio
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, patch

import pytest

from src.agents.manager import AgentManager
from src.agents.supervisor_agent import SupervisorAgent
from src.agents.supervisor_agent.models import AgentHealth, WorkflowStep
from src.agents.supervisor_agent.workflows import load_workflows_file
from src.core.config import AgentRuntimeConfig, CacheConfig, SupervisorConfig
from src.core.errors import (
    AgentNotFoundError,
    InvalidWorkflowError,
    TaskExecutionError,
    WorkflowNotFoundError,
)
from src.core.models import ExecutionStatus, HealthStatus

STATEMENT_CSV = "date,description,amount\n2024-01-05,Monthly salary,3000\n2024-01-06,Grocery store,-80\n"

LABELED_RECORDS = [
    {"id": 1, "date": "2024-01-05", "amount": 3000, "description": "Monthly salary", "category": "Income"},
    {"id": 2, "date": "2024-01-06", "amount": -80, "description": "Grocery store", "category": "Food"},
    {"id": 3, "date": "2024-01-07", "amount": -12, "description": "Coffee shop", "category": "Food"},
]


@pytest.fixture
def supervisor(manager: AgentManager) -> SupervisorAgent:
    return manager.supervisor


class TestSequentialWorkflows:
    """Steps pipe their output into the next step and stop at the first failure."""

    @pytest.mark.asyncio
    async def test_data_processing_pipeline(self, supervisor: SupervisorAgent) -> None:
        execution = await supervisor.orchestrate_workflow("data_processing", {"content": STATEMENT_CSV})

        assert execution.status == ExecutionStatus.COMPLETED
        assert list(execution.results) == ["parser", "cleaner", "labeler", "reviewer"]
        assert execution.errors == []
        assert execution.end_time is not None

        labeled = execution.results["labeler"]["labeled_transactions"]
        assert [t["category"] for t in labeled] == ["Income", "Food"]
        assert execution.results["reviewer"]["total_records"] == 2
        assert execution.results["reviewer"]["approved"] == [0, 1]

    @pytest.mark.asyncio
    async def test_each_step_receives_previous_output(self, supervisor: SupervisorAgent) -> None:
        execution = await supervisor.orchestrate_workflow("data_processing", {"content": STATEMENT_CSV})

        assert execution.steps[0].input == {"content": STATEMENT_CSV}
        assert execution.steps[1].input == execution.results["parser"]
        assert execution.steps[2].input == execution.results["cleaner"]
        assert execution.steps[3].input == execution.results["labeler"]

    @pytest.mark.asyncio
    async def test_failed_step_keeps_earlier_results_only(self, supervisor: SupervisorAgent) -> None:
        supervisor.register_workflow({"name": "pipeline", "steps": ["parser", "cleaner"], "parallel": False})
        cleaner = supervisor.agents["cleaner"]

        with patch.object(cleaner, "clean_data", AsyncMock(side_effect=TaskExecutionError("cleaner exploded"))):
            execution = await supervisor.orchestrate_workflow("pipeline", {"content": "a,b\n1,2"})

        assert execution.status == ExecutionStatus.FAILED
        assert list(execution.results) == ["parser"]
        assert execution.errors == [{"step": "cleaner", "error": "cleaner exploded"}]
        assert execution.steps[-1].status == ExecutionStatus.FAILED

    @pytest.mark.asyncio
    async def test_retries_failed_steps(self, supervisor: SupervisorAgent) -> None:
        await supervisor.update_configuration({"max_retry_attempts": 2})
        supervisor.register_workflow({"name": "dates", "steps": ["cleaner:validate_dates"], "retry_on_failure": True})

        execution = await supervisor.orchestrate_workflow("dates", {})

        assert execution.status == ExecutionStatus.FAILED
        assert [step.attempt for step in execution.steps] == [1, 2, 3]
        assert supervisor.agent_health["cleaner"].task_count == 3
        assert supervisor.agent_health["cleaner"].error_rate == 1.0

    @pytest.mark.asyncio
    async def test_no_retries_without_workflow_opt_in(self, supervisor: SupervisorAgent) -> None:
        supervisor.register_workflow({"name": "dates", "steps": ["cleaner:validate_dates"]})
        execution = await supervisor.orchestrate_workflow("dates", {})
        assert len(execution.steps) == 1

    @pytest.mark.asyncio
    async def test_unhealthy_agent_is_not_dispatched_or_retried(self, supervisor: SupervisorAgent) -> None:
        supervisor.agent_health["parser"].status = HealthStatus.UNHEALTHY
        parser = supervisor.agents["parser"]

        execution = await supervisor.orchestrate_workflow("data_processing", {"content": STATEMENT_CSV})

        assert execution.status == ExecutionStatus.FAILED
        assert execution.errors == [{"step": "parser", "error": "Agent parser is unhealthy"}]
        assert len(execution.steps) == 1
        assert parser.metrics.tasks_processed == 0


class TestParallelWorkflows:
    """Steps share the input and fail independently."""

    @pytest.mark.asyncio
    async def test_quality_assurance_completes(self, supervisor: SupervisorAgent) -> None:
        execution = await supervisor.orchestrate_workflow("quality_assurance", {"records": LABELED_RECORDS})

        assert execution.status == ExecutionStatus.COMPLETED
        assert set(execution.results) == {"reviewer", "trainer"}
        assert execution.results["trainer"]["model_version"] == "labeler_v1.0"

    @pytest.mark.asyncio
    async def test_failure_is_isolated(self, supervisor: SupervisorAgent) -> None:
        unlabeled = [{key: value for key, value in r.items() if key != "category"} for r in LABELED_RECORDS]
        execution = await supervisor.orchestrate_workflow("quality_assurance", {"records": unlabeled})

        assert execution.status == ExecutionStatus.COMPLETED_WITH_ERRORS
        assert list(execution.results) == ["reviewer"]
        assert execution.errors[0]["step"] == "trainer"
        assert "At least 2 labeled samples" in execution.errors[0]["error"]

    @pytest.mark.asyncio
    async def test_all_steps_failing_fails_the_execution(self, supervisor: SupervisorAgent) -> None:
        execution = await supervisor.orchestrate_workflow("quality_assurance", {})

        assert execution.status == ExecutionStatus.FAILED
        assert execution.results == {}
        assert len(execution.errors) == 2

    @pytest.mark.asyncio
    async def test_max_concurrent_tasks_limits_fan_out(self, supervisor: SupervisorAgent) -> None:
        supervisor.register_workflow(
            {"name": "fan_out", "steps": ["cleaner:normalize_text", "labeler:categorize_data"], "parallel": True}
        )
        in_flight = {"now": 0, "peak": 0}

        async def tracked(_data):
            in_flight["now"] += 1
            in_flight["peak"] = max(in_flight["peak"], in_flight["now"])
            await asyncio.sleep(0.05)
            in_flight["now"] -= 1
            return {}

        cleaner, labeler = supervisor.agents["cleaner"], supervisor.agents["labeler"]
        with patch.object(cleaner, "normalize_text", tracked), patch.object(labeler, "categorize_data", tracked):
            await supervisor.orchestrate_workflow("fan_out", {})
            assert in_flight["peak"] == 2

            in_flight["peak"] = 0
            await supervisor.update_configuration({"max_concurrent_tasks": 1})
            execution = await supervisor.orchestrate_workflow("fan_out", {})

        assert execution.status == ExecutionStatus.COMPLETED
        assert in_flight["peak"] == 1
        first, second = execution.steps
        assert first.end_time <= second.start_time


class TestStepTimeout:
    @pytest.mark.asyncio
    async def test_supervisor_timeout_applies_to_steps(self, supervisor: SupervisorAgent) -> None:
        await supervisor.update_configuration({"task_timeout_minutes": 0.001})
        supervisor.register_workflow({"name": "slow", "steps": ["cleaner"]})
        cleaner = supervisor.agents["cleaner"]

        async def stalled(_data):
            await asyncio.sleep(5)

        with patch.object(cleaner, "clean_data", stalled):
            execution = await supervisor.orchestrate_workflow("slow", {"rows": []})

        assert execution.status == ExecutionStatus.FAILED
        step = execution.steps[0]
        assert step.status == ExecutionStatus.FAILED
        assert "timed out" in step.error
        assert supervisor.agent_health["cleaner"].error_rate > 0
        assert cleaner.metrics.tasks_failed == 1


class TestExecutionRegistry:
    @pytest.mark.asyncio
    async def test_executions_are_indexed(self, supervisor: SupervisorAgent) -> None:
        first = await supervisor.orchestrate_workflow("quality_assurance", {"records": LABELED_RECORDS})
        second = await supervisor.orchestrate_workflow("quality_assurance", {"records": LABELED_RECORDS}, priority=5)

        assert (first.id, second.id) == ("workflow_1", "workflow_2")
        assert supervisor.get_execution("workflow_2") is second
        assert second.high_priority is True
        assert first.high_priority is False
        assert [e.id for e in supervisor.list_executions()] == ["workflow_1", "workflow_2"]

    @pytest.mark.asyncio
    async def test_history_is_bounded(self, manager: AgentManager) -> None:
        supervisor = SupervisorAgent(
            agents=manager.supervisor.agents,
            runtime=AgentRuntimeConfig(0, 0),
            cache_config=CacheConfig(execution_history_maxsize=2),
            supervisor_config=SupervisorConfig(),
        )
        for _ in range(3):
            await supervisor.orchestrate_workflow("quality_assurance", {"records": LABELED_RECORDS})

        assert supervisor.get_execution("workflow_1") is None
        assert len(supervisor.list_executions()) == 2

    @pytest.mark.asyncio
    async def test_unknown_workflow(self, supervisor: SupervisorAgent) -> None:
        with pytest.raises(WorkflowNotFoundError, match="Workflow missing not found"):
            await supervisor.orchestrate_workflow("missing", {})

    @pytest.mark.asyncio
    async def test_orchestrate_task_type(self, supervisor: SupervisorAgent) -> None:
        result = await supervisor.run_task(
            "orchestrate_workflow",
            {"workflow_name": "quality_assurance", "input_data": {"records": LABELED_RECORDS}},
            task_id="task_1",
        )
        assert result["status"] == "completed"

    @pytest.mark.asyncio
    async def test_orchestrate_task_fails_with_the_workflow(self, supervisor: SupervisorAgent) -> None:
        with pytest.raises(TaskExecutionError, match="Workflow quality_assurance failed"):
            await supervisor.run_task(
                "orchestrate_workflow", {"workflow_name": "quality_assurance", "input_data": {}}, task_id="task_1"
            )


class TestWorkflowRegistration:
    def test_default_workflows(self, supervisor: SupervisorAgent) -> None:
        names = [w["name"] for w in supervisor.get_workflows()]
        assert names == ["data_processing", "quality_assurance"]

    def test_step_forms(self) -> None:
        assert WorkflowStep.parse("cleaner") == WorkflowStep(agent="cleaner")
        assert WorkflowStep.parse("cleaner:detect_outliers").task_type == "detect_outliers"
        assert WorkflowStep.parse({"agent": "parser", "task_type": "parse_pdf"}).label == "parser:parse_pdf"

    def test_rejects_supervisor_step(self, supervisor: SupervisorAgent) -> None:
        with pytest.raises(InvalidWorkflowError, match="supervisor cannot be a workflow step"):
            supervisor.register_workflow({"name": "loop", "steps": ["supervisor"]})

    def test_rejects_unknown_agent(self, supervisor: SupervisorAgent) -> None:
        with pytest.raises(InvalidWorkflowError, match="Unknown agent in workflow bad: ghost"):
            supervisor.register_workflow({"name": "bad", "steps": ["parser", "ghost"]})

    def test_rejects_unsupported_task_type(self, supervisor: SupervisorAgent) -> None:
        with pytest.raises(InvalidWorkflowError, match="does not support task type clean_data"):
            supervisor.register_workflow({"name": "bad", "steps": ["parser:clean_data"]})

    def test_rejects_empty_and_malformed(self, supervisor: SupervisorAgent) -> None:
        with pytest.raises(InvalidWorkflowError):
            supervisor.register_workflow({"name": "empty", "steps": []})
        with pytest.raises(InvalidWorkflowError):
            supervisor.register_workflow({"name": "malformed", "steps": 5})

    def test_rejects_repeated_steps(self, supervisor: SupervisorAgent) -> None:
        with pytest.raises(InvalidWorkflowError, match="repeats steps: reviewer"):
            supervisor.register_workflow(
                {"name": "twice", "steps": ["reviewer", "trainer", "reviewer"], "parallel": True}
            )

        supervisor.register_workflow({"name": "two_passes", "steps": ["cleaner", "cleaner:normalize_text"]})
        assert "twice" not in supervisor.workflows

    def test_replaces_existing_definition(self, supervisor: SupervisorAgent) -> None:
        supervisor.register_workflow({"name": "data_processing", "steps": ["parser"]})
        assert [s.agent for s in supervisor.workflows["data_processing"].steps] == ["parser"]


class TestWorkflowsFile:
    def test_loads_valid_entries(self, tmp_path) -> None:
        path = tmp_path / "workflows.yaml"
        path.write_text(
            "workflows:\n"
            "  - name: ingest_only\n"
            "    steps: [parser, 'cleaner:clean_data']\n"
            "    retry_on_failure: true\n"
            "  - name: no_steps\n"
            "  - just a string\n"
        )

        workflows = load_workflows_file(str(path))

        assert [w.name for w in workflows] == ["ingest_only"]
        assert [s.label for s in workflows[0].steps] == ["parser", "cleaner:clean_data"]
        assert workflows[0].retry_on_failure is True

    def test_file_without_workflows(self, tmp_path) -> None:
        path = tmp_path / "empty.yaml"
        path.write_text("other: 1\n")
        assert load_workflows_file(str(path)) == []

    def test_unreadable_file(self, tmp_path) -> None:
        with pytest.raises(InvalidWorkflowError, match="Cannot load workflows file"):
            load_workflows_file(str(tmp_path / "missing.yaml"))

    def test_invalid_yaml(self, tmp_path) -> None:
        path = tmp_path / "broken.yaml"
        path.write_text("workflows: [unclosed\n")
        with pytest.raises(InvalidWorkflowError):
            load_workflows_file(str(path))

    def test_supervisor_registers_file_workflows(self, tmp_path, runtime: AgentRuntimeConfig) -> None:
        path = tmp_path / "workflows.yaml"
        path.write_text("workflows:\n  - name: review_only\n    steps: [reviewer]\n")

        supervisor = SupervisorAgent(
            runtime=runtime, supervisor_config=SupervisorConfig(workflows_file=str(path)), cache_config=CacheConfig()
        )
        assert "review_only" in supervisor.workflows


class TestHealth:
    def test_stale_agent_becomes_unhealthy(self, supervisor: SupervisorAgent) -> None:
        supervisor.agent_health["labeler"].last_seen = datetime.now(UTC) - timedelta(seconds=181)
        supervisor.perform_health_checks()

        assert supervisor.agent_health["labeler"].status == HealthStatus.UNHEALTHY
        assert supervisor.agent_health["parser"].status == HealthStatus.HEALTHY

    def test_error_rate_degrades(self, supervisor: SupervisorAgent) -> None:
        supervisor.agent_health["cleaner"].error_rate = 0.5
        supervisor.perform_health_checks()
        assert supervisor.agent_health["cleaner"].status == HealthStatus.DEGRADED

    def test_checks_recover_healthy_agents(self, supervisor: SupervisorAgent) -> None:
        supervisor.agent_health["cleaner"].status = HealthStatus.DEGRADED
        supervisor.perform_health_checks()
        assert supervisor.agent_health["cleaner"].status == HealthStatus.HEALTHY

    def test_reset_agent_health(self, supervisor: SupervisorAgent) -> None:
        health = supervisor.agent_health["trainer"]
        health.status = HealthStatus.UNHEALTHY
        health.last_seen = datetime.now(UTC) - timedelta(hours=1)

        assert supervisor.reset_agent_health("trainer").status == HealthStatus.HEALTHY
        supervisor.perform_health_checks()
        assert health.status == HealthStatus.HEALTHY

        with pytest.raises(AgentNotFoundError):
            supervisor.reset_agent_health("ghost")

    def test_health_bookkeeping(self) -> None:
        health = AgentHealth(agent_name="parser")
        health.record_success(100)
        health.record_failure()
        health.record_success(300)

        assert health.task_count == 3
        assert health.avg_response_time_ms == 200
        assert health.error_rate == pytest.approx(1 / 3)

    @pytest.mark.asyncio
    async def test_successful_step_updates_health(self, supervisor: SupervisorAgent) -> None:
        before = supervisor.agent_health["parser"].last_seen
        await supervisor.orchestrate_workflow("data_processing", {"content": STATEMENT_CSV})

        health = supervisor.agent_health["parser"]
        assert health.task_count == 1
        assert health.error_rate == 0.0
        assert health.last_seen >= before

    def test_monitor_reports_alerts(self, supervisor: SupervisorAgent) -> None:
        supervisor.agent_health["parser"].status = HealthStatus.UNHEALTHY
        supervisor.agent_health["cleaner"].error_rate = 0.15

        report = supervisor.monitor_agents()

        assert report["overall_health"] == "degraded"
        assert {(a["type"], a["agent"]) for a in report["alerts"]} == {
            ("agent_unhealthy", "parser"),
            ("high_error_rate", "cleaner"),
        }
        assert report["recommendations"] == ["Investigate and resolve agent health issues"]
        assert len(report["agents"]) == 5
        assert report["agents"][1]["metrics"]["error_rate"] == "15.00%"

    def test_monitor_critical_when_most_agents_unhealthy(self, supervisor: SupervisorAgent) -> None:
        for name in ("parser", "cleaner", "labeler"):
            supervisor.agent_health[name].status = HealthStatus.UNHEALTHY
        assert supervisor.monitor_agents()["overall_health"] == "critical"

    def test_monitor_subset(self, supervisor: SupervisorAgent) -> None:
        report = supervisor.monitor_agents(["parser", "ghost"])
        assert [a["name"] for a in report["agents"]] == ["parser"]
        assert report["overall_health"] == "healthy"


class TestPolicies:
    def test_balance_load_splits_into_blocks(self, supervisor: SupervisorAgent) -> None:
        result = supervisor.balance_load(["t1", "t2", "t3", "t4", "t5"], ["cleaner", "labeler"])

        assert result["agent_assignments"] == {"cleaner": ["t1", "t2", "t3"], "labeler": ["t4", "t5"]}
        assert result["efficiency"] == pytest.approx(2 / 3)
        assert result["redistributed"] == 0

    def test_balance_load_without_tasks(self, supervisor: SupervisorAgent) -> None:
        result = supervisor.balance_load([], ["cleaner"])
        assert result["efficiency"] == 1.0

    @pytest.mark.asyncio
    async def test_balance_load_disabled(self, supervisor: SupervisorAgent) -> None:
        await supervisor.update_configuration({"load_balancing_enabled": False})
        assert supervisor.balance_load(["t1"], ["cleaner"])["enabled"] is False

    def test_balance_load_requires_targets(self, supervisor: SupervisorAgent) -> None:
        with pytest.raises(TaskExecutionError):
            supervisor.balance_load(["t1"], [])

    def test_handle_failures(self, supervisor: SupervisorAgent) -> None:
        report = supervisor.handle_failures([{"id": "a", "retry_count": 0}, {"id": "b", "retry_count": 3}])

        assert report["retried_tasks"] == [{"task_id": "a", "retry_count": 1, "retry_strategy": "immediate"}]
        assert report["permanent_failures"] == [{"id": "b", "retry_count": 3}]
        assert [a["action"] for a in report["recovery_actions"]] == ["retry", "escalate"]

    @pytest.mark.asyncio
    async def test_handle_failures_without_auto_retry(self, supervisor: SupervisorAgent) -> None:
        await supervisor.update_configuration({"auto_retry_failed_tasks": False})
        report = supervisor.handle_failures([{"id": "a"}])
        assert report["retried_tasks"] == []
        assert len(report["permanent_failures"]) == 1

    def test_handle_failures_rejects_bad_entries(self, supervisor: SupervisorAgent) -> None:
        with pytest.raises(TaskExecutionError, match="Invalid failed task entry"):
            supervisor.handle_failures([{"id": "t1", "retry_count": "two"}])
        with pytest.raises(TaskExecutionError):
            supervisor.handle_failures([{"retry_count": 1}])

    @pytest.mark.asyncio
    async def test_handle_failures_task_with_bad_entry(self, supervisor: SupervisorAgent) -> None:
        with pytest.raises(TaskExecutionError, match="Invalid failed task entry"):
            await supervisor.run_task(
                "handle_failures", {"failed_tasks": [{"id": "t1", "retry_count": "two"}]}, task_id="failures_1"
            )
        assert supervisor.metrics.tasks_failed == 1

    def test_optimize_resources_when_idle(self, supervisor: SupervisorAgent) -> None:
        result = supervisor.optimize_resources()
        assert result["current_efficiency"] == 1.0
        assert result["recommendations"] == []
        assert result["estimated_improvement"] == 0.0

    @pytest.mark.asyncio
    async def test_performance_report(self, supervisor: SupervisorAgent) -> None:
        await supervisor.orchestrate_workflow("quality_assurance", {})
        summary = supervisor.generate_report("performance")["summary"]

        assert summary["total_tasks"] == 2
        assert summary["failed_tasks"] == 2

    def test_health_and_workload_reports(self, supervisor: SupervisorAgent) -> None:
        assert supervisor.generate_report("health")["summary"]["healthy_agents"] == 5
        workload = supervisor.generate_report("workload", {"from": "2024-01-01"})
        assert workload["time_range"] == {"from": "2024-01-01"}
        assert workload["summary"]["total_queued"] == 0

    def test_unknown_report_type(self, supervisor: SupervisorAgent) -> None:
        with pytest.raises(TaskExecutionError, match="Unknown report type"):
            supervisor.generate_report("weekly")
