import time
from unittest.mock import AsyncMock, patch

from fastapi.testclient import TestClient

from src.agents.manager import AgentManager
from src.core.config import config
from src.core.errors import QueueFullError
from src.main import app


def wait_for_task(client: TestClient, task_id: str, timeout: float = 3.0) -> dict:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        task = client.get(f"/api/v1/tasks/{task_id}").json()
        if task["status"] in ("completed", "failed"):
            return task
        time.sleep(0.01)
    raise AssertionError(f"Task {task_id} did not finish")


def test_root(client: TestClient):
    response = client.get("/")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"
    assert response.json()["environment"] == config.environment
    assert app.debug is config.debug


def test_health_agents(client: TestClient):
    data = client.get("/health/agents").json()
    assert data["health_monitor"] == "running"
    assert set(data["agents"]) == {"parser", "cleaner", "labeler", "reviewer", "trainer", "supervisor"}


def test_list_agents(client: TestClient):
    response = client.get("/api/v1/agents")
    assert response.json() == {"agents": ["parser", "cleaner", "labeler", "reviewer", "trainer", "supervisor"]}


def test_all_statuses(client: TestClient):
    statuses = client.get("/api/v1/agents/status").json()
    assert [s["id"] for s in statuses][:2] == ["parser", "cleaner"]
    assert all(s["status"] == "idle" for s in statuses)


def test_submit_and_poll_task(client: TestClient):
    """
    A submitted task is accepted immediately and completes on the agent's queue.
    """
    response = client.post("/api/v1/agents/parser/tasks", json={"type": "parse_csv", "data": {"content": "a,b\n1,2"}})
    assert response.status_code == 202
    body = response.json()
    assert body["status"] == "queued"

    task = wait_for_task(client, body["task_id"])
    assert task["status"] == "completed"
    assert task["result"]["headers"] == ["a", "b"]
    assert task["error"] is None

    status = client.get("/api/v1/agents/parser/status").json()
    assert status["metrics"]["tasks_processed"] == 1

    logs = client.get("/api/v1/agents/parser/logs", params={"limit": 10}).json()
    assert any(entry["message"] == f"Task {body['task_id']} completed successfully" for entry in logs)


def test_failed_task_reports_error(client: TestClient):
    task_id = client.post("/api/v1/agents/cleaner/tasks", json={"type": "clean_data", "data": {}}).json()["task_id"]
    task = wait_for_task(client, task_id)

    assert task["status"] == "failed"
    assert task["error"] == "Missing required field: rows"
    assert task["result"] is None


def test_unknown_agent_returns_404(client: TestClient):
    response = client.post("/api/v1/agents/nonexistent/tasks", json={"type": "parse_csv"})
    assert response.status_code == 404
    assert response.json() == {
        "error": True,
        "code": "agent_not_found",
        "message": "Agent nonexistent not found",
        "details": {"agent": "nonexistent"},
    }

    assert client.get("/api/v1/agents/nonexistent/status").status_code == 404
    assert client.get("/api/v1/agents/nonexistent/logs").status_code == 404
    assert client.get("/api/v1/agents/nonexistent/configuration").status_code == 404


def test_full_queue_returns_429(client: TestClient, manager: AgentManager):
    with patch.object(manager, "submit_task", AsyncMock(side_effect=QueueFullError("parser", 1))):
        response = client.post("/api/v1/agents/parser/tasks", json={"type": "parse_csv"})

    assert response.status_code == 429
    assert response.headers["Retry-After"] == "5"
    assert response.json()["code"] == "queue_full"


def test_unknown_task_returns_404(client: TestClient):
    assert client.get("/api/v1/tasks/task_999").status_code == 404


def test_configuration_round_trip(client: TestClient):
    configuration = client.get("/api/v1/agents/labeler/configuration").json()
    assert configuration["name"] == "Labeler Agent"
    assert configuration["settings"]["confidence_threshold"] == 0.85

    response = client.patch("/api/v1/agents/labeler/configuration", json={"confidence_threshold": 0.7})
    assert response.status_code == 200
    assert response.json()["settings"]["confidence_threshold"] == 0.7
    assert response.json()["settings"]["enable_auto_labeling"] is True


def test_invalid_configuration_returns_422(client: TestClient):
    response = client.patch("/api/v1/agents/labeler/configuration", json={"not_a_setting": 1})
    assert response.status_code == 422
    assert response.json()["code"] == "validation_error"

    response = client.patch("/api/v1/agents/labeler/configuration", json={"confidence_threshold": "high"})
    assert response.status_code == 422
