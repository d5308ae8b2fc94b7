from fastapi.testclient import TestClient

RECORDS = [
    {"id": 1, "date": "2024-01-05", "amount": 3000, "description": "Monthly salary", "category": "Income"},
    {"id": 2, "date": "2024-01-06", "amount": -80, "description": "Grocery store", "category": "Food"},
    {"id": 3, "date": "2024-01-07", "amount": -12, "description": "Coffee shop", "category": "Food"},
]


def test_list_workflows(client: TestClient):
    workflows = client.get("/api/v1/supervisor/workflows").json()
    assert [w["name"] for w in workflows] == ["data_processing", "quality_assurance"]


def test_register_workflow(client: TestClient):
    response = client.post("/api/v1/supervisor/workflows", json={"name": "ingest", "steps": ["parser", "cleaner"]})
    assert response.status_code == 201
    assert [s["agent"] for s in response.json()["steps"]] == ["parser", "cleaner"]


def test_register_invalid_workflow(client: TestClient):
    response = client.post("/api/v1/supervisor/workflows", json={"name": "loop", "steps": ["supervisor"]})
    assert response.status_code == 422
    assert response.json()["code"] == "invalid_workflow"


def test_run_workflow_and_fetch_execution(client: TestClient):
    response = client.post(
        "/api/v1/supervisor/workflows/quality_assurance/run", json={"input_data": {"records": RECORDS}}
    )
    assert response.status_code == 200
    execution = response.json()
    assert execution["status"] == "completed"
    assert set(execution["results"]) == {"reviewer", "trainer"}

    fetched = client.get(f"/api/v1/supervisor/executions/{execution['id']}").json()
    assert fetched["id"] == execution["id"]

    listed = client.get("/api/v1/supervisor/executions").json()
    assert [e["id"] for e in listed] == [execution["id"]]


def test_failed_workflow_returns_execution(client: TestClient):
    response = client.post("/api/v1/supervisor/workflows/data_processing/run", json={"input_data": {}})
    assert response.status_code == 200
    assert response.json()["status"] == "failed"
    assert response.json()["results"] == {}


def test_unknown_workflow_returns_404(client: TestClient):
    response = client.post("/api/v1/supervisor/workflows/missing/run", json={})
    assert response.status_code == 404
    assert response.json()["code"] == "workflow_not_found"


def test_unknown_execution_returns_404(client: TestClient):
    assert client.get("/api/v1/supervisor/executions/workflow_404").status_code == 404


def test_health_and_reset(client: TestClient):
    report = client.get("/api/v1/supervisor/health", params={"agents": ["parser", "cleaner"]}).json()
    assert report["overall_health"] == "healthy"
    assert [a["name"] for a in report["agents"]] == ["parser", "cleaner"]

    reset = client.post("/api/v1/supervisor/health/parser/reset")
    assert reset.status_code == 200
    assert reset.json()["status"] == "healthy"

    assert client.post("/api/v1/supervisor/health/ghost/reset").status_code == 404


def test_handle_failures(client: TestClient):
    response = client.post(
        "/api/v1/supervisor/failures",
        json={"failed_tasks": [{"id": "task_1", "retry_count": 0}], "retry_strategy": "exponential"},
    )
    assert response.json()["retried_tasks"] == [
        {"task_id": "task_1", "retry_count": 1, "retry_strategy": "exponential"}
    ]


def test_handle_failures_rejects_bad_retry_count(client: TestClient):
    response = client.post("/api/v1/supervisor/failures", json={"failed_tasks": [{"id": "t1", "retry_count": "two"}]})
    assert response.status_code == 422

    response = client.post("/api/v1/supervisor/failures", json={"failed_tasks": [{"id": "t1", "retry_count": -1}]})
    assert response.status_code == 422

    response = client.post("/api/v1/supervisor/failures", json={"failed_tasks": [{"retry_count": 0}]})
    assert response.status_code == 422


def test_load_balance(client: TestClient):
    response = client.post("/api/v1/supervisor/load-balance", json={"tasks": [1, 2, 3], "target_agents": ["cleaner"]})
    assert response.json()["agent_assignments"] == {"cleaner": [1, 2, 3]}

    assert client.post("/api/v1/supervisor/load-balance", json={"tasks": [1], "target_agents": []}).status_code == 422


def test_reports(client: TestClient):
    report = client.get("/api/v1/supervisor/reports/health").json()
    assert report["summary"]["healthy_agents"] == 5

    response = client.get("/api/v1/supervisor/reports/weekly")
    assert response.status_code == 422
    assert response.json()["code"] == "task_execution_error"
