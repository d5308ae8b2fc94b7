import pytest
from fastapi.testclient import TestClient

from src.agents.manager import AgentManager
from src.api.dependencies import get_agent_manager
from src.main import app


@pytest.fixture
def client(manager: AgentManager):
    """Client whose routes use a fresh pause-free manager; the lifespan still runs."""
    app.dependency_overrides[get_agent_manager] = lambda: manager
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
