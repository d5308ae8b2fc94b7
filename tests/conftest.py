"""
Pytest configuration: project root on sys.path and shared agent fixtures.
"""

import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parent.parent

if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from src.agents.factory import create_agent_manager  # noqa: E402
from src.agents.manager import AgentManager  # noqa: E402
from src.core.config import AgentRuntimeConfig, CacheConfig, Config, SupervisorConfig  # noqa: E402


@pytest.fixture
def runtime() -> AgentRuntimeConfig:
    """Runtime config without pauses so drain loops finish immediately."""
    return AgentRuntimeConfig(
        inter_task_pause_seconds=0,
        recovery_pause_seconds=0,
        max_queue_size=100,
        task_timeout_seconds=5,
        log_buffer_size=1000,
    )


@pytest.fixture
def cache_config() -> CacheConfig:
    return CacheConfig(task_index_maxsize=100, task_index_ttl=60, execution_history_maxsize=10)


@pytest.fixture
def supervisor_config() -> SupervisorConfig:
    return SupervisorConfig(health_check_interval_seconds=60)


@pytest.fixture
def settings(runtime: AgentRuntimeConfig, cache_config: CacheConfig, supervisor_config: SupervisorConfig) -> Config:
    """Process config with the test runtime, cache and supervisor sections swapped in."""
    settings = Config()
    settings.agents = runtime
    settings.cache = cache_config
    settings.supervisor = supervisor_config
    return settings


@pytest.fixture
def manager(settings: Config) -> AgentManager:
    return create_agent_manager(settings)
