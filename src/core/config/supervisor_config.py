"""
Supervisor configuration.
"""

from dataclasses import dataclass, field

from src.core.models import MONITORED_AGENTS


@dataclass
class SupervisorConfig:
    """Supervisor configuration."""

    health_check_interval_seconds: float = 60.0
    workflows_file: str | None = None
    monitored_agents: list[str] = field(default_factory=lambda: list(MONITORED_AGENTS))
