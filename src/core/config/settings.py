"""
Main configuration class that composes all configs.
"""

import json
import os

from dotenv import load_dotenv

from src.core.config.agent_config import AgentRuntimeConfig
from src.core.config.cache_config import CacheConfig
from src.core.config.cors_config import CORSConfig
from src.core.config.logging_config import LoggingConfig
from src.core.config.supervisor_config import SupervisorConfig

# Load environment variables from a .env file
load_dotenv()

DEFAULT_CORS_ORIGINS = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
    "http://localhost:5173",
]


class Config:
    """Main configuration class."""

    def __init__(self) -> None:
        self.agents = AgentRuntimeConfig(
            inter_task_pause_seconds=float(os.getenv("AGENT_INTER_TASK_PAUSE", "1.0")),
            recovery_pause_seconds=float(os.getenv("AGENT_RECOVERY_PAUSE", "5.0")),
            max_queue_size=int(os.getenv("AGENT_MAX_QUEUE_SIZE", "1000")),
            task_timeout_seconds=float(os.getenv("AGENT_TASK_TIMEOUT", "1800")),
            log_buffer_size=int(os.getenv("AGENT_LOG_BUFFER_SIZE", "1000")),
        )

        self.supervisor = SupervisorConfig(
            health_check_interval_seconds=float(os.getenv("SUPERVISOR_HEALTH_CHECK_INTERVAL", "60")),
            workflows_file=os.getenv("SUPERVISOR_WORKFLOWS_FILE") or None,
        )

        self.cache = CacheConfig(
            task_index_maxsize=int(os.getenv("TASK_INDEX_MAXSIZE", "10000")),
            task_index_ttl=int(os.getenv("TASK_INDEX_TTL", "3600")),
            execution_history_maxsize=int(os.getenv("EXECUTION_HISTORY_MAXSIZE", "500")),
        )

        # CORS configuration
        cors_headers = os.getenv("CORS_HEADERS", '["*"]')
        cors_methods = os.getenv("CORS_METHODS", '["GET", "POST", "PATCH", "OPTIONS"]')
        cors_origins = os.getenv("CORS_ORIGINS", json.dumps(DEFAULT_CORS_ORIGINS))

        try:
            self.cors = CORSConfig(
                origins=json.loads(cors_origins),
                headers=json.loads(cors_headers),
                methods=json.loads(cors_methods),
                allow_credentials=os.getenv("CORS_ALLOW_CREDENTIALS", "true").lower() == "true",
            )
        except json.JSONDecodeError:
            # Fallback to default values if JSON parsing fails
            self.cors = CORSConfig(origins=list(DEFAULT_CORS_ORIGINS))

        self.logging = LoggingConfig(
            level=os.getenv("LOG_LEVEL", "INFO"),
            format=os.getenv("LOG_FORMAT", "%(asctime)s %(levelname)8s %(message)s"),
            file_path=os.getenv("LOG_FILE_PATH"),
        )

        # Development settings
        self.debug = os.getenv("DEBUG", "false").lower() == "true"
        self.environment = os.getenv("ENVIRONMENT", "development")

    def validate(self) -> bool:
        """Validate configuration."""
        errors = []

        if self.agents.inter_task_pause_seconds < 0:
            errors.append("AGENT_INTER_TASK_PAUSE must not be negative")

        if self.agents.recovery_pause_seconds < 0:
            errors.append("AGENT_RECOVERY_PAUSE must not be negative")

        if self.agents.max_queue_size < 0:
            errors.append("AGENT_MAX_QUEUE_SIZE must be 0 (unbounded) or positive")

        if self.agents.task_timeout_seconds <= 0:
            errors.append("AGENT_TASK_TIMEOUT must be positive")

        if self.agents.log_buffer_size <= 0:
            errors.append("AGENT_LOG_BUFFER_SIZE must be positive")

        if self.supervisor.health_check_interval_seconds <= 0:
            errors.append("SUPERVISOR_HEALTH_CHECK_INTERVAL must be positive")

        if self.supervisor.workflows_file and not os.path.exists(self.supervisor.workflows_file):
            errors.append(f"SUPERVISOR_WORKFLOWS_FILE not found: {self.supervisor.workflows_file}")

        if errors:
            raise ValueError(f"Configuration errors: {', '.join(errors)}")

        return True


# Global config instance
config = Config()
