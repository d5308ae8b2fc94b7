"""
Agent runtime configuration.

Controls the drain loop of every agent: pauses between tasks, queue capacity,
per-task timeout and the size of the in-memory log buffer.
"""

from dataclasses import dataclass


@dataclass
class AgentRuntimeConfig:
    """Agent runtime configuration."""

    inter_task_pause_seconds: float = 1.0
    recovery_pause_seconds: float = 5.0
    max_queue_size: int = 1000  # 0 disables the bound
    task_timeout_seconds: float = 1800.0
    log_buffer_size: int = 1000
