"""
Cache configuration.

Sizes and lifetimes of the in-memory indexes kept by the agent manager
and the supervisor.
"""

from dataclasses import dataclass


@dataclass
class CacheConfig:
    """Cache configuration."""

    task_index_maxsize: int = 10000
    task_index_ttl: int = 3600  # 1 hour in seconds
    execution_history_maxsize: int = 500
