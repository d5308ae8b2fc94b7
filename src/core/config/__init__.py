"""
Configuration package - unified access point.

This package provides all configuration classes and the global config instance.
"""

from src.core.config.agent_config import AgentRuntimeConfig
from src.core.config.cache_config import CacheConfig
from src.core.config.settings import Config, config
from src.core.config.supervisor_config import SupervisorConfig

__all__ = [
    "AgentRuntimeConfig",
    "CacheConfig",
    "Config",
    "SupervisorConfig",
    "config",
]
