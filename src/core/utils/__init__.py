"""
Shared utilities for logging and timeout handling.
"""

from src.core.utils.logging import log_operation
from src.core.utils.timeout import execute_with_timeout

__all__ = [
    "log_operation",
    "execute_with_timeout",
]
