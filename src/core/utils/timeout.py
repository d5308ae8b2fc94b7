"""
Timeout utilities for async operations.

Provides the timeout race used around every task handler.
"""

import asyncio
import logging
from collections.abc import Coroutine
from typing import Any

from src.core.errors import TaskTimeoutError

logger = logging.getLogger(__name__)


async def execute_with_timeout(
    coro: Coroutine[Any, Any, Any],
    timeout: float,
    task_id: str,
) -> Any:
    """
    Execute a coroutine, failing with TaskTimeoutError if it runs too long.

    Args:
        coro: The coroutine to execute
        timeout: Timeout in seconds
        task_id: Identifier reported in the timeout error

    Returns:
        The result of the coroutine

    Raises:
        TaskTimeoutError: If the operation times out

    Example:
        result = await execute_with_timeout(agent.process_task(task), timeout=60.0, task_id=task.id)
    """
    try:
        return await asyncio.wait_for(coro, timeout=timeout)
    except TimeoutError as err:
        logger.error(f"❌ Task {task_id} timed out after {timeout} seconds")
        raise TaskTimeoutError(task_id, timeout) from err
