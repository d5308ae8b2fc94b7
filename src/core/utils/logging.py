"""
Structured logging helpers for long-running agent operations.
"""

import asyncio
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import structlog
from structlog.typing import FilteringBoundLogger

logger = structlog.get_logger()


@asynccontextmanager
async def log_operation(
    operation: str,
    subject_ids: dict[str, str] | None = None,
    **context: Any,
) -> AsyncIterator[FilteringBoundLogger]:
    """
    Log the start, outcome and latency of an operation.

    Emits `<operation>_started`, then one of `_completed`, `_cancelled` or
    `_failed`. The bound logger is yielded so the body can add events that
    carry the same identifiers.

    Example:
        async with log_operation("workflow_orchestration", {"execution_id": eid}, workflow=name) as log:
            log.debug("step_dispatched", agent="parser")
    """
    bound = logger.bind(operation=operation, **(subject_ids or {}), **context)
    started = time.monotonic()
    bound.info(f"{operation}_started")

    def elapsed_ms() -> int:
        return int((time.monotonic() - started) * 1000)

    try:
        yield bound
    except asyncio.CancelledError:
        bound.warning(f"{operation}_cancelled", latency_ms=elapsed_ms())
        raise
    except Exception as e:
        bound.error(f"{operation}_failed", error=str(e), latency_ms=elapsed_ms())
        raise
    else:
        bound.info(f"{operation}_completed", latency_ms=elapsed_ms())
