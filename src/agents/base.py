"""
Base agent classes and utilities for agents.
"""

import asyncio
from abc import ABC, abstractmethod
from collections import deque
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from enum import Enum
from typing import Any, ClassVar

import structlog
from pydantic import BaseModel, Field

from src.core.config import AgentRuntimeConfig, config
from src.core.errors import TaskExecutionError, UnknownTaskTypeError
from src.core.models import AgentStatus, LogLevel
from src.core.utils.timeout import execute_with_timeout
from src.tasks.task_queue import Task, TaskQueue

logger = structlog.get_logger()

TaskHandler = Callable[[Any], Awaitable[Any]]


def require_field(data: Any, key: str, expected: type | tuple[type, ...]) -> Any:
    """
    Fetch a required payload field, failing the task if it is missing or mistyped.

    Raises:
        TaskExecutionError: If data is not a mapping or the field is absent or of the wrong type
    """
    if not isinstance(data, dict):
        raise TaskExecutionError(f"Task payload must be an object, got {type(data).__name__}")
    if key not in data or data[key] is None:
        raise TaskExecutionError(f"Missing required field: {key}")
    value = data[key]
    if not isinstance(value, expected):
        raise TaskExecutionError(f"Field {key} has invalid type {type(value).__name__}")
    return value


def extract_records(data: Any, keys: tuple[str, ...]) -> tuple[list[dict[str, Any]], list[str]]:
    """
    Pull a list of records out of a payload, accepting the output shape of the previous pipeline stage.

    The first key in `keys` holding a list wins. Rows given as lists of cells are
    zipped with `data["headers"]`. Returns the records and their headers.

    Raises:
        TaskExecutionError: If no key holds a list or the rows cannot be shaped into records
    """
    if not isinstance(data, dict):
        raise TaskExecutionError(f"Task payload must be an object, got {type(data).__name__}")

    rows = next((data[key] for key in keys if isinstance(data.get(key), list)), None)
    if rows is None:
        raise TaskExecutionError(f"Missing required field: {keys[0]}")

    headers = data.get("headers")
    if rows and all(isinstance(row, list) for row in rows):
        if not isinstance(headers, list):
            raise TaskExecutionError("Rows given as lists require headers")
        return [dict(zip(headers, row, strict=False)) for row in rows], list(headers)

    if not all(isinstance(row, dict) for row in rows):
        raise TaskExecutionError(f"Field {keys[0]} must be a list of objects")

    if not isinstance(headers, list):
        headers = []
        for row in rows:
            headers.extend(key for key in row if key not in headers)
    return [dict(row) for row in rows], list(headers)


class AgentMetrics(BaseModel):
    """Running counters for one agent."""

    tasks_processed: int = 0
    tasks_successful: int = 0
    tasks_failed: int = 0
    average_processing_time_ms: float = 0.0
    accuracy_percent: float = 0.0
    throughput: str = "0.0 ops/sec"


class LogEntry(BaseModel):
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    level: LogLevel
    message: str
    data: dict[str, Any] | None = None


class BaseAgent(ABC):
    """
    Base class for all agents.

    Each agent owns one FIFO task queue and drains it with a concurrency of one:
    tasks for an agent run strictly in submission order, while different agents
    drain independently on the same event loop.

    Features:
    - Per-task timeout enforcement
    - Running metrics (counts, average duration, success ratio, throughput)
    - Bounded in-memory log buffer (oldest entries dropped first)
    - Validated, shallow-merged runtime settings
    """

    agent_key: ClassVar[str]
    display_name: ClassVar[str]
    task_types: ClassVar[type[Enum]]
    settings_model: ClassVar[type[BaseModel]]
    capabilities: ClassVar[list[str]] = []

    def __init__(self, runtime: AgentRuntimeConfig | None = None, settings: BaseModel | None = None):
        self.runtime = runtime or config.agents
        self.name = self.display_name
        self.status = AgentStatus.IDLE
        self.current_task = "Ready"
        self.progress = 0
        self.queue = TaskQueue(self.agent_key, capacity=self.runtime.max_queue_size)
        self.metrics = AgentMetrics()
        self.logs: deque[LogEntry] = deque(maxlen=self.runtime.log_buffer_size)
        self.settings = settings or self.settings_model()
        self._drain_task: asyncio.Task | None = None
        logger.info("agent_initialized", agent=self.agent_key, max_queue_size=self.runtime.max_queue_size)

    @abstractmethod
    def _handlers(self) -> dict[Enum, TaskHandler]:
        """Map every supported task type to the coroutine that handles its payload."""

    async def process_task(self, task: Task) -> Any:
        """Dispatch a task to the handler registered for its type."""
        try:
            task_type = self.task_types(task.type)
        except ValueError as err:
            raise UnknownTaskTypeError(self.agent_key, task.type) from err

        handler = self._handlers().get(task_type)
        if handler is None:
            raise UnknownTaskTypeError(self.agent_key, task.type)
        return await handler(task.data if task.data is not None else {})

    async def add_task(self, task: Task) -> None:
        """Append a task to the queue and start draining if the agent is idle."""
        task.agent = self.agent_key
        self.queue.put(task)
        self.log(LogLevel.INFO, f"Task {task.id} added to queue", task_type=task.type)
        self._ensure_draining()

    async def run_task(
        self,
        task_type: str,
        data: Any,
        task_id: str,
        priority: int = 1,
        timeout: float | None = None,
    ) -> Any:
        """
        Enqueue a task and wait for its outcome.

        Returns the task result, or raises TaskExecutionError with the task's
        error message when the task fails.
        """
        task = Task(id=task_id, type=task_type, data=data, priority=priority, timeout_seconds=timeout)
        await self.add_task(task)
        await task.wait()
        if task.error is not None:
            raise TaskExecutionError(task.error, {"agent": self.agent_key, "task_id": task.id})
        return task.result

    async def join(self) -> None:
        """Wait until the queue has drained and the agent is idle again."""
        while self._drain_task is not None and not self._drain_task.done():
            await asyncio.shield(self._drain_task)

    def _ensure_draining(self) -> None:
        if self._drain_task is None or self._drain_task.done():
            self._drain_task = asyncio.create_task(self._drain(), name=f"{self.agent_key}-drain")

    async def _drain(self) -> None:
        """Run queued tasks one at a time until the queue is empty."""
        while True:
            task = self.queue.pop()
            if task is None:
                self.status = AgentStatus.IDLE
                self.current_task = "Ready"
                self.progress = 0
                return

            succeeded = await self._execute(task)
            if succeeded:
                await asyncio.sleep(self.runtime.inter_task_pause_seconds)
            else:
                await asyncio.sleep(self.runtime.recovery_pause_seconds)
                self.status = AgentStatus.IDLE

    async def _execute(self, task: Task) -> bool:
        self.status = AgentStatus.PROCESSING
        self.current_task = f"Processing {task.type}"
        self.progress = 25
        task.mark_processing()
        self.log(LogLevel.INFO, f"Starting task {task.id}", task_type=task.type)

        timeout = task.timeout_seconds or self.runtime.task_timeout_seconds
        try:
            result = await execute_with_timeout(self.process_task(task), timeout=timeout, task_id=task.id)
        except asyncio.CancelledError:
            task.mark_failed("Task cancelled")
            self._record_outcome(task, succeeded=False)
            raise
        except Exception as e:
            task.mark_failed(str(e) or type(e).__name__)
            self._record_outcome(task, succeeded=False)
            self.log(LogLevel.ERROR, f"Task {task.id} failed", error=task.error)
            self.status = AgentStatus.ERROR
            self.current_task = f"Failed {task.type}"
            self.progress = 0
            return False

        task.mark_completed(result if result is not None else {})
        self._record_outcome(task, succeeded=True)
        self.log(LogLevel.INFO, f"Task {task.id} completed successfully", duration_ms=round(task.duration_ms, 2))
        self.progress = 100
        return True

    def _record_outcome(self, task: Task, succeeded: bool) -> None:
        metrics = self.metrics
        metrics.tasks_processed += 1
        if succeeded:
            metrics.tasks_successful += 1
        else:
            metrics.tasks_failed += 1

        n = metrics.tasks_processed
        metrics.average_processing_time_ms = (metrics.average_processing_time_ms * (n - 1) + task.duration_ms) / n
        metrics.accuracy_percent = metrics.tasks_successful / n * 100

        ops_per_sec = 1000 / metrics.average_processing_time_ms if metrics.average_processing_time_ms > 0 else 0.0
        metrics.throughput = f"{ops_per_sec:.1f} ops/sec"

    def log(self, level: LogLevel, message: str, **data: Any) -> None:
        """Append to the agent's log buffer and forward to the process logger."""
        self.logs.append(LogEntry(level=level, message=message, data=data or None))
        getattr(logger, level.value)(message, agent=self.agent_key, **data)

    def set_progress(self, progress: int, description: str | None = None) -> None:
        self.progress = max(0, min(100, int(progress)))
        if description:
            self.current_task = description

    def get_status(self) -> dict[str, Any]:
        return {
            "id": self.agent_key,
            "name": self.name,
            "status": self.status.value,
            "task": self.current_task,
            "progress": self.progress,
            "queue_length": len(self.queue),
            "metrics": self.metrics.model_dump(),
        }

    def get_logs(self, limit: int = 100) -> list[dict[str, Any]]:
        """Most recent log entries, newest first."""
        if limit <= 0:
            return []
        entries = list(self.logs)[-limit:]
        return [entry.model_dump(exclude_none=True) for entry in reversed(entries)]

    def get_settings(self) -> dict[str, Any]:
        return self.settings.model_dump()

    def get_capabilities(self) -> list[str]:
        return list(self.capabilities)

    def get_configuration(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "settings": self.get_settings(),
            "capabilities": self.get_capabilities(),
        }

    async def update_configuration(self, partial: dict[str, Any]) -> None:
        """
        Shallow-merge new values into the current settings.

        Raises:
            pydantic.ValidationError: If a key is unknown or a value has the wrong type
        """
        merged = {**self.settings.model_dump(), **partial}
        self.settings = self.settings_model.model_validate(merged)
        self.log(LogLevel.INFO, "Configuration updated", **partial)

    async def shutdown(self) -> None:
        """Stop the drain loop; queued tasks stay pending."""
        if self._drain_task and not self._drain_task.done():
            self._drain_task.cancel()
            try:
                await self._drain_task
            except asyncio.CancelledError:
                pass
        self._drain_task = None
