import asyncio
from collections import deque
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, PrivateAttr

from src.core.errors import QueueFullError


class TaskStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class Task(BaseModel):
    """
    A unit of work owned by exactly one agent queue.

    Status moves pending -> processing -> completed|failed and never back;
    the transitions are made only by the owning agent's drain loop.
    """

    id: str
    type: str
    data: Any = None
    priority: int = 1  # recorded only, ordering is FIFO
    agent: str | None = None
    timeout_seconds: float | None = None
    status: TaskStatus = TaskStatus.PENDING
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    started_at: datetime | None = None
    completed_at: datetime | None = None
    result: Any = None
    error: str | None = None

    _finished: asyncio.Event = PrivateAttr(default_factory=asyncio.Event)

    @property
    def is_terminal(self) -> bool:
        return self.status in (TaskStatus.COMPLETED, TaskStatus.FAILED)

    @property
    def duration_ms(self) -> float:
        if self.started_at is None or self.completed_at is None:
            return 0.0
        return (self.completed_at - self.started_at).total_seconds() * 1000

    def mark_processing(self) -> None:
        self.status = TaskStatus.PROCESSING
        self.started_at = datetime.now(UTC)

    def mark_completed(self, result: Any) -> None:
        self.status = TaskStatus.COMPLETED
        self.completed_at = datetime.now(UTC)
        self.result = result
        self.error = None
        self._finished.set()

    def mark_failed(self, error: str) -> None:
        self.status = TaskStatus.FAILED
        self.completed_at = datetime.now(UTC)
        self.error = error
        self.result = None
        self._finished.set()

    async def wait(self, timeout: float | None = None) -> "Task":
        """Block until the owning agent has moved the task to a terminal state."""
        await asyncio.wait_for(self._finished.wait(), timeout=timeout)
        return self


class TaskQueue:
    """
    Per-agent FIFO queue with an optional capacity bound.

    When full, new tasks are rejected with QueueFullError rather than
    blocking the caller.
    """

    def __init__(self, owner: str, capacity: int = 0):
        self.owner = owner
        self.capacity = capacity
        self._tasks: deque[Task] = deque()

    def __len__(self) -> int:
        return len(self._tasks)

    @property
    def is_full(self) -> bool:
        return self.capacity > 0 and len(self._tasks) >= self.capacity

    def put(self, task: Task) -> None:
        """Append a task at the tail of the queue."""
        if self.is_full:
            raise QueueFullError(self.owner, self.capacity)
        self._tasks.append(task)

    def pop(self) -> Task | None:
        """Remove and return the head task, or None when the queue is empty."""
        if not self._tasks:
            return None
        return self._tasks.popleft()

    def pending(self) -> list[dict[str, Any]]:
        """Summaries of the queued tasks in execution order."""
        return [
            {"id": task.id, "type": task.type, "priority": task.priority, "created_at": task.created_at}
            for task in self._tasks
        ]
