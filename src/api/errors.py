"""Structured error response models for consistent API error handling."""

from typing import Any

import structlog
from fastapi import Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError

from src.core.errors import (
    AgentNotFoundError,
    AgentSystemError,
    AgentUnhealthyError,
    InvalidWorkflowError,
    QueueFullError,
    TaskExecutionError,
    TaskTimeoutError,
    UnknownTaskTypeError,
    WorkflowNotFoundError,
)

logger = structlog.get_logger()

STATUS_CODES: dict[type[AgentSystemError], int] = {
    AgentNotFoundError: status.HTTP_404_NOT_FOUND,
    WorkflowNotFoundError: status.HTTP_404_NOT_FOUND,
    QueueFullError: status.HTTP_429_TOO_MANY_REQUESTS,
    InvalidWorkflowError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    UnknownTaskTypeError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    TaskExecutionError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    AgentUnhealthyError: status.HTTP_503_SERVICE_UNAVAILABLE,
    TaskTimeoutError: status.HTTP_504_GATEWAY_TIMEOUT,
}

# Seconds a client should wait before resubmitting to a full queue.
QUEUE_FULL_RETRY_AFTER = 5


class ErrorResponse(BaseModel):
    """Standardized error response schema."""

    error: bool = True
    code: str
    message: str
    retry_after: int | None = None
    details: dict[str, Any] | None = None


def create_error_response(
    code: str, message: str, retry_after: int | None = None, details: dict[str, Any] | None = None
) -> ErrorResponse:
    """Create standardized error response."""
    return ErrorResponse(code=code, message=message, retry_after=retry_after, details=details)


async def agent_error_handler(request: Request, exc: AgentSystemError) -> JSONResponse:
    status_code = next(
        (code for error_type, code in STATUS_CODES.items() if isinstance(exc, error_type)),
        status.HTTP_500_INTERNAL_SERVER_ERROR,
    )
    retry_after = QUEUE_FULL_RETRY_AFTER if isinstance(exc, QueueFullError) else None
    logger.warning("request_failed", path=request.url.path, code=exc.code, status_code=status_code)

    body = create_error_response(exc.code, exc.message, retry_after, exc.details or None)
    headers = {"Retry-After": str(retry_after)} if retry_after else None
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True), headers=headers)


async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
    """Settings updates that fail pydantic validation."""
    body = create_error_response(
        "validation_error",
        "Invalid configuration",
        details={"errors": exc.errors(include_url=False, include_context=False)},
    )
    return JSONResponse(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, content=body.model_dump(exclude_none=True))
