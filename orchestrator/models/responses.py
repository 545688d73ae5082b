"""API response envelope and result models returned by the services.

All API responses are wrapped in the envelope for consistency:
{ success: bool, data: T | None, error: str | None, meta: dict | None }
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Generic, Literal, TypeVar

from pydantic import BaseModel

from orchestrator.models.state import DispatchMode, TaskStatus

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """JSON envelope for all API responses."""

    success: bool
    data: T | None = None
    error: str | None = None
    meta: dict | None = None


class TaskHandle(BaseModel):
    """What ``dispatch`` hands back to the caller.

    Sync handles carry the payload; async and batch handles carry the
    provider correlation id to poll with.
    """

    task_id: str
    mode: DispatchMode
    status: TaskStatus
    platform: str
    correlation_id: str | None = None
    job_record_id: str | None = None
    data: Any = None


class TaskResult(BaseModel):
    """Terminal state of an async task after polling."""

    correlation_id: str
    status: TaskStatus
    data: Any = None
    error: str | None = None
    job_record_id: str | None = None


class BatchItemOutcome(BaseModel):
    """Per-target outcome inside a finished batch."""

    url: str | None = None
    status: TaskStatus
    job_record_id: str | None = None
    error: str | None = None


class BatchResult(BaseModel):
    """Terminal state of a batch after polling."""

    batch_id: str
    status: TaskStatus
    items: list[BatchItemOutcome] = []
    persisted: int = 0
    job_record_id: str | None = None


class TickOutcome(BaseModel):
    """Result of running one due scheduled job during a tick."""

    job_id: str
    status: Literal["success", "error"]
    message: str | None = None
    next_run_at: datetime | None = None
    job_record_id: str | None = None
