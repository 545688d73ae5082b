"""In-memory state models for scrape tasks, scheduled jobs, and stored records."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DispatchMode(str, Enum):
    """How a fetch is submitted to the provider."""

    SYNC = "sync"
    ASYNC = "async"
    BATCH = "batch"


class TaskStatus(str, Enum):
    """Status of a single provider request."""

    SUBMITTED = "submitted"
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class JobRecordStatus(str, Enum):
    """Status of a persisted job record."""

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    NEEDS_RECONCILIATION = "needs_reconciliation"


class Frequency(str, Enum):
    """Recurrence of a scheduled job."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


@dataclass
class ScrapeTask:
    """One request to the provider. Created on dispatch, never reused."""

    id: str  # UUID
    mode: DispatchMode
    platform: str
    targets: list[str]
    content_type: str = "page"
    project_id: str | None = None
    correlation_id: str | None = None  # provider task/batch id (async, batch)
    job_record_id: str | None = None
    status: TaskStatus = TaskStatus.SUBMITTED
    result: Any = None
    error: str | None = None
    created_at: datetime = field(default_factory=utcnow)
    completed_at: datetime | None = None

    def mark_completed(self, result: Any = None) -> None:
        self.status = TaskStatus.COMPLETED
        self.result = result
        self.completed_at = utcnow()

    def mark_failed(self, error: str) -> None:
        self.status = TaskStatus.FAILED
        self.error = error
        self.completed_at = utcnow()


@dataclass
class ScheduledJob:
    """Persisted recurring fetch definition.

    ``day_of_week`` (0 = Sunday) is meaningful only for weekly jobs,
    ``day_of_month`` only for monthly jobs.
    """

    id: str  # UUID
    platform: str
    url: str
    content_type: str
    frequency: Frequency
    time_of_day: str  # HH:MM
    next_run_at: datetime
    day_of_week: int | None = None
    day_of_month: int | None = None
    project_id: str | None = None
    params: dict = field(default_factory=dict)
    active: bool = True
    last_run_at: datetime | None = None
    last_error: str | None = None
    last_error_at: datetime | None = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @property
    def hour_minute(self) -> tuple[int, int]:
        hour, minute = self.time_of_day.split(":")
        return int(hour), int(minute)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "platform": self.platform,
            "url": self.url,
            "content_type": self.content_type,
            "frequency": self.frequency.value,
            "day_of_week": self.day_of_week,
            "day_of_month": self.day_of_month,
            "time_of_day": self.time_of_day,
            "params": self.params,
            "active": self.active,
            "last_run_at": self.last_run_at.isoformat() if self.last_run_at else None,
            "next_run_at": self.next_run_at.isoformat(),
            "last_error": self.last_error,
            "last_error_at": self.last_error_at.isoformat() if self.last_error_at else None,
        }


@dataclass
class JobRecord:
    """Stored job row: one fetch (or batch) and its parameters."""

    id: str
    platform: str
    content_type: str
    status: JobRecordStatus
    params: dict = field(default_factory=dict)
    project_id: str | None = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)


@dataclass
class ResultRecord:
    """Stored result row referencing a job record."""

    id: str
    job_id: str
    platform: str
    content_type: str
    raw_data: Any
    processed_data: Any = None
    sentiment: Any = None
    created_at: datetime = field(default_factory=utcnow)
