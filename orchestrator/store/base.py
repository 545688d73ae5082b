"""Persistence interface consumed by the dispatcher and the scheduler.

The relational store is an external collaborator; this module only fixes
the operations the orchestration core needs from it. Writes of a job record
and its result record are two separate calls: a store is not expected to make
them atomic (see ``TaskDispatcher.reconcile``).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any

from orchestrator.models.state import (
    JobRecord,
    JobRecordStatus,
    ResultRecord,
    ScheduledJob,
)


class ResultStore(ABC):
    """Async persistence operations for job, result, and scheduled-job records."""

    # -- job records -----------------------------------------------------

    @abstractmethod
    async def create_job_record(
        self,
        *,
        platform: str,
        content_type: str,
        status: JobRecordStatus,
        params: dict,
        project_id: str | None = None,
    ) -> JobRecord: ...

    @abstractmethod
    async def update_job_record(
        self, job_id: str, *, status: JobRecordStatus
    ) -> JobRecord: ...

    @abstractmethod
    async def get_job_record(self, job_id: str) -> JobRecord | None: ...

    @abstractmethod
    async def find_job_record_by_correlation(
        self, key: str, correlation_id: str
    ) -> JobRecord | None:
        """Find the job record whose ``params[key]`` equals *correlation_id*."""

    @abstractmethod
    async def find_unreconciled_job_records(self, created_before: datetime) -> list[JobRecord]:
        """Completed job records older than *created_before* with no result record."""

    # -- result records --------------------------------------------------

    @abstractmethod
    async def create_result_record(
        self,
        *,
        job_id: str,
        platform: str,
        content_type: str,
        raw_data: Any,
        processed_data: Any = None,
        sentiment: Any = None,
    ) -> ResultRecord: ...

    @abstractmethod
    async def list_results_for_job(self, job_id: str) -> list[ResultRecord]: ...

    # -- scheduled jobs --------------------------------------------------

    @abstractmethod
    async def save_scheduled_job(self, job: ScheduledJob) -> ScheduledJob:
        """Insert or replace a scheduled job definition."""

    @abstractmethod
    async def get_scheduled_job(self, job_id: str) -> ScheduledJob | None: ...

    @abstractmethod
    async def list_scheduled_jobs(self) -> list[ScheduledJob]: ...

    @abstractmethod
    async def list_due_scheduled_jobs(self, now: datetime) -> list[ScheduledJob]:
        """Active jobs with ``next_run_at <= now``, earliest first, ties by id."""

    @abstractmethod
    async def record_scheduled_run(
        self,
        job_id: str,
        *,
        last_run_at: datetime,
        next_run_at: datetime,
        last_error: str | None,
        last_error_at: datetime | None,
    ) -> ScheduledJob | None:
        """Write run timing onto the stored job, leaving its definition and
        ``active`` flag as they are. Returns None if the job no longer exists."""

    @abstractmethod
    async def delete_scheduled_job(self, job_id: str) -> bool: ...
