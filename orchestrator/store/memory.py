"""In-memory ResultStore.

All state is held in process memory and lost on restart; a deployment backed
by a relational database provides its own ``ResultStore``. Used by default
and throughout the test suite.
"""

from __future__ import annotations

import asyncio
import copy
import logging
from datetime import datetime
from typing import Any
from uuid import uuid4

from orchestrator.models.state import (
    JobRecord,
    JobRecordStatus,
    ResultRecord,
    ScheduledJob,
    utcnow,
)
from orchestrator.store.base import ResultStore

logger = logging.getLogger(__name__)


class InMemoryResultStore(ResultStore):
    """Dict-backed store guarded by an asyncio lock."""

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._job_records: dict[str, JobRecord] = {}
        self._results: dict[str, ResultRecord] = {}
        self._scheduled: dict[str, ScheduledJob] = {}

    # -- job records -----------------------------------------------------

    async def create_job_record(
        self,
        *,
        platform: str,
        content_type: str,
        status: JobRecordStatus,
        params: dict,
        project_id: str | None = None,
    ) -> JobRecord:
        async with self._lock:
            record = JobRecord(
                id=str(uuid4()),
                platform=platform,
                content_type=content_type,
                status=status,
                params=dict(params),
                project_id=project_id,
            )
            self._job_records[record.id] = record
            return record

    async def update_job_record(self, job_id: str, *, status: JobRecordStatus) -> JobRecord:
        async with self._lock:
            record = self._job_records.get(job_id)
            if record is None:
                raise KeyError(f"Job record not found: {job_id}")
            record.status = status
            record.updated_at = utcnow()
            return record

    async def get_job_record(self, job_id: str) -> JobRecord | None:
        return self._job_records.get(job_id)

    async def find_job_record_by_correlation(
        self, key: str, correlation_id: str
    ) -> JobRecord | None:
        for record in self._job_records.values():
            if record.params.get(key) == correlation_id:
                return record
        return None

    async def find_unreconciled_job_records(self, created_before: datetime) -> list[JobRecord]:
        with_results = {result.job_id for result in self._results.values()}
        return [
            record
            for record in self._job_records.values()
            if record.status is JobRecordStatus.COMPLETED
            and record.created_at <= created_before
            and record.id not in with_results
        ]

    def all_job_records(self) -> list[JobRecord]:
        return list(self._job_records.values())

    # -- result records --------------------------------------------------

    async def create_result_record(
        self,
        *,
        job_id: str,
        platform: str,
        content_type: str,
        raw_data: Any,
        processed_data: Any = None,
        sentiment: Any = None,
    ) -> ResultRecord:
        async with self._lock:
            if job_id not in self._job_records:
                raise KeyError(f"Job record not found: {job_id}")
            record = ResultRecord(
                id=str(uuid4()),
                job_id=job_id,
                platform=platform,
                content_type=content_type,
                raw_data=raw_data,
                processed_data=processed_data,
                sentiment=sentiment,
            )
            self._results[record.id] = record
            return record

    async def list_results_for_job(self, job_id: str) -> list[ResultRecord]:
        return [result for result in self._results.values() if result.job_id == job_id]

    # -- scheduled jobs --------------------------------------------------

    async def save_scheduled_job(self, job: ScheduledJob) -> ScheduledJob:
        async with self._lock:
            job.updated_at = utcnow()
            # Stored copy is detached from the caller's instance
            self._scheduled[job.id] = copy.deepcopy(job)
            return job

    async def get_scheduled_job(self, job_id: str) -> ScheduledJob | None:
        job = self._scheduled.get(job_id)
        return copy.deepcopy(job) if job is not None else None

    async def list_scheduled_jobs(self) -> list[ScheduledJob]:
        jobs = sorted(self._scheduled.values(), key=lambda job: job.created_at)
        return [copy.deepcopy(job) for job in jobs]

    async def list_due_scheduled_jobs(self, now: datetime) -> list[ScheduledJob]:
        due = [
            job
            for job in self._scheduled.values()
            if job.active and job.next_run_at <= now
        ]
        due.sort(key=lambda job: (job.next_run_at, job.id))
        return [copy.deepcopy(job) for job in due]

    async def record_scheduled_run(
        self,
        job_id: str,
        *,
        last_run_at: datetime,
        next_run_at: datetime,
        last_error: str | None,
        last_error_at: datetime | None,
    ) -> ScheduledJob | None:
        async with self._lock:
            job = self._scheduled.get(job_id)
            if job is None:
                return None
            job.last_run_at = last_run_at
            job.next_run_at = next_run_at
            job.last_error = last_error
            job.last_error_at = last_error_at
            job.updated_at = utcnow()
            return copy.deepcopy(job)

    async def delete_scheduled_job(self, job_id: str) -> bool:
        async with self._lock:
            return self._scheduled.pop(job_id, None) is not None
