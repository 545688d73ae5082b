"""Unit tests for the in-memory result store."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from orchestrator.models.state import Frequency, JobRecordStatus, ScheduledJob, utcnow
from orchestrator.store.memory import InMemoryResultStore

NOW = datetime(2024, 1, 2, 12, 0, tzinfo=timezone.utc)


def _scheduled(job_id: str, next_run_at: datetime, active: bool = True) -> ScheduledJob:
    return ScheduledJob(
        id=job_id,
        platform="reddit",
        url="https://www.reddit.com",
        content_type="page",
        frequency=Frequency.DAILY,
        time_of_day="09:00",
        next_run_at=next_run_at,
        active=active,
    )


class TestJobRecords:
    @pytest.mark.asyncio
    async def test_create_and_update(self, store: InMemoryResultStore) -> None:
        record = await store.create_job_record(
            platform="reddit",
            content_type="page",
            status=JobRecordStatus.PENDING,
            params={"url": "https://a.com", "task_id": "t-1"},
        )

        updated = await store.update_job_record(record.id, status=JobRecordStatus.COMPLETED)

        assert updated.status is JobRecordStatus.COMPLETED
        assert updated.updated_at >= record.created_at
        assert (await store.get_job_record(record.id)).status is JobRecordStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_update_unknown(self, store: InMemoryResultStore) -> None:
        with pytest.raises(KeyError):
            await store.update_job_record("missing", status=JobRecordStatus.FAILED)

    @pytest.mark.asyncio
    async def test_find_by_correlation(self, store: InMemoryResultStore) -> None:
        record = await store.create_job_record(
            platform="reddit",
            content_type="page",
            status=JobRecordStatus.PENDING,
            params={"urls": ["https://a.com"], "batch_id": "b-1"},
        )

        assert (await store.find_job_record_by_correlation("batch_id", "b-1")).id == record.id
        assert await store.find_job_record_by_correlation("task_id", "b-1") is None

    @pytest.mark.asyncio
    async def test_result_requires_job_record(self, store: InMemoryResultStore) -> None:
        with pytest.raises(KeyError):
            await store.create_result_record(
                job_id="missing", platform="reddit", content_type="page", raw_data={}
            )

    @pytest.mark.asyncio
    async def test_unreconciled(self, store: InMemoryResultStore) -> None:
        orphan = await store.create_job_record(
            platform="reddit", content_type="page", status=JobRecordStatus.COMPLETED, params={}
        )
        paired = await store.create_job_record(
            platform="reddit", content_type="page", status=JobRecordStatus.COMPLETED, params={}
        )
        await store.create_result_record(
            job_id=paired.id, platform="reddit", content_type="page", raw_data={"ok": True}
        )
        await store.create_job_record(
            platform="reddit", content_type="page", status=JobRecordStatus.PENDING, params={}
        )

        found = await store.find_unreconciled_job_records(utcnow() + timedelta(seconds=1))

        assert [record.id for record in found] == [orphan.id]


class TestScheduledJobs:
    @pytest.mark.asyncio
    async def test_due_jobs_ordered(self, store: InMemoryResultStore) -> None:
        same_time = NOW - timedelta(hours=1)
        await store.save_scheduled_job(_scheduled("b", same_time))
        await store.save_scheduled_job(_scheduled("a", same_time))
        await store.save_scheduled_job(_scheduled("c", NOW - timedelta(hours=2)))
        await store.save_scheduled_job(_scheduled("future", NOW + timedelta(minutes=1)))
        await store.save_scheduled_job(_scheduled("paused", NOW - timedelta(hours=3), active=False))
        await store.save_scheduled_job(_scheduled("exact", NOW))

        due = await store.list_due_scheduled_jobs(NOW)

        assert [job.id for job in due] == ["c", "a", "b", "exact"]

    @pytest.mark.asyncio
    async def test_returned_jobs_are_detached(self, store: InMemoryResultStore) -> None:
        await store.save_scheduled_job(_scheduled("a", NOW))

        job = await store.get_scheduled_job("a")
        job.active = False

        assert (await store.get_scheduled_job("a")).active is True

    @pytest.mark.asyncio
    async def test_delete(self, store: InMemoryResultStore) -> None:
        await store.save_scheduled_job(_scheduled("a", NOW))

        assert await store.delete_scheduled_job("a") is True
        assert await store.delete_scheduled_job("a") is False
        assert await store.get_scheduled_job("a") is None

    @pytest.mark.asyncio
    async def test_record_run_keeps_active_flag(self, store: InMemoryResultStore) -> None:
        await store.save_scheduled_job(_scheduled("a", NOW, active=False))
        later = NOW + timedelta(days=1)

        updated = await store.record_scheduled_run(
            "a", last_run_at=NOW, next_run_at=later, last_error="boom", last_error_at=NOW
        )

        stored = await store.get_scheduled_job("a")
        assert stored.active is False
        assert (stored.last_run_at, stored.next_run_at) == (NOW, later)
        assert (stored.last_error, stored.last_error_at) == ("boom", NOW)
        assert updated.next_run_at == later

    @pytest.mark.asyncio
    async def test_record_run_on_deleted_job(self, store: InMemoryResultStore) -> None:
        result = await store.record_scheduled_run(
            "missing", last_run_at=NOW, next_run_at=NOW, last_error=None, last_error_at=None
        )

        assert result is None
        assert await store.list_scheduled_jobs() == []
