"""Recurrence scheduler: runs due scheduled jobs and advances their next run.

``tick`` is the single entry point for execution and is meant to be called
periodically by an external trigger (or by ``run_forever`` when the
in-process loop is enabled). Each due job gets one synchronous dispatch and
its result is persisted. Whatever the outcome, the job's ``last_run_at`` and
``next_run_at`` are updated before the tick returns, so a failing job is never
left stuck.
"""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime
from uuid import uuid4
from zoneinfo import ZoneInfo

from orchestrator.middleware.error_handler import (
    InvalidScheduleError,
    ScheduledJobNotFoundError,
)
from orchestrator.models.requests import ScheduledJobCreate, ScrapeOptions, SyncDispatch
from orchestrator.models.responses import TickOutcome
from orchestrator.models.state import ScheduledJob
from orchestrator.services.dispatcher import TaskDispatcher
from orchestrator.services.recurrence import compute_next_run
from orchestrator.store.base import ResultStore

logger = logging.getLogger(__name__)

_OPTION_FIELDS = frozenset(ScrapeOptions.model_fields)


class RecurrenceScheduler:
    """Creates, lists and executes scheduled jobs.

    Parameters
    ----------
    dispatcher:
        Dispatcher used for the synchronous fetch of each due job.
    store:
        Persistence for scheduled job definitions.
    max_concurrency:
        Upper bound on jobs executing at once within one tick.
    timezone:
        IANA zone in which times of day are interpreted.
    """

    def __init__(
        self,
        dispatcher: TaskDispatcher,
        store: ResultStore,
        *,
        max_concurrency: int = 4,
        timezone: str = "UTC",
    ) -> None:
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self._dispatcher = dispatcher
        self._store = store
        self._max_concurrency = max_concurrency
        self._tz = ZoneInfo(timezone)

    def now(self) -> datetime:
        return datetime.now(self._tz)

    def _localize(self, moment: datetime | None) -> datetime:
        if moment is None:
            return self.now()
        if moment.tzinfo is None:
            return moment.replace(tzinfo=self._tz)
        return moment.astimezone(self._tz)

    # ------------------------------------------------------------------
    # Job management
    # ------------------------------------------------------------------

    async def create_job(
        self, definition: ScheduledJobCreate, now: datetime | None = None
    ) -> ScheduledJob:
        """Validate *definition* and store it with its first ``next_run_at``."""
        # model_construct() instances skip validation
        try:
            definition = ScheduledJobCreate.model_validate(definition.model_dump())
        except ValueError as exc:
            raise InvalidScheduleError(str(exc)) from exc

        job = ScheduledJob(
            id=str(uuid4()),
            platform=definition.platform,
            url=definition.url,
            content_type=definition.content_type,
            frequency=definition.frequency,
            time_of_day=definition.time_of_day,
            day_of_week=definition.day_of_week,
            day_of_month=definition.day_of_month,
            project_id=definition.project_id,
            params=dict(definition.params),
            active=definition.active,
            next_run_at=self.now(),
        )
        job.next_run_at = compute_next_run(job, self._localize(now))
        await self._store.save_scheduled_job(job)
        logger.info(
            "Scheduled job created (%s at %s), next run %s",
            job.frequency.value,
            job.time_of_day,
            job.next_run_at.isoformat(),
            extra={"job_id": job.id, "platform": job.platform},
        )
        return job

    async def get_job(self, job_id: str) -> ScheduledJob:
        job = await self._store.get_scheduled_job(job_id)
        if job is None:
            raise ScheduledJobNotFoundError(job_id=job_id)
        return job

    async def list_jobs(self) -> list[ScheduledJob]:
        return await self._store.list_scheduled_jobs()

    async def pause_job(self, job_id: str) -> ScheduledJob:
        """Deactivate a job; paused jobs are never selected by ``tick``."""
        job = await self.get_job(job_id)
        job.active = False
        await self._store.save_scheduled_job(job)
        logger.info("Scheduled job paused", extra={"job_id": job_id})
        return job

    async def resume_job(self, job_id: str, now: datetime | None = None) -> ScheduledJob:
        """Reactivate a job with ``next_run_at`` recomputed from *now*."""
        job = await self.get_job(job_id)
        job.active = True
        job.next_run_at = compute_next_run(job, self._localize(now))
        await self._store.save_scheduled_job(job)
        logger.info(
            "Scheduled job resumed, next run %s",
            job.next_run_at.isoformat(),
            extra={"job_id": job_id},
        )
        return job

    async def delete_job(self, job_id: str) -> None:
        if not await self._store.delete_scheduled_job(job_id):
            raise ScheduledJobNotFoundError(job_id=job_id)
        logger.info("Scheduled job deleted", extra={"job_id": job_id})

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def tick(self, now: datetime | None = None) -> list[TickOutcome]:
        """Run every due job once and return their outcomes in due order.

        Jobs run concurrently, at most ``max_concurrency`` at a time. A job
        that fails is reported with status ``error`` and does not affect the
        others.
        """
        now = self._localize(now)
        due = await self._store.list_due_scheduled_jobs(now)
        if not due:
            logger.debug("Scheduler tick: no due jobs")
            return []

        started = time.monotonic()
        semaphore = asyncio.Semaphore(self._max_concurrency)

        async def _bounded(job: ScheduledJob) -> TickOutcome:
            async with semaphore:
                return await self._run_job(job, now)

        outcomes = list(await asyncio.gather(*(_bounded(job) for job in due)))

        failed = sum(1 for outcome in outcomes if outcome.status == "error")
        logger.info(
            "Scheduler tick ran %d jobs (%d failed)",
            len(outcomes),
            failed,
            extra={
                "outcomes": [outcome.model_dump(mode="json") for outcome in outcomes],
                "duration_ms": round((time.monotonic() - started) * 1000, 1),
            },
        )
        return outcomes

    async def _run_job(self, job: ScheduledJob, now: datetime) -> TickOutcome:
        options = {key: value for key, value in job.params.items() if key in _OPTION_FIELDS}
        outcome_status = "success"
        message: str | None = None
        job_record_id: str | None = None

        try:
            handle = await self._dispatcher.dispatch(
                SyncDispatch(
                    platform=job.platform,
                    url=job.url,
                    content_type=job.content_type,
                    project_id=job.project_id,
                    options=ScrapeOptions(**options),
                )
            )
            result = await self._dispatcher.persist_result(
                job.platform,
                job.content_type,
                {"url": job.url, "scheduled": True, "scheduled_job_id": job.id},
                handle.data,
                project_id=job.project_id,
            )
            job_record_id = result.job_id
            message = f"Scheduled {job.platform} job completed"
            job.last_error = None
            job.last_error_at = None
        except Exception as exc:
            outcome_status = "error"
            message = getattr(exc, "message", None) or str(exc) or exc.__class__.__name__
            job.last_error = message
            job.last_error_at = now
            logger.error(
                "Scheduled job failed: %s",
                message,
                extra={
                    "job_id": job.id,
                    "platform": job.platform,
                    "error_reason": exc.__class__.__name__,
                },
            )

        # Timing always advances, on success and on failure
        job.last_run_at = now
        job.next_run_at = compute_next_run(job, now)
        try:
            # Pause or delete issued while the job ran must stick
            stored = await self._store.record_scheduled_run(
                job.id,
                last_run_at=job.last_run_at,
                next_run_at=job.next_run_at,
                last_error=job.last_error,
                last_error_at=job.last_error_at,
            )
            if stored is None:
                logger.info("Scheduled job removed during run", extra={"job_id": job.id})
        except Exception as exc:
            logger.error(
                "Failed to save scheduled job after run: %s",
                exc,
                extra={"job_id": job.id, "error_reason": exc.__class__.__name__},
            )
            outcome_status = "error"
            message = f"Run finished but schedule update failed: {exc}"

        return TickOutcome(
            job_id=job.id,
            status=outcome_status,
            message=message,
            next_run_at=job.next_run_at,
            job_record_id=job_record_id,
        )

    async def run_forever(self, interval_seconds: float) -> None:
        """Call ``tick`` every *interval_seconds* until cancelled."""
        logger.info("In-process scheduler loop started (every %ss)", interval_seconds)
        while True:
            try:
                await self.tick()
            except Exception:
                logger.exception("Scheduler tick failed")
            await asyncio.sleep(interval_seconds)
