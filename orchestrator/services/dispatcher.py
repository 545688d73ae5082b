"""Task dispatcher: submits fetches to the provider and persists their results.

Three modes:

- sync: one blocking call, the payload comes back in the handle.
- async: submit, record a pending job keyed by the provider task id, and
  poll later with ``fetch_result``.
- batch: submit many URLs as one provider batch, record a pending job keyed
  by the batch id, and poll with ``fetch_batch_result``; each finished target
  is persisted as its own job/result pair.

Persisting a result is a two-step write (job record, then result record).
A failure between the steps leaves a completed job record with no result,
which ``reconcile`` later flags for follow-up. Provider failures propagate
as ``DispatchError`` and are never retried here.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import timedelta
from typing import Any
from uuid import uuid4

from orchestrator.integration.provider_client import ProviderClient
from orchestrator.middleware.error_handler import (
    DispatchError,
    PartialWriteError,
    PollTimeoutError,
    TaskNotFoundError,
)
from orchestrator.models.requests import (
    AsyncDispatch,
    BatchDispatch,
    DispatchRequest,
    SyncDispatch,
)
from orchestrator.models.responses import (
    BatchItemOutcome,
    BatchResult,
    TaskHandle,
    TaskResult,
)
from orchestrator.models.state import (
    DispatchMode,
    JobRecord,
    JobRecordStatus,
    ResultRecord,
    ScrapeTask,
    TaskStatus,
    utcnow,
)
from orchestrator.store.base import ResultStore

logger = logging.getLogger(__name__)


def _provider_status(payload: Any) -> TaskStatus:
    """Map a provider poll payload to a task status (anything unknown is pending)."""
    status = payload.get("status") if isinstance(payload, dict) else None
    if status == "completed":
        return TaskStatus.COMPLETED
    if status == "failed":
        return TaskStatus.FAILED
    return TaskStatus.PENDING


def _provider_error(payload: dict) -> str:
    return str(payload.get("error") or payload.get("message") or "Provider reported failure")


class TaskDispatcher:
    """Dispatches scrape requests and polls the provider for their results.

    Parameters
    ----------
    client:
        Provider API client.
    store:
        Persistence for job and result records.
    poll_interval_seconds:
        Default delay between polls when the caller does not pass one.
    """

    def __init__(
        self,
        client: ProviderClient,
        store: ResultStore,
        *,
        poll_interval_seconds: float = 2.0,
    ) -> None:
        self._client = client
        self._store = store
        self._poll_interval = poll_interval_seconds
        # correlation id -> task, for async and batch submissions
        self._tasks: dict[str, ScrapeTask] = {}

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    async def dispatch(self, request: DispatchRequest) -> TaskHandle:
        """Submit *request* to the provider in the mode it names."""
        if isinstance(request, SyncDispatch):
            return await self._dispatch_sync(request)
        if isinstance(request, AsyncDispatch):
            return await self._dispatch_async(request)
        if isinstance(request, BatchDispatch):
            return await self._dispatch_batch(request)
        raise TypeError(f"Unsupported dispatch request: {type(request).__name__}")

    async def _dispatch_sync(self, request: SyncDispatch) -> TaskHandle:
        task = ScrapeTask(
            id=str(uuid4()),
            mode=DispatchMode.SYNC,
            platform=request.platform,
            targets=[request.url],
            content_type=request.content_type,
            project_id=request.project_id,
        )
        payload = await self._client.scrape(request.url, request.platform, request.options)
        task.mark_completed(payload)

        if request.persist:
            result = await self.persist_result(
                request.platform,
                request.content_type,
                {"url": request.url},
                payload,
                project_id=request.project_id,
            )
            task.job_record_id = result.job_id

        return TaskHandle(
            task_id=task.id,
            mode=task.mode,
            status=task.status,
            platform=task.platform,
            job_record_id=task.job_record_id,
            data=payload,
        )

    async def _dispatch_async(self, request: AsyncDispatch) -> TaskHandle:
        response = await self._client.submit_task(request.url, request.platform, request.options)
        correlation_id = None
        if isinstance(response, dict):
            correlation_id = response.get("task_id") or response.get("id")
        if not correlation_id:
            raise DispatchError("Provider response carried no task id", mode="async")
        correlation_id = str(correlation_id)

        record = await self._store.create_job_record(
            platform=request.platform,
            content_type=request.content_type,
            status=JobRecordStatus.PENDING,
            params={"url": request.url, "task_id": correlation_id},
            project_id=request.project_id,
        )
        task = self._register(
            DispatchMode.ASYNC, request, [request.url], correlation_id, record.id
        )
        logger.info(
            "Async task submitted",
            extra={
                "mode": "async",
                "platform": request.platform,
                "correlation_id": correlation_id,
                "job_id": record.id,
            },
        )
        return self._handle(task)

    async def _dispatch_batch(self, request: BatchDispatch) -> TaskHandle:
        response = await self._client.submit_batch(request.urls, request.platform, request.options)
        batch_id = response.get("batch_id") if isinstance(response, dict) else None
        if not batch_id:
            raise DispatchError("Provider response carried no batch id", mode="batch")
        batch_id = str(batch_id)

        record = await self._store.create_job_record(
            platform=request.platform,
            content_type=request.content_type,
            status=JobRecordStatus.PENDING,
            params={"urls": list(request.urls), "batch_id": batch_id},
            project_id=request.project_id,
        )
        task = self._register(DispatchMode.BATCH, request, list(request.urls), batch_id, record.id)
        logger.info(
            "Batch of %d targets submitted",
            len(request.urls),
            extra={
                "mode": "batch",
                "platform": request.platform,
                "correlation_id": batch_id,
                "job_id": record.id,
            },
        )
        return self._handle(task)

    def _register(
        self,
        mode: DispatchMode,
        request: AsyncDispatch | BatchDispatch,
        targets: list[str],
        correlation_id: str,
        job_record_id: str,
    ) -> ScrapeTask:
        task = ScrapeTask(
            id=str(uuid4()),
            mode=mode,
            platform=request.platform,
            targets=targets,
            content_type=request.content_type,
            project_id=request.project_id,
            correlation_id=correlation_id,
            job_record_id=job_record_id,
            status=TaskStatus.PENDING,
        )
        self._tasks[correlation_id] = task
        return task

    @staticmethod
    def _handle(task: ScrapeTask) -> TaskHandle:
        return TaskHandle(
            task_id=task.id,
            mode=task.mode,
            status=task.status,
            platform=task.platform,
            correlation_id=task.correlation_id,
            job_record_id=task.job_record_id,
        )

    def get_stats(self) -> dict:
        """Counts of tracked async/batch tasks by mode and status."""
        by_status: dict[str, int] = {status.value: 0 for status in TaskStatus}
        by_mode: dict[str, int] = {}
        for task in self._tasks.values():
            by_status[task.status.value] += 1
            by_mode[task.mode.value] = by_mode.get(task.mode.value, 0) + 1
        return {"tracked": len(self._tasks), "by_status": by_status, "by_mode": by_mode}

    def get_task(self, correlation_id: str) -> ScrapeTask:
        """Return the task submitted under *correlation_id*."""
        task = self._tasks.get(correlation_id)
        if task is None:
            raise TaskNotFoundError(correlation_id=correlation_id)
        return task

    # ------------------------------------------------------------------
    # Polling
    # ------------------------------------------------------------------

    async def _poll(self, fetch, correlation_id: str, timeout: float, poll_interval: float | None) -> dict:
        """Call *fetch* until the provider reports a terminal status.

        Raises PollTimeoutError once *timeout* seconds have elapsed.
        """
        interval = poll_interval if poll_interval is not None else self._poll_interval
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout

        while True:
            payload = await fetch(correlation_id)
            if not isinstance(payload, dict):
                raise DispatchError("Provider poll returned a non-object body")
            if _provider_status(payload) is not TaskStatus.PENDING:
                return payload

            remaining = deadline - loop.time()
            if remaining <= 0:
                raise PollTimeoutError(correlation_id=correlation_id, timeout=timeout)
            await asyncio.sleep(min(interval, remaining))

    async def _job_record_for(self, key: str, correlation_id: str) -> JobRecord:
        record = await self._store.find_job_record_by_correlation(key, correlation_id)
        if record is None:
            raise TaskNotFoundError(correlation_id=correlation_id)
        return record

    async def fetch_result(
        self,
        correlation_id: str,
        timeout: float,
        poll_interval: float | None = None,
    ) -> TaskResult:
        """Poll an async task until it completes or fails.

        On completion the pending job record is marked completed and the
        payload is written as its result record. A timeout leaves the task
        pending and retrievable by the same correlation id.
        """
        task = self._tasks.get(correlation_id)
        if task is not None and task.status in (TaskStatus.COMPLETED, TaskStatus.FAILED):
            return TaskResult(
                correlation_id=correlation_id,
                status=task.status,
                data=task.result,
                error=task.error,
                job_record_id=task.job_record_id,
            )

        record = await self._job_record_for("task_id", correlation_id)
        payload = await self._poll(self._client.get_task, correlation_id, timeout, poll_interval)
        status = _provider_status(payload)

        if status is TaskStatus.FAILED:
            error = _provider_error(payload)
            await self._store.update_job_record(record.id, status=JobRecordStatus.FAILED)
            if task is not None:
                task.mark_failed(error)
            logger.warning(
                "Async task failed: %s",
                error,
                extra={"mode": "async", "correlation_id": correlation_id, "job_id": record.id},
            )
            return TaskResult(
                correlation_id=correlation_id,
                status=status,
                error=error,
                job_record_id=record.id,
            )

        data = payload.get("data")
        await self._store.update_job_record(record.id, status=JobRecordStatus.COMPLETED)
        await self._write_result(record, data)
        if task is not None:
            task.mark_completed(data)
        logger.info(
            "Async task completed",
            extra={"mode": "async", "correlation_id": correlation_id, "job_id": record.id},
        )
        return TaskResult(
            correlation_id=correlation_id,
            status=status,
            data=data,
            job_record_id=record.id,
        )

    async def fetch_batch_result(
        self,
        batch_id: str,
        timeout: float,
        poll_interval: float | None = None,
    ) -> BatchResult:
        """Poll a batch until the provider reports it finished.

        Each completed target is persisted as its own job/result pair; a
        target whose write fails is reported in the outcomes and does not
        stop the others.
        """
        task = self._tasks.get(batch_id)
        if task is not None and task.status in (TaskStatus.COMPLETED, TaskStatus.FAILED):
            cached = [BatchItemOutcome(**item) for item in task.result or []]
            return BatchResult(
                batch_id=batch_id,
                status=task.status,
                items=cached,
                persisted=sum(1 for item in cached if item.status is TaskStatus.COMPLETED),
                job_record_id=task.job_record_id,
            )

        record = await self._job_record_for("batch_id", batch_id)
        payload = await self._poll(self._client.get_batch, batch_id, timeout, poll_interval)

        if _provider_status(payload) is TaskStatus.FAILED:
            error = _provider_error(payload)
            await self._store.update_job_record(record.id, status=JobRecordStatus.FAILED)
            if task is not None:
                task.mark_failed(error)
            logger.warning(
                "Batch failed: %s",
                error,
                extra={"mode": "batch", "correlation_id": batch_id, "job_id": record.id},
            )
            return BatchResult(batch_id=batch_id, status=TaskStatus.FAILED, job_record_id=record.id)

        items: list[BatchItemOutcome] = []
        persisted = 0
        for entry in payload.get("tasks") or []:
            entry = entry if isinstance(entry, dict) else {}
            url = entry.get("url")
            entry_status = _provider_status(entry)
            if entry_status is not TaskStatus.COMPLETED:
                items.append(
                    BatchItemOutcome(
                        url=url,
                        status=entry_status,
                        error=_provider_error(entry) if entry_status is TaskStatus.FAILED else None,
                    )
                )
                continue
            try:
                result = await self.persist_result(
                    record.platform,
                    record.content_type,
                    {"url": url or "batch", "batch_id": batch_id},
                    entry.get("data"),
                    project_id=record.project_id,
                )
            except PartialWriteError as exc:
                items.append(
                    BatchItemOutcome(
                        url=url,
                        status=TaskStatus.FAILED,
                        job_record_id=exc.details.get("job_id"),
                        error=exc.message,
                    )
                )
                continue
            persisted += 1
            items.append(
                BatchItemOutcome(url=url, status=TaskStatus.COMPLETED, job_record_id=result.job_id)
            )

        await self._store.update_job_record(record.id, status=JobRecordStatus.COMPLETED)
        if task is not None:
            task.mark_completed([item.model_dump() for item in items])
        logger.info(
            "Batch completed, %d of %d targets persisted",
            persisted,
            len(items),
            extra={"mode": "batch", "correlation_id": batch_id, "job_id": record.id},
        )
        return BatchResult(
            batch_id=batch_id,
            status=TaskStatus.COMPLETED,
            items=items,
            persisted=persisted,
            job_record_id=record.id,
        )

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    async def persist_result(
        self,
        platform: str,
        content_type: str,
        params: dict,
        payload: Any,
        project_id: str | None = None,
    ) -> ResultRecord:
        """Write a completed job record, then the result record referencing it.

        Raises
        ------
        PartialWriteError
            If the job record was written but the result record was not.
        """
        record = await self._store.create_job_record(
            platform=platform,
            content_type=content_type,
            status=JobRecordStatus.COMPLETED,
            params=params,
            project_id=project_id,
        )
        return await self._write_result(record, payload)

    async def _write_result(self, record: JobRecord, payload: Any) -> ResultRecord:
        try:
            return await self._store.create_result_record(
                job_id=record.id,
                platform=record.platform,
                content_type=record.content_type,
                raw_data=payload,
            )
        except Exception as exc:
            logger.error(
                "Result write failed after job record was created: %s",
                exc,
                extra={"job_id": record.id, "platform": record.platform, "error_reason": str(exc)},
            )
            raise PartialWriteError(job_id=record.id) from exc

    async def reconcile(self, older_than: timedelta = timedelta(0)) -> list[str]:
        """Flag completed job records that never got a result record.

        Only records created more than *older_than* ago are considered, so
        writes still in flight are left alone. Returns the flagged ids.
        """
        cutoff = utcnow() - older_than
        flagged: list[str] = []
        for record in await self._store.find_unreconciled_job_records(cutoff):
            # Batch parents hold no result rows of their own
            if "urls" in record.params:
                continue
            await self._store.update_job_record(
                record.id, status=JobRecordStatus.NEEDS_RECONCILIATION
            )
            flagged.append(record.id)

        if flagged:
            logger.warning("Flagged %d job records for reconciliation", len(flagged))
        return flagged
