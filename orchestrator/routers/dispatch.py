"""Dispatch endpoints.

- POST /api/v1/dispatch: submit a sync, async or batch fetch (tagged by ``mode``)
- GET  /api/v1/dispatch/tasks/{correlation_id}: poll an async task to completion
- GET  /api/v1/dispatch/batches/{batch_id}: poll a batch to completion
- POST /api/v1/dispatch/reconcile: flag job records left without a result
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Annotated, Any, Union

from fastapi import APIRouter, Body, Query

from orchestrator.models.requests import AsyncDispatch, BatchDispatch, SyncDispatch
from orchestrator.models.responses import ApiResponse

logger = logging.getLogger(__name__)


def create_dispatch_router(*, dispatcher: Any = None) -> APIRouter:
    """Factory that creates the dispatch router with injected dependencies.

    Parameters
    ----------
    dispatcher:
        TaskDispatcher shared with the scheduler.
    """
    dispatch_router = APIRouter(prefix="/api/v1/dispatch", tags=["dispatch"])

    @dispatch_router.post("")
    async def dispatch(
        body: Annotated[
            Union[SyncDispatch, AsyncDispatch, BatchDispatch],
            Body(discriminator="mode"),
        ],
    ) -> dict:
        """Submit a fetch. Sync requests return the payload, others a correlation id."""
        handle = await dispatcher.dispatch(body)
        return ApiResponse(success=True, data=handle.model_dump(mode="json")).model_dump()

    @dispatch_router.get("/tasks/{correlation_id}")
    async def fetch_task_result(
        correlation_id: str,
        timeout: float = Query(default=30.0, gt=0, le=600),
        poll_interval: float | None = Query(default=None, gt=0),
    ) -> dict:
        """Poll an async task until it finishes or *timeout* seconds pass (504)."""
        result = await dispatcher.fetch_result(
            correlation_id, timeout=timeout, poll_interval=poll_interval
        )
        return ApiResponse(success=True, data=result.model_dump(mode="json")).model_dump()

    @dispatch_router.get("/batches/{batch_id}")
    async def fetch_batch_result(
        batch_id: str,
        timeout: float = Query(default=60.0, gt=0, le=600),
        poll_interval: float | None = Query(default=None, gt=0),
    ) -> dict:
        """Poll a batch until the provider reports it finished."""
        result = await dispatcher.fetch_batch_result(
            batch_id, timeout=timeout, poll_interval=poll_interval
        )
        return ApiResponse(success=True, data=result.model_dump(mode="json")).model_dump()

    @dispatch_router.post("/reconcile")
    async def reconcile(older_than_seconds: float = Query(default=3600.0, ge=0)) -> dict:
        """Flag completed job records older than the cutoff that have no result."""
        flagged = await dispatcher.reconcile(timedelta(seconds=older_than_seconds))
        return ApiResponse(
            success=True,
            data={"flagged": flagged, "count": len(flagged)},
        ).model_dump()

    return dispatch_router
