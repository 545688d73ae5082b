"""Scheduled job endpoints and the scheduler trigger.

- POST   /api/v1/schedules: create a scheduled job
- GET    /api/v1/schedules: list scheduled jobs
- GET    /api/v1/schedules/{job_id}: get one scheduled job
- POST   /api/v1/schedules/{job_id}/pause: stop selecting the job
- POST   /api/v1/schedules/{job_id}/resume: reactivate, next run from now
- DELETE /api/v1/schedules/{job_id}: delete the job
- POST   /api/v1/scheduler/tick: run all due jobs (external periodic trigger)
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter

from orchestrator.models.requests import ScheduledJobCreate
from orchestrator.models.responses import ApiResponse

logger = logging.getLogger(__name__)


def create_schedules_router(*, scheduler: Any = None) -> APIRouter:
    """Factory that creates the schedules router with injected dependencies."""

    schedules_router = APIRouter(prefix="/api/v1", tags=["schedules"])

    @schedules_router.post("/schedules")
    async def create_schedule(body: ScheduledJobCreate) -> dict:
        job = await scheduler.create_job(body)
        return ApiResponse(success=True, data=job.to_dict()).model_dump()

    @schedules_router.get("/schedules")
    async def list_schedules() -> dict:
        jobs = await scheduler.list_jobs()
        return ApiResponse(
            success=True,
            data={"jobs": [job.to_dict() for job in jobs], "count": len(jobs)},
        ).model_dump()

    @schedules_router.get("/schedules/{job_id}")
    async def get_schedule(job_id: str) -> dict:
        job = await scheduler.get_job(job_id)
        return ApiResponse(success=True, data=job.to_dict()).model_dump()

    @schedules_router.post("/schedules/{job_id}/pause")
    async def pause_schedule(job_id: str) -> dict:
        job = await scheduler.pause_job(job_id)
        return ApiResponse(success=True, data=job.to_dict()).model_dump()

    @schedules_router.post("/schedules/{job_id}/resume")
    async def resume_schedule(job_id: str) -> dict:
        job = await scheduler.resume_job(job_id)
        return ApiResponse(success=True, data=job.to_dict()).model_dump()

    @schedules_router.delete("/schedules/{job_id}")
    async def delete_schedule(job_id: str) -> dict:
        await scheduler.delete_job(job_id)
        return ApiResponse(success=True, data={"job_id": job_id, "deleted": True}).model_dump()

    @schedules_router.post("/scheduler/tick")
    async def tick() -> dict:
        """Run every due job once. Individual job failures are reported, not raised."""
        outcomes = await scheduler.tick()
        failed = sum(1 for outcome in outcomes if outcome.status == "error")
        return ApiResponse(
            success=True,
            data={"outcomes": [outcome.model_dump(mode="json") for outcome in outcomes]},
            meta={"total": len(outcomes), "failed": failed},
        ).model_dump()

    return schedules_router
