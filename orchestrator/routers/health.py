"""Health, readiness, and metrics endpoints.

- GET /health: service status + proxy pool stats
- GET /readiness: 200 unless proxying is enabled and no endpoint is available
- GET /metrics: operational metrics
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Response

from orchestrator.models.responses import ApiResponse


def create_health_router(
    *,
    proxy_pool: Any = None,
    dispatcher: Any = None,
    use_proxies: bool = False,
) -> APIRouter:
    """Factory that creates the health router with injected dependencies."""

    health_router = APIRouter(tags=["health"])

    @health_router.get("/health")
    async def health() -> dict:
        """Service health check with proxy pool statistics."""
        proxy_stats = proxy_pool.stats() if proxy_pool else {}

        return ApiResponse(
            success=True,
            data={
                "status": "healthy",
                "use_proxies": use_proxies,
                "proxy_pool": proxy_stats,
            },
        ).model_dump()

    @health_router.get("/readiness")
    async def readiness(response: Response) -> dict:
        """Readiness probe. Needs at least one available proxy when proxying is on."""
        available = len(proxy_pool.available_endpoints()) if proxy_pool else 0
        is_ready = not use_proxies or available > 0

        if not is_ready:
            response.status_code = 503

        return ApiResponse(
            success=is_ready,
            data={
                "ready": is_ready,
                "use_proxies": use_proxies,
                "proxy_available": available,
            },
            error=None if is_ready else "Service not ready",
        ).model_dump()

    @health_router.get("/metrics")
    async def metrics() -> dict:
        """Operational metrics endpoint."""
        proxy_stats = proxy_pool.stats() if proxy_pool else {}
        dispatch_stats = dispatcher.get_stats() if dispatcher else {}

        return ApiResponse(
            success=True,
            data={
                "proxy_pool": proxy_stats,
                "dispatcher": dispatch_stats,
            },
        ).model_dump()

    return health_router
