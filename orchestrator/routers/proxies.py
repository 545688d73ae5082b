"""Proxy pool endpoints.

- GET  /api/v1/proxies/stats: pool statistics (credentials masked)
- POST /api/v1/proxies: add endpoints
- POST /api/v1/proxies/remove: remove endpoints
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter

from orchestrator.middleware.error_handler import InvalidProxyEndpointError

from orchestrator.models.requests import EndpointList
from orchestrator.models.responses import ApiResponse

logger = logging.getLogger(__name__)


def create_proxies_router(*, proxy_pool: Any = None) -> APIRouter:
    """Factory that creates the proxy pool router with injected dependencies."""

    proxies_router = APIRouter(prefix="/api/v1/proxies", tags=["proxies"])

    @proxies_router.get("/stats")
    async def proxy_stats() -> dict:
        return ApiResponse(success=True, data=proxy_pool.stats()).model_dump()

    @proxies_router.post("")
    async def add_proxies(body: EndpointList) -> dict:
        try:
            added = proxy_pool.add_endpoints(body.endpoints)
        except ValueError as exc:
            raise InvalidProxyEndpointError(str(exc)) from exc
        return ApiResponse(
            success=True,
            data={"added": [endpoint.masked() for endpoint in added], "count": len(added)},
        ).model_dump()

    @proxies_router.post("/remove")
    async def remove_proxies(body: EndpointList) -> dict:
        try:
            removed = proxy_pool.remove_endpoints(body.endpoints)
        except ValueError as exc:
            raise InvalidProxyEndpointError(str(exc)) from exc
        return ApiResponse(success=True, data={"removed": removed}).model_dump()

    return proxies_router
