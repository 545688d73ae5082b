"""FastAPI application entry point with lifespan management.

Startup: validate settings, configure logging, load platform profiles,
initialize the proxy pool, wire the provider client, store, dispatcher and
scheduler, and optionally start the in-process tick loop.
Shutdown: stop the tick loop, waiting up to the graceful shutdown window for
a running tick to finish.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from orchestrator.config.platform_profiles import load_platform_profiles
from orchestrator.config.settings import OrchestratorSettings
from orchestrator.integration.provider_client import ProviderClient
from orchestrator.logging_config import configure_logging
from orchestrator.middleware.error_handler import ConfigurationError, register_error_handlers
from orchestrator.middleware.request_id import RequestIdMiddleware
from orchestrator.proxy.manager import ProxyPoolManager
from orchestrator.routers.dispatch import create_dispatch_router
from orchestrator.routers.health import create_health_router
from orchestrator.routers.proxies import create_proxies_router
from orchestrator.routers.schedules import create_schedules_router
from orchestrator.services.dispatcher import TaskDispatcher
from orchestrator.services.scheduler import RecurrenceScheduler
from orchestrator.store.memory import InMemoryResultStore

logger = logging.getLogger(__name__)

# Shared state for the application, populated during lifespan startup
_state: dict = {}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: startup and shutdown logic."""
    settings = OrchestratorSettings()  # type: ignore[call-arg]

    configure_logging(settings.log_level, json_output=settings.log_json)
    logger.info("Starting orchestrator service on port %d", settings.port)

    # Platform request profiles
    profiles = load_platform_profiles(settings.platform_profiles_path)

    # Proxy pool
    proxy_pool = ProxyPoolManager(
        settings.proxy_endpoints,
        strategy=settings.proxy_rotation_strategy,
        blacklist_seconds=settings.proxy_blacklist_seconds,
        exploit_probability=settings.proxy_exploit_probability,
        recency_window_seconds=settings.proxy_recency_window_seconds,
        top_n=settings.proxy_top_n,
    )
    proxy_pool.initialize()
    if settings.use_proxies and not proxy_pool.available_endpoints():
        raise ConfigurationError("Proxy routing is enabled but the proxy pool is empty")

    # Provider client
    client = ProviderClient(
        settings.provider_api_url,
        settings.provider_api_key,
        auth_scheme=settings.provider_auth_scheme,
        timeout_seconds=settings.provider_timeout_seconds,
        profiles=profiles,
        proxy_pool=proxy_pool,
        use_proxies=settings.use_proxies,
    )

    # Store, dispatcher and scheduler
    store = InMemoryResultStore()
    dispatcher = TaskDispatcher(
        client,
        store,
        poll_interval_seconds=settings.poll_interval_seconds,
    )
    scheduler = RecurrenceScheduler(
        dispatcher,
        store,
        max_concurrency=settings.scheduler_max_concurrency,
        timezone=settings.scheduler_timezone,
    )

    # Optional in-process trigger
    tick_task: asyncio.Task | None = None
    if settings.scheduler_tick_interval_seconds:
        tick_task = asyncio.create_task(
            scheduler.run_forever(settings.scheduler_tick_interval_seconds)
        )

    # Mount routers
    app.include_router(
        create_health_router(
            proxy_pool=proxy_pool,
            dispatcher=dispatcher,
            use_proxies=settings.use_proxies,
        )
    )
    app.include_router(create_dispatch_router(dispatcher=dispatcher))
    app.include_router(create_schedules_router(scheduler=scheduler))
    app.include_router(create_proxies_router(proxy_pool=proxy_pool))

    # Store state for potential access
    _state.update({
        "settings": settings,
        "proxy_pool": proxy_pool,
        "store": store,
        "dispatcher": dispatcher,
        "scheduler": scheduler,
    })

    logger.info("Orchestrator service started successfully")

    yield

    # --- Shutdown ---
    logger.info("Shutting down orchestrator service")

    if tick_task is not None:
        tick_task.cancel()
        try:
            await asyncio.wait_for(tick_task, timeout=settings.graceful_shutdown_seconds)
        except (asyncio.CancelledError, asyncio.TimeoutError):
            pass

    _state.clear()
    logger.info("Orchestrator service shut down")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Loads ``OrchestratorSettings`` eagerly so that a missing
    ``SCRAPER_PROVIDER_API_KEY`` environment variable causes an immediate
    startup failure.
    """
    OrchestratorSettings()  # type: ignore[call-arg]

    app = FastAPI(
        title="Scrape Orchestrator",
        version="1.0.0",
        lifespan=lifespan,
    )

    register_error_handlers(app)
    app.add_middleware(RequestIdMiddleware)

    return app
