"""Global error hierarchy and FastAPI exception handlers.

All orchestrator-specific errors extend OrchestratorError. The FastAPI
exception handlers catch these errors (plus Pydantic's RequestValidationError
and unhandled exceptions) and return a consistent JSON envelope:
{ success, data, error, meta }.
"""

from __future__ import annotations

import logging
import traceback

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Error hierarchy
# ---------------------------------------------------------------------------


class OrchestratorError(Exception):
    """Base error for all orchestrator-specific errors."""

    status_code: int = 500
    message: str = "Internal server error"

    def __init__(self, message: str | None = None, **kwargs: object) -> None:
        self.message = message or self.__class__.message
        self.details = kwargs
        super().__init__(self.message)


class ConfigurationError(OrchestratorError):
    """Missing or inconsistent configuration (empty proxy pool, missing credentials)."""

    status_code = 500
    message = "Service is misconfigured"


class DispatchError(OrchestratorError):
    """The scraping provider rejected or failed a request.

    ``details`` carries ``mode`` and, when the provider answered, its HTTP
    ``provider_status``.
    """

    status_code = 502
    message = "Scraping provider request failed"

    @property
    def provider_status(self) -> int | None:
        value = self.details.get("provider_status")
        return value if isinstance(value, int) else None


class ProxyPoolExhaustedError(OrchestratorError):
    """Every proxy endpoint is blacklisted. Transient; retry after recovery."""

    status_code = 503
    message = "No proxy endpoint available"


class PollTimeoutError(OrchestratorError):
    """The provider did not reach a terminal status within the caller's timeout."""

    status_code = 504
    message = "Timed out waiting for provider result"


class PartialWriteError(OrchestratorError):
    """A job record was written but its result record was not."""

    status_code = 500
    message = "Result could not be persisted"


class InvalidProxyEndpointError(OrchestratorError):
    """A proxy URL could not be parsed into an endpoint."""

    status_code = 400
    message = "Invalid proxy endpoint"


class InvalidScheduleError(OrchestratorError):
    """Scheduled job definition has inconsistent recurrence fields."""

    status_code = 422
    message = "Invalid schedule definition"


class TaskNotFoundError(OrchestratorError):
    """Task not found."""

    status_code = 404
    message = "Task not found"


class ScheduledJobNotFoundError(OrchestratorError):
    """Scheduled job not found."""

    status_code = 404
    message = "Scheduled job not found"


# ---------------------------------------------------------------------------
# FastAPI exception handlers
# ---------------------------------------------------------------------------


def _envelope(
    status_code: int,
    error: str,
    meta: dict | None = None,
) -> JSONResponse:
    """Build a JSON envelope error response."""
    return JSONResponse(
        status_code=status_code,
        content={
            "success": False,
            "data": None,
            "error": error,
            "meta": meta,
        },
    )


async def _orchestrator_error_handler(
    _request: Request, exc: OrchestratorError
) -> JSONResponse:
    """Handle OrchestratorError subclasses."""
    if exc.status_code >= 500:
        logger.error(
            "Request failed: %s",
            exc.message,
            extra={"error_reason": exc.__class__.__name__},
        )
    meta = {key: value for key, value in exc.details.items()} if exc.details else None
    return _envelope(exc.status_code, exc.message, meta=meta)


async def _validation_error_handler(
    _request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handle FastAPI / Pydantic RequestValidationError (422)."""
    field_errors = [
        {
            "field": " -> ".join(str(loc) for loc in err["loc"]),
            "message": err["msg"],
            "type": err["type"],
        }
        for err in exc.errors()
    ]
    return _envelope(
        status_code=422,
        error="Validation error",
        meta={"fields": field_errors},
    )


async def _unhandled_error_handler(_request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unhandled exceptions: log traceback, return generic 500."""
    logger.error(
        "Unhandled exception: %s\n%s",
        exc,
        traceback.format_exc(),
    )
    return _envelope(status_code=500, error="Internal server error")


# ---------------------------------------------------------------------------
# Registration helper
# ---------------------------------------------------------------------------


def register_error_handlers(app: FastAPI) -> None:
    """Wire up all exception handlers on the FastAPI application."""
    app.add_exception_handler(OrchestratorError, _orchestrator_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _validation_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, _unhandled_error_handler)  # type: ignore[arg-type]
