"""Middleware package: error hierarchy and request ID."""

from orchestrator.middleware.error_handler import (
    ConfigurationError,
    DispatchError,
    InvalidProxyEndpointError,
    InvalidScheduleError,
    OrchestratorError,
    PartialWriteError,
    PollTimeoutError,
    ProxyPoolExhaustedError,
    ScheduledJobNotFoundError,
    TaskNotFoundError,
    register_error_handlers,
)
from orchestrator.middleware.request_id import RequestIdMiddleware

__all__ = [
    "ConfigurationError",
    "DispatchError",
    "InvalidProxyEndpointError",
    "InvalidScheduleError",
    "OrchestratorError",
    "PartialWriteError",
    "PollTimeoutError",
    "ProxyPoolExhaustedError",
    "RequestIdMiddleware",
    "ScheduledJobNotFoundError",
    "TaskNotFoundError",
    "register_error_handlers",
]
