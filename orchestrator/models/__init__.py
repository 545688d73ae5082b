"""Public models for the orchestration service."""

from orchestrator.models.requests import (
    AsyncDispatch,
    BatchDispatch,
    DispatchRequest,
    EndpointList,
    ScheduledJobCreate,
    ScrapeOptions,
    SyncDispatch,
)
from orchestrator.models.responses import (
    ApiResponse,
    BatchItemOutcome,
    BatchResult,
    TaskHandle,
    TaskResult,
    TickOutcome,
)
from orchestrator.models.state import (
    DispatchMode,
    Frequency,
    JobRecord,
    JobRecordStatus,
    ResultRecord,
    ScheduledJob,
    ScrapeTask,
    TaskStatus,
)

__all__ = [
    "ApiResponse",
    "AsyncDispatch",
    "BatchDispatch",
    "BatchItemOutcome",
    "BatchResult",
    "DispatchMode",
    "DispatchRequest",
    "EndpointList",
    "Frequency",
    "JobRecord",
    "JobRecordStatus",
    "ResultRecord",
    "ScheduledJob",
    "ScheduledJobCreate",
    "ScrapeOptions",
    "ScrapeTask",
    "SyncDispatch",
    "TaskHandle",
    "TaskResult",
    "TickOutcome",
]
