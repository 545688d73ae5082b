"""Pydantic request models: dispatch modes and scheduled job definitions."""

from __future__ import annotations

import re
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field, field_validator, model_validator

from orchestrator.models.state import Frequency

_TIME_OF_DAY = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)$")


class ScrapeOptions(BaseModel):
    """Per-request provider options. Unset fields fall back to the platform profile."""

    headless: str | None = None
    geo: str | None = None
    locale: str | None = None
    device_type: str | None = None
    session_id: str | None = None


class _DispatchBase(BaseModel):
    platform: str = Field(..., min_length=1)
    content_type: str = Field(default="page", min_length=1)
    project_id: str | None = None
    options: ScrapeOptions = Field(default_factory=ScrapeOptions)

    @field_validator("platform")
    @classmethod
    def _lower_platform(cls, value: str) -> str:
        return value.strip().lower()


class SyncDispatch(_DispatchBase):
    """Single blocking fetch; the payload comes back in the response."""

    mode: Literal["sync"] = "sync"
    url: str = Field(..., min_length=1)
    persist: bool = False


class AsyncDispatch(_DispatchBase):
    """Submit one URL and poll for the result later by correlation id."""

    mode: Literal["async"] = "async"
    url: str = Field(..., min_length=1)


class BatchDispatch(_DispatchBase):
    """Submit several URLs as one provider-side batch (max 100)."""

    mode: Literal["batch"] = "batch"
    urls: list[str] = Field(..., min_length=1, max_length=100)


DispatchRequest = Annotated[
    Union[SyncDispatch, AsyncDispatch, BatchDispatch],
    Field(discriminator="mode"),
]


class ScheduledJobCreate(BaseModel):
    """Definition of a recurring fetch.

    Only the fields matching ``frequency`` are kept: ``day_of_week``
    (0 = Sunday .. 6 = Saturday) for weekly jobs, ``day_of_month`` (1-31) for
    monthly ones.
    """

    platform: str = Field(..., min_length=1)
    url: str = Field(..., min_length=1)
    content_type: str = Field(default="page", min_length=1)
    frequency: Frequency
    day_of_week: int | None = Field(default=None, ge=0, le=6)
    day_of_month: int | None = Field(default=None, ge=1, le=31)
    time_of_day: str = "00:00"
    project_id: str | None = None
    params: dict = Field(default_factory=dict)
    active: bool = True

    @field_validator("platform")
    @classmethod
    def _lower_platform(cls, value: str) -> str:
        return value.strip().lower()

    @field_validator("time_of_day")
    @classmethod
    def _check_time_of_day(cls, value: str) -> str:
        match = _TIME_OF_DAY.match(value.strip())
        if match is None:
            raise ValueError("time_of_day must be HH:MM (24-hour clock)")
        return f"{int(match.group(1)):02d}:{match.group(2)}"

    @model_validator(mode="after")
    def _check_frequency_fields(self) -> ScheduledJobCreate:
        if self.frequency is Frequency.WEEKLY:
            if self.day_of_week is None:
                raise ValueError("weekly schedules require day_of_week (0-6)")
            self.day_of_month = None
        elif self.frequency is Frequency.MONTHLY:
            if self.day_of_month is None:
                raise ValueError("monthly schedules require day_of_month (1-31)")
            self.day_of_week = None
        else:
            self.day_of_week = None
            self.day_of_month = None
        return self


class EndpointList(BaseModel):
    """Proxy endpoint URLs to add to or remove from the pool."""

    endpoints: list[str] = Field(..., min_length=1)
