"""Unit tests for request and state models."""

from __future__ import annotations

import pytest
from pydantic import TypeAdapter, ValidationError

from orchestrator.models.requests import (
    AsyncDispatch,
    BatchDispatch,
    DispatchRequest,
    EndpointList,
    ScheduledJobCreate,
    SyncDispatch,
)
from orchestrator.models.state import DispatchMode, Frequency, ScrapeTask, TaskStatus

_dispatch_adapter = TypeAdapter(DispatchRequest)


class TestDispatchRequest:
    def test_sync_discriminated(self):
        request = _dispatch_adapter.validate_python(
            {"mode": "sync", "platform": "Reddit", "url": "https://example.com"}
        )
        assert isinstance(request, SyncDispatch)
        assert request.platform == "reddit"
        assert request.content_type == "page"
        assert request.persist is False

    def test_async_discriminated(self):
        request = _dispatch_adapter.validate_python(
            {"mode": "async", "platform": "amazon", "url": "https://example.com"}
        )
        assert isinstance(request, AsyncDispatch)

    def test_batch_discriminated(self):
        request = _dispatch_adapter.validate_python(
            {"mode": "batch", "platform": "amazon", "urls": ["https://a.com", "https://b.com"]}
        )
        assert isinstance(request, BatchDispatch)
        assert len(request.urls) == 2

    def test_unknown_mode(self):
        with pytest.raises(ValidationError):
            _dispatch_adapter.validate_python({"mode": "stream", "platform": "x", "url": "u"})

    def test_batch_limits(self):
        with pytest.raises(ValidationError):
            BatchDispatch(platform="amazon", urls=[])
        with pytest.raises(ValidationError):
            BatchDispatch(platform="amazon", urls=[f"https://a.com/{i}" for i in range(101)])

    def test_options_default(self):
        request = SyncDispatch(platform="reddit", url="https://example.com")
        assert request.options.model_dump(exclude_none=True) == {}


class TestScheduledJobCreate:
    def test_normalizes_time_of_day(self):
        definition = ScheduledJobCreate(
            platform="reddit", url="https://a.com", frequency="daily", time_of_day="9:05"
        )
        assert definition.time_of_day == "09:05"

    @pytest.mark.parametrize("value", ["24:00", "12:60", "noon", "1230"])
    def test_rejects_bad_time_of_day(self, value):
        with pytest.raises(ValidationError):
            ScheduledJobCreate(
                platform="reddit", url="https://a.com", frequency="daily", time_of_day=value
            )

    def test_weekly_requires_day_of_week(self):
        with pytest.raises(ValidationError):
            ScheduledJobCreate(platform="reddit", url="https://a.com", frequency="weekly")

    def test_monthly_requires_day_of_month(self):
        with pytest.raises(ValidationError):
            ScheduledJobCreate(platform="reddit", url="https://a.com", frequency="monthly")

    @pytest.mark.parametrize(("field", "value"), [("day_of_week", 7), ("day_of_week", -1), ("day_of_month", 0), ("day_of_month", 32)])
    def test_rejects_out_of_range_days(self, field, value):
        frequency = "weekly" if field == "day_of_week" else "monthly"
        with pytest.raises(ValidationError):
            ScheduledJobCreate(
                platform="reddit", url="https://a.com", frequency=frequency, **{field: value}
            )

    def test_clears_fields_for_other_frequencies(self):
        definition = ScheduledJobCreate(
            platform="reddit",
            url="https://a.com",
            frequency="weekly",
            day_of_week=2,
            day_of_month=15,
        )
        assert definition.frequency is Frequency.WEEKLY
        assert definition.day_of_week == 2
        assert definition.day_of_month is None


class TestEndpointList:
    def test_requires_one_endpoint(self):
        with pytest.raises(ValidationError):
            EndpointList(endpoints=[])


class TestScrapeTask:
    def test_mark_completed(self):
        task = ScrapeTask(id="t", mode=DispatchMode.ASYNC, platform="reddit", targets=["u"])
        task.mark_completed({"ok": True})
        assert task.status is TaskStatus.COMPLETED
        assert task.result == {"ok": True}
        assert task.completed_at is not None

    def test_mark_failed(self):
        task = ScrapeTask(id="t", mode=DispatchMode.ASYNC, platform="reddit", targets=["u"])
        task.mark_failed("blocked")
        assert task.status is TaskStatus.FAILED
        assert task.error == "blocked"
