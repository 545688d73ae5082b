"""Next-run computation for scheduled jobs.

Rules, applied to ``now`` in the scheduler's timezone:

1. Start from ``now``'s date at the job's time of day; if that instant is
   not after ``now``, move to the next day.
2. Weekly: move forward to the first date whose weekday equals
   ``day_of_week`` (0 = Sunday). No move if it already matches.
3. Monthly: move to the following calendar month, on ``day_of_month``
   clamped to that month's last day.
"""

from __future__ import annotations

import calendar
from datetime import datetime, timedelta

from orchestrator.models.state import Frequency, ScheduledJob


def sunday_based_weekday(moment: datetime) -> int:
    """Weekday with 0 = Sunday .. 6 = Saturday."""
    return (moment.weekday() + 1) % 7


def compute_next_run(job: ScheduledJob, now: datetime) -> datetime:
    """Return the next instant, strictly after *now*, at which *job* is due.

    The result carries ``now``'s tzinfo.
    """
    hour, minute = job.hour_minute
    candidate = now.replace(hour=hour, minute=minute, second=0, microsecond=0)
    if candidate <= now:
        candidate += timedelta(days=1)

    if job.frequency is Frequency.WEEKLY:
        target = job.day_of_week if job.day_of_week is not None else 0
        candidate += timedelta(days=(target - sunday_based_weekday(candidate)) % 7)

    elif job.frequency is Frequency.MONTHLY:
        year, month = candidate.year, candidate.month + 1
        if month > 12:
            year, month = year + 1, 1
        last_day = calendar.monthrange(year, month)[1]
        day = min(job.day_of_month or 1, last_day)
        candidate = candidate.replace(year=year, month=month, day=day)

    return candidate
