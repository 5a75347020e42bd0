"""
Activity statistics.

Pure functions over a sequence of ActivityRecord with an injected "now", so
every figure on the dashboards is reproducible in tests.
"""
import math
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional, Sequence

from app.schemas import ActivityRecord

HOURLY_BUCKET_HOURS = 4


@dataclass(frozen=True)
class HourlyBucket:
    label: str
    start_hour: int
    activity_count: int
    unique_submitters: int


@dataclass(frozen=True)
class TypeCount:
    type: str
    count: int


@dataclass(frozen=True)
class ActivityStats:
    total_count: int
    this_month_count: int
    today_count: int
    total_minutes: int
    total_hours: int
    average_minutes: int
    unique_submitters: int
    active_users: int
    hourly: list[HourlyBucket] = field(default_factory=list)
    by_type: list[TypeCount] = field(default_factory=list)
    computed_at: Optional[datetime] = None


def _local(value: datetime, now: datetime) -> datetime:
    # compare in now's timezone; naive now means naive timestamps
    if now.tzinfo is None or value.tzinfo is None:
        return value.replace(tzinfo=now.tzinfo)
    return value.astimezone(now.tzinfo)


def total_count(activities: Sequence[ActivityRecord]) -> int:
    return len(activities)


def this_month_count(activities: Sequence[ActivityRecord], now: datetime) -> int:
    month_start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    return sum(1 for a in activities if month_start <= _local(a.created_at, now) <= now)


def today_count(activities: Sequence[ActivityRecord], now: datetime) -> int:
    today = now.date()
    return sum(1 for a in activities if a.date == today)


def total_minutes(activities: Sequence[ActivityRecord]) -> int:
    return sum(a.duration or 0 for a in activities)


def total_hours(activities: Sequence[ActivityRecord]) -> int:
    return math.floor(total_minutes(activities) / 60)


def average_minutes(activities: Sequence[ActivityRecord]) -> int:
    if not activities:
        return 0
    # half-up, not banker's rounding
    return math.floor(total_minutes(activities) / len(activities) + 0.5)


def unique_submitters(activities: Sequence[ActivityRecord]) -> int:
    return len({a.submitted_by for a in activities if a.submitted_by})


def active_user_count(
    activities: Sequence[ActivityRecord],
    now: datetime,
    window: timedelta = timedelta(hours=24),
) -> int:
    """Distinct submitters inside the trailing window. Never less than 1."""
    since = now - window
    active = {
        a.submitted_by
        for a in activities
        if a.submitted_by and since <= _local(a.created_at, now) <= now
    }
    return max(1, len(active))


def hourly_buckets(activities: Sequence[ActivityRecord], now: datetime) -> list[HourlyBucket]:
    today = now.date()
    todays = [a for a in activities if a.date == today]
    buckets = []
    for start in range(0, 24, HOURLY_BUCKET_HOURS):
        end = start + HOURLY_BUCKET_HOURS
        in_bucket = [a for a in todays if start <= _local(a.created_at, now).hour < end]
        buckets.append(
            HourlyBucket(
                label=f"{start:02d}:00",
                start_hour=start,
                activity_count=len(in_bucket),
                unique_submitters=unique_submitters(in_bucket),
            )
        )
    return buckets


def type_distribution(activities: Sequence[ActivityRecord]) -> list[TypeCount]:
    counts: "OrderedDict[str, int]" = OrderedDict()
    for a in activities:
        counts[a.type] = counts.get(a.type, 0) + 1
    return [TypeCount(type=t, count=c) for t, c in counts.items()]


def compute_stats(
    activities: Sequence[ActivityRecord],
    now: datetime,
    active_window: timedelta = timedelta(hours=24),
) -> ActivityStats:
    return ActivityStats(
        total_count=total_count(activities),
        this_month_count=this_month_count(activities, now),
        today_count=today_count(activities, now),
        total_minutes=total_minutes(activities),
        total_hours=total_hours(activities),
        average_minutes=average_minutes(activities),
        unique_submitters=unique_submitters(activities),
        active_users=active_user_count(activities, now, active_window),
        hourly=hourly_buckets(activities, now),
        by_type=type_distribution(activities),
        computed_at=now,
    )
