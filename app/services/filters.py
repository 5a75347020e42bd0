"""
Report filter engine.

Date-range and type predicates over activity snapshots. Reports filter on the
activity's logged calendar date by default; the created_at timestamp is
available for callers that care about when the row was recorded.
"""
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Iterable, Optional

from app.schemas import ActivityRecord

ALL_TYPES = "all"


class DateRange(str, Enum):
    ALL = "all"
    TODAY = "today"
    WEEK = "week"
    MONTH = "month"
    LAST_30_DAYS = "last_30_days"
    CUSTOM = "custom"


class FilterField(str, Enum):
    DATE = "date"
    CREATED_AT = "created_at"


@dataclass(frozen=True)
class ReportFilter:
    date_range: DateRange = DateRange.ALL
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    activity_type: str = ALL_TYPES
    field: FilterField = FilterField.DATE


def date_bounds(
    date_range: DateRange,
    today: date,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
) -> tuple[Optional[date], Optional[date]]:
    """Inclusive (lower, upper) bounds; None means open on that side."""
    if date_range == DateRange.TODAY:
        return today, today
    if date_range == DateRange.WEEK:
        return today - timedelta(days=7), today
    if date_range == DateRange.MONTH:
        return today.replace(day=1), today
    if date_range == DateRange.LAST_30_DAYS:
        return today - timedelta(days=30), today
    if date_range == DateRange.CUSTOM:
        return start_date, end_date
    return None, None


def _field_value(activity: ActivityRecord, field: FilterField, now: datetime) -> date:
    if field == FilterField.CREATED_AT:
        created = activity.created_at
        if now.tzinfo is not None and created.tzinfo is not None:
            created = created.astimezone(now.tzinfo)
        return created.date()
    return activity.date


def matches_type(activity: ActivityRecord, activity_type: str) -> bool:
    if not activity_type or activity_type.lower() == ALL_TYPES:
        return True
    return (activity.type or "").casefold() == activity_type.casefold()


def apply_filters(
    activities: Iterable[ActivityRecord],
    report_filter: ReportFilter,
    now: datetime,
) -> list[ActivityRecord]:
    lower, upper = date_bounds(
        report_filter.date_range, now.date(), report_filter.start_date, report_filter.end_date
    )
    result = []
    for activity in activities:
        value = _field_value(activity, report_filter.field, now)
        if lower is not None and value < lower:
            continue
        if upper is not None and value > upper:
            continue
        if not matches_type(activity, report_filter.activity_type):
            continue
        result.append(activity)
    return result
