"""
Portal event log shown in the admin live events panel.

Sign-ins, activity writes, report exports, admin actions, email delivery and
system jobs each append one line here. Held in process memory only, newest
first, capped at EVENT_LOG_SIZE; a restart starts an empty log.
"""
from collections import deque
from datetime import datetime, timezone
from typing import Literal, Optional, TypedDict, get_args

EventLevel = Literal["info", "success", "warn", "error"]
EventCategory = Literal["login", "logout", "activity", "report", "admin", "email", "system"]

EVENT_LEVELS: frozenset[str] = frozenset(get_args(EventLevel))
EVENT_CATEGORIES: frozenset[str] = frozenset(get_args(EventCategory))
EVENT_LOG_SIZE = 200


class PortalEvent(TypedDict):
    time: str  # ISO 8601 UTC
    level: EventLevel
    category: EventCategory
    message: str


EVENT_LOG: deque[PortalEvent] = deque(maxlen=EVENT_LOG_SIZE)


def log_event(level: EventLevel, category: EventCategory, message: str) -> PortalEvent:
    if level not in EVENT_LEVELS:
        raise ValueError(f"Unknown event level: {level}")
    if category not in EVENT_CATEGORIES:
        raise ValueError(f"Unknown event category: {category}")
    event = PortalEvent(
        time=datetime.now(timezone.utc).isoformat(timespec="seconds"),
        level=level,
        category=category,
        message=message,
    )
    EVENT_LOG.appendleft(event)
    return event


def recent_events(
    limit: int = 60,
    category: Optional[str] = None,
    level: Optional[str] = None,
) -> list[PortalEvent]:
    """Newest first. An unrecognised category or level simply matches nothing."""
    matched = (
        e for e in EVENT_LOG
        if (category is None or e["category"] == category) and (level is None or e["level"] == level)
    )
    return [e for _, e in zip(range(limit), matched)]


def failure_count(category: Optional[str] = None) -> int:
    """Number of error-level events still held, optionally for one category."""
    return sum(
        1 for e in EVENT_LOG
        if e["level"] == "error" and (category is None or e["category"] == category)
    )
