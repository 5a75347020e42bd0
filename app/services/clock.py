from datetime import date, datetime, timedelta, timezone

from app.config import settings


def portal_timezone() -> timezone:
    return timezone(timedelta(hours=settings.UTC_OFFSET_HOURS))


def local_now() -> datetime:
    return datetime.now(portal_timezone())


def to_local(value: datetime) -> datetime:
    # naive timestamps coming out of storage are UTC
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(portal_timezone())


def local_date(value: datetime) -> date:
    return to_local(value).date()
