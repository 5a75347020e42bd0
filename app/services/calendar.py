import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from app.config import settings
from app.schemas import CalendarEventCreate, CalendarEventSchema, ProfileSchema
from app.services.auth import is_admin_profile
from app.services.errors import AccessDenied, NotFound, ValidationFailed
from app.services.event_log import log_event
from app.services.notifications import Notifier, reminder_email
from app.services.storage import Storage

logger = logging.getLogger(__name__)

TABLE = "calendar_events"


async def create_event(
    storage: Storage, owner: ProfileSchema, payload: CalendarEventCreate
) -> CalendarEventSchema:
    errors: dict[str, str] = {}
    if not payload.title.strip():
        errors["title"] = "Title is required"
    if payload.start_time is None:
        errors["start_time"] = "Start time is required"
    elif payload.end_time is not None and payload.end_time < payload.start_time:
        errors["end_time"] = "End time must be after the start time"
    if errors:
        raise ValidationFailed(errors)

    row = (
        await storage.insert(
            TABLE,
            {
                "title": payload.title.strip(),
                "description": payload.description or None,
                "email": owner.email,
                "start_time": payload.start_time,
                "end_time": payload.end_time,
                "reminder_sent": False,
                "user_id": owner.id,
            },
        )
    ).unwrap()
    return CalendarEventSchema.model_validate(row)


async def list_events(storage: Storage, owner: ProfileSchema) -> list[CalendarEventSchema]:
    rows = (
        await storage.select(TABLE, filters={"email": owner.email}, order="start_time")
    ).unwrap()
    return [CalendarEventSchema.model_validate(r) for r in rows]


async def delete_event(storage: Storage, owner: ProfileSchema, event_id: str) -> None:
    row = (await storage.get(TABLE, event_id)).unwrap()
    if row is None:
        raise NotFound("Event not found")
    if row["email"] != owner.email and not is_admin_profile(owner):
        raise AccessDenied("You can only remove your own events")
    (await storage.delete(TABLE, event_id)).unwrap()


async def send_due_reminders(
    storage: Storage,
    notifier: Notifier,
    now: Optional[datetime] = None,
    lead: timedelta = timedelta(minutes=settings.REMINDER_LEAD_MINUTES),
) -> int:
    """Email one reminder for every event starting within the lead window."""
    now = now or datetime.now(timezone.utc)
    result = await storage.select(TABLE, filters={"reminder_sent": False})
    if not result.ok:
        logger.error("Reminder scan failed: %s", result.error)
        return 0

    sent = 0
    for row in result.data:
        event = CalendarEventSchema.model_validate(row)
        if not now <= event.start_time <= now + lead:
            continue
        if not await notifier.send(reminder_email(event)):
            continue
        marked = await storage.update(TABLE, event.id, {"reminder_sent": True})
        if not marked.ok:
            logger.error("Could not mark reminder sent for event %s: %s", event.id, marked.error)
            continue
        sent += 1

    if sent:
        log_event("info", "email", f"Sent {sent} calendar reminders")
        logger.info("Sent %d calendar reminders", sent)
    return sent
