"""
Activity writes. Authors change their own activities, administrators any.
"""
import logging
from typing import Optional

from app.schemas import ActivityCreate, ActivityRecord, ActivityUpdate, ProfileSchema
from app.services.auth import is_admin_profile
from app.services.errors import AccessDenied, NotFound, ValidationFailed
from app.services.event_log import log_event
from app.services.notifications import Notifier, activity_logged_email
from app.services.storage import Storage

logger = logging.getLogger(__name__)

TABLE = "activities"


def validate_activity(
    title: Optional[str],
    type_: Optional[str],
    date_present: bool,
    duration: Optional[int],
    partial: bool = False,
) -> None:
    errors: dict[str, str] = {}
    if (not partial or title is not None) and not (title or "").strip():
        errors["title"] = "Title is required"
    if (not partial or type_ is not None) and not (type_ or "").strip():
        errors["type"] = "Activity type is required"
    if not partial and not date_present:
        errors["date"] = "Date is required"
    if duration is not None and duration < 0:
        errors["duration"] = "Duration cannot be negative"
    if errors:
        raise ValidationFailed(errors)


async def list_activities(
    storage: Storage,
    viewer: ProfileSchema,
    all_users: bool = False,
    limit: Optional[int] = None,
) -> list[ActivityRecord]:
    filters = None
    if not (all_users and is_admin_profile(viewer)):
        filters = {"submitted_by": viewer.email}
    rows = (await storage.select(TABLE, filters=filters, order="-created_at", limit=limit)).unwrap()
    return [ActivityRecord.model_validate(r) for r in rows]


async def create_activity(
    storage: Storage,
    notifier: Notifier,
    author: ProfileSchema,
    payload: ActivityCreate,
) -> ActivityRecord:
    validate_activity(payload.title, payload.type, payload.date is not None, payload.duration)
    row = (
        await storage.insert(
            TABLE,
            {
                "title": payload.title.strip(),
                "type": payload.type.strip(),
                "description": payload.description or None,
                "facility": payload.facility or None,
                "duration": payload.duration,
                "date": payload.date,
                "submitted_by": author.email,
                "user_id": author.id,
            },
        )
    ).unwrap()
    record = ActivityRecord.model_validate(row)
    notifier.send_in_background(activity_logged_email(record))
    log_event("success", "activity", f"{author.email} logged '{record.title}'")
    return record


async def _owned(storage: Storage, actor: ProfileSchema, activity_id: str) -> dict:
    row = (await storage.get(TABLE, activity_id)).unwrap()
    if row is None:
        raise NotFound("Activity not found")
    if row["submitted_by"] != actor.email and not is_admin_profile(actor):
        raise AccessDenied("You can only change your own activities")
    return row


async def update_activity(
    storage: Storage,
    actor: ProfileSchema,
    activity_id: str,
    patch: ActivityUpdate,
) -> ActivityRecord:
    changes = patch.model_dump(exclude_unset=True)
    missing = {
        field: message
        for field, message in (
            ("title", "Title is required"),
            ("type", "Activity type is required"),
            ("date", "Date is required"),
        )
        if field in changes and changes[field] is None
    }
    if missing:
        raise ValidationFailed(missing)
    validate_activity(
        changes.get("title"),
        changes.get("type"),
        True,
        changes.get("duration"),
        partial=True,
    )
    for field in ("title", "type"):
        if field in changes:
            changes[field] = changes[field].strip()
    await _owned(storage, actor, activity_id)
    row = (await storage.update(TABLE, activity_id, changes)).unwrap()
    if row is None:
        raise NotFound("Activity not found")
    log_event("info", "activity", f"{actor.email} edited activity '{row['title']}'")
    return ActivityRecord.model_validate(row)


async def delete_activity(storage: Storage, actor: ProfileSchema, activity_id: str) -> None:
    row = await _owned(storage, actor, activity_id)
    (await storage.delete(TABLE, activity_id)).unwrap()
    log_event("warn", "activity", f"{actor.email} deleted activity '{row['title']}'")
