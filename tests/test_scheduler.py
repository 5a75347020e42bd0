from datetime import datetime, timedelta, timezone

import pytest

from app.schemas import CalendarEventCreate, ProfileSchema
from app.services.admin_settings import write_settings
from app.services.calendar import create_event, send_due_reminders
from app.services.clock import local_now
from app.services.errors import ValidationFailed
from app.services.scheduler import purge_old_activities, register_jobs

NOW = datetime(2024, 2, 10, 6, 0, tzinfo=timezone.utc)


def owner(email: str = "nurse@nakuru.go.ke") -> ProfileSchema:
    return ProfileSchema(
        id="user-1",
        email=email,
        full_name="Staff Nurse",
        role="Staff Nurse",
        status="active",
        email_verified=True,
        is_admin=False,
        created_at=NOW,
        last_sign_in_at=None,
        approved_at=None,
        approved_by=None,
    )


class TestJobs:
    @pytest.mark.asyncio
    async def test_register_jobs(self, ctx, scheduler):
        register_jobs(scheduler, ctx)
        assert scheduler.get_job("reminder_job") is not None
        assert scheduler.get_job("purge_job") is not None


class TestPurge:
    @pytest.mark.asyncio
    async def test_purge_uses_retention_period(self, ctx):
        today = local_now().date()
        for title, age in (("ancient", 400), ("recent", 10), ("today", 0)):
            await ctx.storage.insert(
                "activities",
                {"title": title, "type": "General", "date": today - timedelta(days=age),
                 "submitted_by": "nurse@nakuru.go.ke"},
            )

        assert await purge_old_activities(ctx) == 1

        await write_settings(ctx.storage, "data_retention", {"retention_period_days": 5}, "admin@nakuru.go.ke")
        assert await purge_old_activities(ctx) == 1
        remaining = (await ctx.storage.select("activities")).unwrap()
        assert [r["title"] for r in remaining] == ["today"]


class TestReminders:
    @pytest.mark.asyncio
    async def test_due_events_get_one_reminder(self, ctx):
        for title, offset in (("Soon", 30), ("Later", 180), ("Past", -10)):
            await create_event(
                ctx.storage, owner(), CalendarEventCreate(title=title, start_time=NOW + timedelta(minutes=offset))
            )

        assert await send_due_reminders(ctx.storage, ctx.notifier, now=NOW) == 1
        assert [e.subject for e in ctx.notifier.outbox] == ["🔔 Reminder: Soon - Starting in 1 Hour"]

        # already marked, not sent twice
        assert await send_due_reminders(ctx.storage, ctx.notifier, now=NOW) == 0
        rows = (await ctx.storage.select("calendar_events", filters={"title": "Soon"})).unwrap()
        assert rows[0]["reminder_sent"] is True

    @pytest.mark.asyncio
    async def test_event_validation(self, ctx):
        with pytest.raises(ValidationFailed) as info:
            await create_event(
                ctx.storage,
                owner(),
                CalendarEventCreate(title="", start_time=NOW, end_time=NOW - timedelta(hours=1)),
            )
        assert set(info.value.fields) == {"title", "end_time"}
