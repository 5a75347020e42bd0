import logging
from datetime import timedelta

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from app.config import settings
from app.context import AppContext
from app.services.admin_settings import retention_settings
from app.services.calendar import send_due_reminders
from app.services.clock import local_now
from app.services.errors import StorageError
from app.services.event_log import log_event

logger = logging.getLogger(__name__)


def create_scheduler() -> AsyncIOScheduler:
    return AsyncIOScheduler(timezone="UTC")


def register_jobs(scheduler: AsyncIOScheduler, ctx: AppContext) -> None:
    scheduler.add_job(
        send_reminders,
        "interval",
        minutes=settings.REMINDER_INTERVAL_MINUTES,
        args=[ctx],
        id="reminder_job",
        replace_existing=True,
    )
    scheduler.add_job(
        purge_old_activities,
        "cron",
        hour=2,
        minute=0,
        args=[ctx],
        id="purge_job",
        replace_existing=True,
    )


async def send_reminders(ctx: AppContext) -> None:
    sent = await send_due_reminders(ctx.storage, ctx.notifier)
    logger.debug("Reminder sweep: %d sent", sent)


async def purge_old_activities(ctx: AppContext) -> int:
    """
    Delete activities whose logged date is older than the configured
    retention period (data_retention settings, default 365 days).
    """
    try:
        retention = await retention_settings(ctx.storage)
    except StorageError as exc:
        logger.error("Purge skipped, settings unavailable: %s", exc)
        return 0

    cutoff = local_now().date() - timedelta(days=retention.retention_period_days)
    result = await ctx.storage.delete_before("activities", "date", cutoff)
    if not result.ok:
        log_event("error", "system", f"Purge failed: {result.error}")
        return 0

    removed = result.data
    log_event("info", "system", f"Purge: removed {removed} activities dated before {cutoff.isoformat()}")
    logger.info("Purged %d activities older than %d days", removed, retention.retention_period_days)
    return removed
