"""
Admin console endpoints: live event log, overview counters, demo system
monitor and manual triggers for the scheduled jobs.
Mounted at /api/v1/admin/.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from sqlalchemy import func, select

from app.context import AppContext, get_context
from app.models import Activity, Profile
from app.schemas import ProfileSchema
from app.services.auth import AuthMode, require_admin, require_admin_viewer
from app.services.calendar import send_due_reminders
from app.services.event_log import failure_count, log_event, recent_events
from app.services.scheduler import purge_old_activities

router = APIRouter(tags=["admin-actions"])
logger = logging.getLogger(__name__)


# ── Overview ──────────────────────────────────────────────────────────────────

@router.get("/overview")
async def overview(
    auth: AuthMode = Depends(require_admin_viewer),
    ctx: AppContext = Depends(get_context),
):
    async with ctx.session_factory() as db:
        status_result = await db.execute(
            select(Profile.status, func.count()).group_by(Profile.status)
        )
        users_by_status = {row[0]: row[1] for row in status_result.all()}
        activities_total = (await db.execute(select(func.count(Activity.id)))).scalar_one()

    scheduler = ctx.scheduler
    return JSONResponse({
        "users": {
            "active":   users_by_status.get("active", 0),
            "pending":  users_by_status.get("pending", 0),
            "inactive": users_by_status.get("inactive", 0),
        },
        "activities_total": activities_total,
        "live_views": {name: view.feed.status() for name, view in ctx.views.items()},
        "realtime_subscribers": ctx.broker.subscriber_count,
        "scheduler_jobs": sorted(job.id for job in scheduler.get_jobs()) if scheduler else [],
        "recent_failures": failure_count(),
    })


@router.get("/events")
async def get_events(
    category: Optional[str] = None,
    level: Optional[str] = None,
    limit: int = Query(default=60, ge=1, le=200),
    auth: AuthMode = Depends(require_admin_viewer),
):
    """Recent portal events for the live log view."""
    return JSONResponse(recent_events(limit, category, level))


@router.get("/system-monitor")
async def system_monitor(
    auth: AuthMode = Depends(require_admin_viewer),
    ctx: AppContext = Depends(get_context),
):
    return JSONResponse(ctx.monitor.sample())


# ── Manual triggers ───────────────────────────────────────────────────────────

@router.post("/actions/purge")
async def trigger_purge(
    admin: ProfileSchema = Depends(require_admin),
    ctx: AppContext = Depends(get_context),
):
    log_event("info", "admin", f"{admin.email} triggered a retention purge")
    removed = await purge_old_activities(ctx)
    return JSONResponse({"removed": removed})


@router.post("/actions/send-reminders")
async def trigger_reminders(
    admin: ProfileSchema = Depends(require_admin),
    ctx: AppContext = Depends(get_context),
):
    sent = await send_due_reminders(ctx.storage, ctx.notifier)
    return JSONResponse({"sent": sent})
