import logging

from fastapi import APIRouter, Depends
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from app.context import AppContext, get_context
from app.models import Activity, Profile

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health")
async def health_check(ctx: AppContext = Depends(get_context)) -> dict:
    # Check DB
    db_status = "ok"
    activities_total = 0
    users_pending = 0
    try:
        async with ctx.session_factory() as db:
            activities_total = (
                await db.execute(select(func.count(Activity.id)))
            ).scalar_one()
            users_pending = (
                await db.execute(
                    select(func.count(Profile.id)).where(Profile.status == "pending")
                )
            ).scalar_one()
    except SQLAlchemyError as exc:
        logger.error("Health check DB query failed: %s", exc)
        db_status = "error"

    # Scheduler state
    scheduler = ctx.scheduler
    scheduler_status = "running" if scheduler and scheduler.running else "stopped"

    realtime = {name: view.feed.state.value for name, view in ctx.views.items()}

    overall_status = "ok"
    if db_status == "error":
        overall_status = "degraded"

    return {
        "status": overall_status,
        "db": db_status,
        "activities_total": activities_total,
        "users_pending_approval": users_pending,
        "scheduler": scheduler_status,
        "realtime": realtime,
        "email": "dry_run" if ctx.notifier.dry_run else "live",
    }
