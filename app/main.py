import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import yaml
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqladmin import Admin
from starlette.middleware.sessions import SessionMiddleware

from app.admin.views import (
    ActivityAdmin,
    ActivityTypeAdmin,
    AdminAuth,
    CalendarEventAdmin,
    ProfileAdmin,
)
from app.config import settings
from app.context import AppContext, build_context
from app.database import AsyncSessionLocal, create_all_tables, engine, run_migrations
from app.routers.activities import router as activities_router
from app.routers.activity_types import router as activity_types_router
from app.routers.admin_actions import router as admin_actions_router
from app.routers.auth import router as auth_router
from app.routers.calendar import router as calendar_router
from app.routers.health import router as health_router
from app.routers.live import router as live_router
from app.routers.reports import router as reports_router
from app.routers.settings import router as settings_router
from app.routers.users import router as users_router
from app.services.auth import hash_password
from app.services.errors import PortalError
from app.services.event_log import log_event
from app.services.live import build_views
from app.services.scheduler import create_scheduler, register_jobs

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


async def seed_activity_types(ctx: AppContext, path: str = settings.ACTIVITY_TYPES_SEED_PATH) -> int:
    existing = (await ctx.storage.select("activity_types", limit=1)).unwrap()
    if existing:
        return 0
    try:
        with open(path, "r", encoding="utf-8") as fh:
            config = yaml.safe_load(fh) or {}
    except (OSError, yaml.YAMLError) as exc:
        logger.error("Failed to read activity types from %s: %s", path, exc)
        return 0

    seeded = 0
    for entry in config.get("activity_types", []):
        result = await ctx.storage.insert(
            "activity_types",
            {
                "name": entry.get("name", ""),
                "description": entry.get("description"),
                "is_active": entry.get("is_active", True),
                "created_by": "system",
            },
        )
        if result.ok:
            seeded += 1
    logger.info("Activity types seeded from %s (%d)", path, seeded)
    return seeded


async def seed_bootstrap_admin(ctx: AppContext) -> bool:
    email = settings.BOOTSTRAP_ADMIN_EMAIL.strip().lower()
    if not email or not settings.BOOTSTRAP_ADMIN_PASSWORD:
        return False
    existing = (await ctx.storage.select("profiles", filters={"email": email}, limit=1)).unwrap()
    if existing:
        return False
    (
        await ctx.storage.insert(
            "profiles",
            {
                "email": email,
                "full_name": "System Administrator",
                "role": "System Administrator",
                "status": "active",
                "email_verified": True,
                "is_admin": True,
                "password_hash": hash_password(settings.BOOTSTRAP_ADMIN_PASSWORD),
                "approved_by": "system",
            },
        )
    ).unwrap()
    logger.warning("Bootstrap administrator %s created", email)
    return True


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # ── STARTUP ──────────────────────────────────────────────────────────────
    await run_migrations()
    await create_all_tables()
    logger.info("Database tables ready")

    scheduler = create_scheduler()
    ctx = build_context(settings, AsyncSessionLocal, scheduler=scheduler)
    app.state.context = ctx

    await seed_activity_types(ctx)
    await seed_bootstrap_admin(ctx)

    register_jobs(scheduler, ctx)
    scheduler.start()
    logger.info("Scheduler started")

    ctx.views = build_views(settings, ctx.storage, ctx.broker, scheduler)
    for view in ctx.views.values():
        await view.start()
    log_event("info", "system", "Portal started")

    yield

    # ── SHUTDOWN ─────────────────────────────────────────────────────────────
    for view in ctx.views.values():
        view.stop()
    ctx.broker.close()
    scheduler.shutdown(wait=False)
    await ctx.notifier.aclose()
    logger.info("Scheduler stopped")


app = FastAPI(title=settings.APP_NAME, lifespan=lifespan)

# ── Session middleware, MUST be added before routes that use request.session ──
app.add_middleware(SessionMiddleware, secret_key=settings.SECRET_KEY)

# ── Routers ───────────────────────────────────────────────────────────────────
# Registered before the sqladmin mount, which claims everything under /admin.
app.include_router(auth_router, prefix="/auth")
app.include_router(activities_router, prefix="/api/v1")
app.include_router(activity_types_router, prefix="/api/v1")
app.include_router(live_router, prefix="/api/v1")
app.include_router(reports_router, prefix="/api/v1")
app.include_router(calendar_router, prefix="/api/v1")
app.include_router(users_router, prefix="/api/v1/admin")
app.include_router(settings_router, prefix="/api/v1/admin")
app.include_router(admin_actions_router, prefix="/api/v1/admin")
app.include_router(health_router)

# ── Admin ─────────────────────────────────────────────────────────────────────
auth_backend = AdminAuth(secret_key=settings.SECRET_KEY, portal_app=app)
admin = Admin(app, engine, authentication_backend=auth_backend, base_url="/admin")
admin.add_view(ActivityAdmin)
admin.add_view(ActivityTypeAdmin)
admin.add_view(ProfileAdmin)
admin.add_view(CalendarEventAdmin)


# ── Request logging middleware ────────────────────────────────────────────────
@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    duration_ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s → %d [%.1fms]",
        request.method,
        request.url.path,
        response.status_code,
        duration_ms,
    )
    return response


# ── Portal errors → user-facing notices ───────────────────────────────────────
@app.exception_handler(PortalError)
async def portal_error_handler(request: Request, exc: PortalError):
    if exc.status_code >= 500:
        logger.error("%s on %s: %s", exc.kind, request.url.path, exc.notice)
    return JSONResponse(
        {"error": exc.kind, "notice": exc.notice, "fields": exc.fields},
        status_code=exc.status_code,
    )


# ── Global 500 handler ────────────────────────────────────────────────────────
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error("Unhandled exception on %s: %s", request.url.path, exc, exc_info=True)
    return JSONResponse({"error": "internal", "notice": "Something went wrong", "status": 500}, status_code=500)


@app.get("/")
async def index():
    return {"name": settings.APP_NAME, "organisation": settings.ORG_NAME, "tagline": settings.ORG_TAGLINE}
