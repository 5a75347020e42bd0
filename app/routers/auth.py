import logging

from fastapi import APIRouter, Depends, Request

from app.config import settings
from app.context import AppContext, get_context
from app.schemas import DemoRoleRequest, LoginRequest, ProfileSchema, RegisterRequest
from app.services import users
from app.services.auth import Authenticated, AuthMode, DemoRole, get_auth
from app.services.errors import AccessDenied, ValidationFailed
from app.services.event_log import log_event

logger = logging.getLogger(__name__)

router = APIRouter(tags=["auth"])


@router.post("/register", status_code=201)
async def register(payload: RegisterRequest, ctx: AppContext = Depends(get_context)):
    profile = await users.register(ctx.storage, payload)
    if profile.status == "pending":
        notice = "Registration received. An administrator will review your account."
    else:
        notice = "Registration complete, you can now sign in."
    return {"profile": profile, "notice": notice}


@router.post("/login", response_model=ProfileSchema)
async def login(
    payload: LoginRequest,
    request: Request,
    ctx: AppContext = Depends(get_context),
) -> ProfileSchema:
    profile = await users.authenticate(ctx.storage, payload.email, payload.password)
    request.session.clear()
    request.session["user_id"] = profile.id
    return profile


@router.post("/logout")
async def logout(request: Request):
    user_id = request.session.get("user_id")
    request.session.clear()
    if user_id:
        log_event("info", "logout", f"User {user_id} signed out")
    return {"ok": True}


@router.get("/me")
async def me(auth: AuthMode = Depends(get_auth)):
    if isinstance(auth, Authenticated):
        return {"mode": "authenticated", "profile": auth.profile, "is_admin": auth.is_admin}
    if isinstance(auth, DemoRole):
        return {"mode": "demo", "role": auth.role, "is_admin": auth.is_admin}
    return {"mode": "unauthenticated"}


@router.post("/demo-role")
async def demo_role(payload: DemoRoleRequest, request: Request):
    if not settings.ALLOW_DEMO_ROLE:
        raise AccessDenied("Demo mode is disabled")
    if payload.role not in users.SUGGESTED_ROLES and payload.role not in settings.ADMIN_ROLES:
        raise ValidationFailed({"role": "Unknown role"})
    request.session.pop("user_id", None)
    request.session["demo_role"] = payload.role
    logger.info("Demo role selected: %s", payload.role)
    return {"mode": "demo", "role": payload.role}
