import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from app.context import AppContext, get_context
from app.schemas import ProfileSchema, UserCreate, UserUpdate
from app.services import users
from app.services.auth import require_admin

logger = logging.getLogger(__name__)

router = APIRouter(tags=["users"])


@router.get("/users", response_model=list[ProfileSchema])
async def list_users(
    status: Optional[str] = Query(default=None, pattern="^(active|pending|inactive)$"),
    admin: ProfileSchema = Depends(require_admin),
    ctx: AppContext = Depends(get_context),
) -> list[ProfileSchema]:
    return await users.list_users(ctx.storage, status)


@router.get("/users/roles")
async def suggested_roles(admin: ProfileSchema = Depends(require_admin)) -> list[str]:
    return users.SUGGESTED_ROLES


@router.post("/users", status_code=201)
async def create_user(
    payload: UserCreate,
    admin: ProfileSchema = Depends(require_admin),
    ctx: AppContext = Depends(get_context),
):
    profile, generated = await users.create_user(ctx.storage, ctx.notifier, payload, admin.email)
    # the generated password is shown once so the admin can hand it over
    return {"profile": profile, "generated_password": generated}


@router.patch("/users/{user_id}", response_model=ProfileSchema)
async def update_user(
    user_id: str,
    payload: UserUpdate,
    admin: ProfileSchema = Depends(require_admin),
    ctx: AppContext = Depends(get_context),
) -> ProfileSchema:
    return await users.update_user(ctx.storage, user_id, payload, admin.email)


@router.post("/users/{user_id}/approve", response_model=ProfileSchema)
async def approve_user(
    user_id: str,
    admin: ProfileSchema = Depends(require_admin),
    ctx: AppContext = Depends(get_context),
) -> ProfileSchema:
    return await users.approve_user(ctx.storage, ctx.notifier, user_id, admin.email)


@router.post("/users/{user_id}/reject", status_code=204)
async def reject_user(
    user_id: str,
    admin: ProfileSchema = Depends(require_admin),
    ctx: AppContext = Depends(get_context),
) -> None:
    await users.reject_user(ctx.storage, user_id, admin.email)


@router.delete("/users/{user_id}", status_code=204)
async def delete_user(
    user_id: str,
    admin: ProfileSchema = Depends(require_admin),
    ctx: AppContext = Depends(get_context),
) -> None:
    await users.delete_user(ctx.storage, user_id, admin)
