import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from app.context import AppContext, get_context
from app.schemas import ActivityCreate, ActivityRecord, ActivityUpdate, ProfileSchema
from app.services import activities
from app.services.auth import require_user

logger = logging.getLogger(__name__)

router = APIRouter(tags=["activities"])


@router.get("/activities", response_model=list[ActivityRecord])
async def list_activities(
    scope: str = Query(default="mine", pattern="^(mine|all)$"),
    limit: Optional[int] = Query(default=None, ge=1, le=1000),
    user: ProfileSchema = Depends(require_user),
    ctx: AppContext = Depends(get_context),
) -> list[ActivityRecord]:
    return await activities.list_activities(ctx.storage, user, all_users=scope == "all", limit=limit)


@router.post("/activities", response_model=ActivityRecord, status_code=201)
async def create_activity(
    payload: ActivityCreate,
    user: ProfileSchema = Depends(require_user),
    ctx: AppContext = Depends(get_context),
) -> ActivityRecord:
    return await activities.create_activity(ctx.storage, ctx.notifier, user, payload)


@router.patch("/activities/{activity_id}", response_model=ActivityRecord)
async def update_activity(
    activity_id: str,
    payload: ActivityUpdate,
    user: ProfileSchema = Depends(require_user),
    ctx: AppContext = Depends(get_context),
) -> ActivityRecord:
    return await activities.update_activity(ctx.storage, user, activity_id, payload)


@router.delete("/activities/{activity_id}", status_code=204)
async def delete_activity(
    activity_id: str,
    user: ProfileSchema = Depends(require_user),
    ctx: AppContext = Depends(get_context),
) -> None:
    await activities.delete_activity(ctx.storage, user, activity_id)
