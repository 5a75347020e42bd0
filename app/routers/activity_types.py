import logging

from fastapi import APIRouter, Depends

from app.context import AppContext, get_context
from app.schemas import (
    ActivityTypeCreate,
    ActivityTypeSchema,
    ActivityTypeUpdate,
    ProfileSchema,
)
from app.services.auth import AuthMode, require_admin, require_viewer
from app.services.errors import NotFound, ValidationFailed
from app.services.event_log import log_event

logger = logging.getLogger(__name__)

router = APIRouter(tags=["activity-types"])

TABLE = "activity_types"


@router.get("/activity-types", response_model=list[ActivityTypeSchema])
async def list_activity_types(
    include_inactive: bool = False,
    auth: AuthMode = Depends(require_viewer),
    ctx: AppContext = Depends(get_context),
) -> list[dict]:
    # inactive types only matter to the admin taxonomy screen
    filters = None if include_inactive and auth.is_admin else {"is_active": True}
    return (await ctx.storage.select(TABLE, filters=filters, order="name")).unwrap()


@router.post("/activity-types", response_model=ActivityTypeSchema, status_code=201)
async def create_activity_type(
    payload: ActivityTypeCreate,
    admin: ProfileSchema = Depends(require_admin),
    ctx: AppContext = Depends(get_context),
) -> dict:
    name = payload.name.strip()
    if not name:
        raise ValidationFailed({"name": "Name is required"})
    existing = (await ctx.storage.select(TABLE, filters={"name": name}, limit=1)).unwrap()
    if existing:
        raise ValidationFailed({"name": "An activity type with this name already exists"})
    row = (
        await ctx.storage.insert(
            TABLE,
            {
                "name": name,
                "description": payload.description or None,
                "is_active": payload.is_active,
                "created_by": admin.email,
            },
        )
    ).unwrap()
    log_event("info", "admin", f"{admin.email} added activity type '{name}'")
    return row


@router.patch("/activity-types/{type_id}", response_model=ActivityTypeSchema)
async def update_activity_type(
    type_id: str,
    payload: ActivityTypeUpdate,
    admin: ProfileSchema = Depends(require_admin),
    ctx: AppContext = Depends(get_context),
) -> dict:
    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    if "name" in changes:
        changes["name"] = changes["name"].strip()
        if not changes["name"]:
            raise ValidationFailed({"name": "Name is required"})
    row = (await ctx.storage.update(TABLE, type_id, changes)).unwrap()
    if row is None:
        raise NotFound("Activity type not found")
    log_event("info", "admin", f"{admin.email} edited activity type '{row['name']}'")
    return row


@router.delete("/activity-types/{type_id}", status_code=204)
async def delete_activity_type(
    type_id: str,
    admin: ProfileSchema = Depends(require_admin),
    ctx: AppContext = Depends(get_context),
) -> None:
    # existing activities keep their type label
    row = (await ctx.storage.delete(TABLE, type_id)).unwrap()
    if row is None:
        raise NotFound("Activity type not found")
    log_event("warn", "admin", f"{admin.email} removed activity type '{row['name']}'")
