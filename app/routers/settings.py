import logging

from fastapi import APIRouter, Body, Depends

from app.context import AppContext, get_context
from app.schemas import ProfileSchema
from app.services import admin_settings
from app.services.auth import AuthMode, require_admin, require_admin_viewer

logger = logging.getLogger(__name__)

router = APIRouter(tags=["settings"])


@router.get("/settings")
async def list_settings(
    auth: AuthMode = Depends(require_admin_viewer),
    ctx: AppContext = Depends(get_context),
) -> dict[str, dict]:
    return {
        key: (await admin_settings.read_settings(ctx.storage, key)).model_dump()
        for key in admin_settings.SETTINGS_MODELS
    }


@router.get("/settings/{key}")
async def get_settings(
    key: str,
    auth: AuthMode = Depends(require_admin_viewer),
    ctx: AppContext = Depends(get_context),
) -> dict:
    return (await admin_settings.read_settings(ctx.storage, key)).model_dump()


@router.put("/settings/{key}")
async def put_settings(
    key: str,
    value: dict = Body(...),
    admin: ProfileSchema = Depends(require_admin),
    ctx: AppContext = Depends(get_context),
) -> dict:
    saved = await admin_settings.write_settings(ctx.storage, key, value, admin.email)
    return saved.model_dump()
