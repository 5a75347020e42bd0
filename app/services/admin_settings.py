"""
Typed administrator settings.

Each settings key in the admin_settings table maps to exactly one pydantic
model. Values are validated when written and again when read back; a stored
value that no longer validates is logged and replaced by the defaults.
"""
import logging
from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, Field, ValidationError

from app.services.errors import NotFound, ValidationFailed
from app.services.event_log import log_event
from app.services.storage import Storage

logger = logging.getLogger(__name__)


class DashboardSettings(BaseModel):
    refresh_interval_seconds: int = Field(default=15, ge=5, le=3600)
    auto_refresh: bool = True
    show_live_stats: bool = True
    show_system_load: bool = True
    max_activities_display: int = Field(default=50, ge=10, le=200)

    model_config = {"extra": "forbid"}


class PermissionSettings(BaseModel):
    default_role: str = Field(default="Staff Nurse", min_length=1)
    allow_self_registration: bool = False
    require_approval: bool = True
    allow_role_change: bool = False

    model_config = {"extra": "forbid"}


class DataRetentionSettings(BaseModel):
    retention_period_days: int = Field(default=365, ge=1, le=3650)
    auto_backup: bool = True
    backup_frequency: Literal["daily", "weekly", "monthly"] = "daily"
    export_format: Literal["xlsx", "pdf", "doc"] = "xlsx"

    model_config = {"extra": "forbid"}


SETTINGS_MODELS: dict[str, type[BaseModel]] = {
    "dashboard": DashboardSettings,
    "user_permissions": PermissionSettings,
    "data_retention": DataRetentionSettings,
}


def model_for(key: str) -> type[BaseModel]:
    try:
        return SETTINGS_MODELS[key]
    except KeyError:
        raise NotFound(f"Unknown settings key '{key}'") from None


def validation_fields(exc: ValidationError) -> dict[str, str]:
    return {".".join(str(p) for p in err["loc"]) or "value": err["msg"] for err in exc.errors()}


async def read_settings(storage: Storage, key: str) -> BaseModel:
    model = model_for(key)
    rows = (await storage.select("admin_settings", filters={"setting_key": key}, limit=1)).unwrap()
    if not rows:
        return model()
    try:
        return model.model_validate(rows[0]["setting_value"])
    except ValidationError as exc:
        logger.warning("Stored settings '%s' are invalid, using defaults: %s", key, exc)
        return model()


async def write_settings(storage: Storage, key: str, value: dict, updated_by: str) -> BaseModel:
    model = model_for(key)
    try:
        validated = model.model_validate(value)
    except ValidationError as exc:
        raise ValidationFailed(validation_fields(exc)) from exc

    patch = {
        "setting_value": validated.model_dump(),
        "updated_by": updated_by,
        "updated_at": datetime.now(timezone.utc),
    }
    rows = (await storage.select("admin_settings", filters={"setting_key": key}, limit=1)).unwrap()
    if rows:
        (await storage.update("admin_settings", rows[0]["id"], patch)).unwrap()
    else:
        (await storage.insert("admin_settings", {"setting_key": key, **patch})).unwrap()

    log_event("info", "admin", f"{updated_by} updated {key} settings")
    logger.info("Settings '%s' updated by %s", key, updated_by)
    return validated


async def permission_settings(storage: Storage) -> PermissionSettings:
    return await read_settings(storage, "user_permissions")  # type: ignore[return-value]


async def retention_settings(storage: Storage) -> DataRetentionSettings:
    return await read_settings(storage, "data_retention")  # type: ignore[return-value]
