import logging
from dataclasses import asdict

from fastapi import APIRouter, Depends

from app.context import AppContext, get_context
from app.schemas import ActivityRecord, VisibilityChange
from app.services.auth import AuthMode, require_viewer
from app.services.errors import AccessDenied, NotFound
from app.services.live import ADMIN_VIEW, LiveActivityView

logger = logging.getLogger(__name__)

router = APIRouter(tags=["live"])


def _view(name: str, auth: AuthMode, ctx: AppContext) -> LiveActivityView:
    view = ctx.views.get(name)
    if view is None:
        raise NotFound(f"No live view named '{name}'")
    if name == ADMIN_VIEW and not auth.is_admin:
        raise AccessDenied("Administrator access required")
    return view


@router.get("/live/{name}/status")
async def live_status(
    name: str,
    auth: AuthMode = Depends(require_viewer),
    ctx: AppContext = Depends(get_context),
) -> dict:
    return _view(name, auth, ctx).feed.status()


@router.get("/live/{name}/feed", response_model=list[ActivityRecord])
async def live_feed(
    name: str,
    auth: AuthMode = Depends(require_viewer),
    ctx: AppContext = Depends(get_context),
) -> list[ActivityRecord]:
    return list(_view(name, auth, ctx).snapshot())


@router.get("/live/{name}/stats")
async def live_stats(
    name: str,
    auth: AuthMode = Depends(require_viewer),
    ctx: AppContext = Depends(get_context),
) -> dict:
    view = _view(name, auth, ctx)
    return {"is_live": view.feed.is_live, **asdict(view.stats)}


@router.post("/live/{name}/visibility")
async def live_visibility(
    name: str,
    payload: VisibilityChange,
    auth: AuthMode = Depends(require_viewer),
    ctx: AppContext = Depends(get_context),
) -> dict:
    view = _view(name, auth, ctx)
    refetched = await view.feed.on_visibility_change(payload.visible)
    return {"refetched": refetched, **view.feed.status()}


@router.post("/live/{name}/refresh")
async def live_refresh(
    name: str,
    auth: AuthMode = Depends(require_viewer),
    ctx: AppContext = Depends(get_context),
) -> dict:
    view = _view(name, auth, ctx)
    refetched = await view.feed.poll_now()
    return {"refetched": refetched, **view.feed.status()}
