from fastapi import APIRouter, Depends

from app.context import AppContext, get_context
from app.schemas import CalendarEventCreate, CalendarEventSchema, ProfileSchema
from app.services import calendar
from app.services.auth import require_user

router = APIRouter(tags=["calendar"])


@router.get("/calendar/events", response_model=list[CalendarEventSchema])
async def list_events(
    user: ProfileSchema = Depends(require_user),
    ctx: AppContext = Depends(get_context),
) -> list[CalendarEventSchema]:
    return await calendar.list_events(ctx.storage, user)


@router.post("/calendar/events", response_model=CalendarEventSchema, status_code=201)
async def create_event(
    payload: CalendarEventCreate,
    user: ProfileSchema = Depends(require_user),
    ctx: AppContext = Depends(get_context),
) -> CalendarEventSchema:
    return await calendar.create_event(ctx.storage, user, payload)


@router.delete("/calendar/events/{event_id}", status_code=204)
async def delete_event(
    event_id: str,
    user: ProfileSchema = Depends(require_user),
    ctx: AppContext = Depends(get_context),
) -> None:
    await calendar.delete_event(ctx.storage, user, event_id)
