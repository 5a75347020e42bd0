import logging
from dataclasses import asdict
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import HTMLResponse, Response

from app.context import AppContext, get_context
from app.schemas import ActivityRecord, ProfileSchema
from app.services import activities, reports
from app.services.aggregator import compute_stats
from app.services.auth import require_user
from app.services.clock import local_now
from app.services.errors import ValidationFailed
from app.services.event_log import log_event
from app.services.filters import DateRange, FilterField, ReportFilter, apply_filters

logger = logging.getLogger(__name__)

router = APIRouter(tags=["reports"])


def report_filter(
    date_range: DateRange = DateRange.ALL,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    activity_type: str = Query(default="all", alias="type"),
    field: FilterField = FilterField.DATE,
) -> ReportFilter:
    if date_range == DateRange.CUSTOM and start_date and end_date and start_date > end_date:
        raise ValidationFailed({"end_date": "End date must be on or after the start date"})
    return ReportFilter(
        date_range=date_range,
        start_date=start_date,
        end_date=end_date,
        activity_type=activity_type,
        field=field,
    )


async def _slice(
    ctx: AppContext,
    user: ProfileSchema,
    scope: str,
    flt: ReportFilter,
) -> list[ActivityRecord]:
    records = await activities.list_activities(ctx.storage, user, all_users=scope == "all")
    return apply_filters(records, flt, local_now())


def _download(report: reports.RenderedReport) -> Response:
    return Response(
        content=report.content,
        media_type=report.media_type,
        headers={"Content-Disposition": f'attachment; filename="{report.filename}"'},
    )


@router.get("/reports/summary")
async def report_summary(
    scope: str = Query(default="mine", pattern="^(mine|all)$"),
    flt: ReportFilter = Depends(report_filter),
    user: ProfileSchema = Depends(require_user),
    ctx: AppContext = Depends(get_context),
) -> dict:
    selected = await _slice(ctx, user, scope, flt)
    groups = reports.group_by_type(selected)
    return {
        "stats": asdict(compute_stats(selected, local_now())),
        "groups": [{"type": g.type, "count": len(g.activities)} for g in groups],
    }


@router.get("/reports/print", response_class=HTMLResponse)
async def report_print(
    scope: str = Query(default="mine", pattern="^(mine|all)$"),
    flt: ReportFilter = Depends(report_filter),
    user: ProfileSchema = Depends(require_user),
    ctx: AppContext = Depends(get_context),
) -> HTMLResponse:
    selected = await _slice(ctx, user, scope, flt)
    return HTMLResponse(reports.render_print_html(selected, local_now()))


@router.get("/reports/export/{fmt}")
async def report_export(
    fmt: str,
    scope: str = Query(default="mine", pattern="^(mine|all)$"),
    flt: ReportFilter = Depends(report_filter),
    user: ProfileSchema = Depends(require_user),
    ctx: AppContext = Depends(get_context),
) -> Response:
    selected = await _slice(ctx, user, scope, flt)
    now = local_now()
    if fmt == "xlsx":
        report = reports.render_xlsx(selected, now)
    elif fmt == "doc":
        report = reports.render_word(selected, now)
    elif fmt == "pdf":
        report = await reports.render_pdf(selected, now)
    else:
        raise ValidationFailed({"format": "Format must be one of: xlsx, pdf, doc"})
    log_event("info", "report", f"{user.email} exported {len(selected)} activities as {fmt}")
    return _download(report)
