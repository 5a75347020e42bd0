"""
Activity report rendering.

All three exports (xlsx, PDF, Word) are built from the same grouped view of a
filtered activity slice: groups by type in first-seen order, activities in
slice order within a group. An empty slice never produces a file.
"""
import io
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Awaitable, Callable, Optional, Sequence

from openpyxl import Workbook
from openpyxl.styles import Font

from app.config import settings
from app.schemas import ActivityRecord
from app.services import aggregator
from app.services.clock import local_date
from app.services.errors import EmptyReportError
from app.services.pdf import html_to_pdf
from app.templating import env

logger = logging.getLogger(__name__)

DEFAULT_TYPE = "General"
DEFAULT_FACILITY = "HQ"

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
PDF_MEDIA_TYPE = "application/pdf"
WORD_MEDIA_TYPE = "application/msword"


@dataclass(frozen=True)
class ActivityGroup:
    type: str
    activities: tuple[ActivityRecord, ...]


@dataclass(frozen=True)
class RenderedReport:
    filename: str
    media_type: str
    content: bytes


def group_by_type(activities: Sequence[ActivityRecord]) -> list[ActivityGroup]:
    grouped: dict[str, list[ActivityRecord]] = {}
    for activity in activities:
        grouped.setdefault(activity.type or DEFAULT_TYPE, []).append(activity)
    return [ActivityGroup(type=t, activities=tuple(items)) for t, items in grouped.items()]


def report_filename(extension: str, generated_at: datetime, org_name: str = settings.ORG_NAME) -> str:
    org = "_".join(org_name.split())
    return f"{org}_Activities_{generated_at.date().isoformat()}.{extension}"


def format_report_date(value: datetime) -> str:
    return local_date(value).strftime(settings.REPORT_DATE_FORMAT)


def metadata_line(activity: ActivityRecord) -> str:
    return (
        f"{activity.type or DEFAULT_TYPE} "
        f"Date: {format_report_date(activity.created_at)} "
        f"Duration: {activity.duration or 0} minutes"
    )


def facility_line(activity: ActivityRecord) -> str:
    return f"Facility: {activity.facility or DEFAULT_FACILITY}"


def _require_data(activities: Sequence[ActivityRecord]) -> list[ActivityGroup]:
    if not activities:
        raise EmptyReportError()
    return group_by_type(activities)


# ── Spreadsheet ──────────────────────────────────────────────────────────────

def spreadsheet_rows(
    groups: Sequence[ActivityGroup],
    generated_at: datetime,
    org_name: str = settings.ORG_NAME,
) -> list[str]:
    rows = [
        f"{org_name} Activity Report",
        f"Generated on {generated_at.strftime(settings.REPORT_DATE_FORMAT)}",
        "",
    ]
    for group in groups:
        rows.append(group.type.upper())
        for activity in group.activities:
            rows.append(activity.title)
            rows.append(metadata_line(activity))
            if activity.description:
                rows.append(activity.description)
            rows.append(facility_line(activity))
            rows.append("")
        rows.append("")
    return rows


def render_xlsx(
    activities: Sequence[ActivityRecord],
    generated_at: datetime,
    org_name: str = settings.ORG_NAME,
) -> RenderedReport:
    groups = _require_data(activities)
    wb = Workbook()
    ws = wb.active
    ws.title = "Activities"
    ws.column_dimensions["A"].width = 90
    for line in spreadsheet_rows(groups, generated_at, org_name):
        ws.append([line] if line else [])
    ws["A1"].font = Font(bold=True, size=14)

    buffer = io.BytesIO()
    wb.save(buffer)
    logger.info("Rendered xlsx report: %d activities in %d groups", len(activities), len(groups))
    return RenderedReport(
        filename=report_filename("xlsx", generated_at, org_name),
        media_type=XLSX_MEDIA_TYPE,
        content=buffer.getvalue(),
    )


# ── HTML documents (print and Word) ──────────────────────────────────────────

def _render_document(
    template_name: str,
    activities: Sequence[ActivityRecord],
    generated_at: datetime,
    org_name: str,
) -> str:
    groups = _require_data(activities)
    template = env.get_template(template_name)
    return template.render(
        org_name=org_name,
        tagline=settings.ORG_TAGLINE,
        generated_on=generated_at.strftime(settings.REPORT_DATE_FORMAT),
        groups=groups,
        total_activities=aggregator.total_count(activities),
        total_hours=aggregator.total_hours(activities),
        contributors=aggregator.unique_submitters(activities),
        metadata_line=metadata_line,
        facility_line=facility_line,
    )


def render_print_html(
    activities: Sequence[ActivityRecord],
    generated_at: datetime,
    org_name: str = settings.ORG_NAME,
) -> str:
    return _render_document("reports/print.html", activities, generated_at, org_name)


def render_word(
    activities: Sequence[ActivityRecord],
    generated_at: datetime,
    org_name: str = settings.ORG_NAME,
) -> RenderedReport:
    html = _render_document("reports/word.html", activities, generated_at, org_name)
    logger.info("Rendered Word report: %d activities", len(activities))
    return RenderedReport(
        filename=report_filename("doc", generated_at, org_name),
        media_type=WORD_MEDIA_TYPE,
        content=html.encode("utf-8"),
    )


async def render_pdf(
    activities: Sequence[ActivityRecord],
    generated_at: datetime,
    org_name: str = settings.ORG_NAME,
    printer: Optional[Callable[[str], Awaitable[bytes]]] = None,
) -> RenderedReport:
    html = render_print_html(activities, generated_at, org_name)
    content = await (printer or html_to_pdf)(html)
    logger.info("Rendered PDF report: %d activities", len(activities))
    return RenderedReport(
        filename=report_filename("pdf", generated_at, org_name),
        media_type=PDF_MEDIA_TYPE,
        content=content,
    )
