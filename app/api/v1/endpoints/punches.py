"""
Time-clock endpoints — punching, reports, metrics and exports.

- Punching and "today" act on the authenticated user.
- List / report / metrics: admins see everyone (optionally one user),
  employees only their own records.
- Exports, email delivery and the manual auto-close trigger are admin-only.
"""

from __future__ import annotations

import logging
from datetime import date

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.deps import (get_clock, get_current_active_user, get_db,
                             require_admin)
from app.core.clock import CivilClock
from app.core.config import settings
from app.core.exceptions import InvalidDateRange, RecordNotFound, SweepNotDue
from app.models.user import User
from app.schemas.punch import (EmailReportRequest, EmailReportResponse,
                               PunchMetrics, PunchRead, SweepResultRead)
from app.services import export
from app.services.auto_close import close_open_records, closing_instant
from app.services.mailer import send_report_email
from app.services.metrics import compute_metrics
from app.services.punch_clock import (get_record, get_today_record,
                                      list_records, register_punch,
                                      resolve_scope)

router = APIRouter(prefix="/punches", tags=["punches"])
logger = logging.getLogger(__name__)

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


class DateRange:
    """Query parameters shared by report, metrics and export routes."""

    def __init__(
        self,
        start_date: date = Query(...),
        end_date: date = Query(...),
        user_id: int | None = Query(default=None),
    ):
        if end_date < start_date:
            raise InvalidDateRange()
        self.start_date = start_date
        self.end_date = end_date
        self.user_id = user_id


async def _render(
    fmt: str,
    db: AsyncSession,
    clock: CivilClock,
    start: date,
    end: date,
    user_id: int | None,
) -> tuple[bytes, str, str]:
    """Render an export as ``(content, media type, filename)``."""
    records = await list_records(db, user_id, start, end)
    rows = export.to_export_rows(records, clock.tz)
    filename = export.export_filename(start, end, fmt)

    if fmt == "csv":
        return export.render_csv(rows).encode("utf-8"), "text/csv; charset=utf-8", filename
    if fmt == "xlsx":
        return export.render_xlsx(rows), XLSX_MEDIA_TYPE, filename

    title = f"{settings.COMPANY_NAME} — Relatório de Pontos"
    subtitle = f"{start.strftime('%d/%m/%Y')} a {end.strftime('%d/%m/%Y')}"
    return export.render_pdf(rows, title, subtitle), "application/pdf", filename


def _download(content: bytes, media_type: str, filename: str) -> Response:
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


# ── Punching ────────────────────────────────────────────────────────
@router.post("/punch", response_model=PunchRead)
async def punch(
    db: AsyncSession = Depends(get_db),
    clock: CivilClock = Depends(get_clock),
    current_user: User = Depends(get_current_active_user),
) -> PunchRead:
    """Register the next punch of today (entrada → almoço → retorno → saída)."""
    record = await register_punch(db, current_user.id, clock)
    return PunchRead.from_record(record, clock)


@router.get("/today", response_model=PunchRead | None)
async def today(
    db: AsyncSession = Depends(get_db),
    clock: CivilClock = Depends(get_clock),
    current_user: User = Depends(get_current_active_user),
) -> PunchRead | None:
    """Today's record of the current user, ``null`` before the first punch."""
    record = await get_today_record(db, current_user.id, clock)
    return PunchRead.from_record(record, clock) if record is not None else None


# ── Listing & reports ───────────────────────────────────────────────
@router.get("", response_model=list[PunchRead])
async def list_punches(
    db: AsyncSession = Depends(get_db),
    clock: CivilClock = Depends(get_clock),
    current_user: User = Depends(get_current_active_user),
) -> list[PunchRead]:
    records = await list_records(db, resolve_scope(current_user, None))
    return [PunchRead.from_record(r, clock) for r in reversed(records)]


@router.get("/report", response_model=list[PunchRead])
async def report(
    period: DateRange = Depends(),
    db: AsyncSession = Depends(get_db),
    clock: CivilClock = Depends(get_clock),
    current_user: User = Depends(get_current_active_user),
) -> list[PunchRead]:
    """Records in the period with their worked hours."""
    records = await list_records(
        db,
        resolve_scope(current_user, period.user_id),
        period.start_date,
        period.end_date,
    )
    return [PunchRead.from_record(r, clock) for r in records]


@router.get("/metrics", response_model=PunchMetrics)
async def metrics(
    period: DateRange = Depends(),
    db: AsyncSession = Depends(get_db),
    clock: CivilClock = Depends(get_clock),
    current_user: User = Depends(get_current_active_user),
) -> PunchMetrics:
    records = await list_records(
        db,
        resolve_scope(current_user, period.user_id),
        period.start_date,
        period.end_date,
    )
    snapshot = compute_metrics(
        records,
        period.start_date,
        period.end_date,
        settings.ON_TIME_THRESHOLD,
        clock.now(),
        clock.tz,
    )
    return PunchMetrics.from_snapshot(snapshot)


# ── Exports (admin-only) ────────────────────────────────────────────
@router.get("/export/{fmt}")
async def export_report(
    fmt: str,
    period: DateRange = Depends(),
    db: AsyncSession = Depends(get_db),
    clock: CivilClock = Depends(get_clock),
    _admin: User = Depends(require_admin),
) -> Response:
    """Download the period as ``csv``, ``xlsx`` or ``pdf``."""
    if fmt not in ("csv", "xlsx", "pdf"):
        raise RecordNotFound(f"Unknown export format '{fmt}'")
    content, media_type, filename = await _render(
        fmt, db, clock, period.start_date, period.end_date, period.user_id
    )
    logger.info("Exported %s (%d bytes)", filename, len(content))
    return _download(content, media_type, filename)


@router.post("/export/email", response_model=EmailReportResponse)
async def email_report(
    body: EmailReportRequest,
    db: AsyncSession = Depends(get_db),
    clock: CivilClock = Depends(get_clock),
    _admin: User = Depends(require_admin),
) -> EmailReportResponse:
    """Email the period's report as an attachment."""
    content, media_type, filename = await _render(
        body.format, db, clock, body.start_date, body.end_date, body.user_id
    )
    period = f"{body.start_date.strftime('%d/%m/%Y')} a {body.end_date.strftime('%d/%m/%Y')}"
    result = await send_report_email(
        body.recipient,
        subject=f"Relatório de Pontos — {period}",
        text=f"Segue em anexo o relatório de pontos do período {period}.",
        attachment=(filename, content, media_type.split(";")[0]),
    )
    return EmailReportResponse(**result)


# ── Auto-close (admin trigger) ──────────────────────────────────────
@router.post("/auto-close", response_model=SweepResultRead)
async def auto_close(
    db: AsyncSession = Depends(get_db),
    clock: CivilClock = Depends(get_clock),
    _admin: User = Depends(require_admin),
) -> SweepResultRead:
    """Run today's auto-close sweep now; refused before the cutoff."""
    if clock.now() < closing_instant(clock, clock.today()):
        raise SweepNotDue()
    result = await close_open_records(db, clock)
    return SweepResultRead(
        day=result.day,
        closed=result.closed,
        users=[
            {
                "id": u.id,
                "name": u.name,
                "entrada": clock.localize(u.entrada) if u.entrada else None,
            }
            for u in result.users
        ],
    )


# ── Single record ───────────────────────────────────────────────────
@router.get("/{record_id}", response_model=PunchRead)
async def read_punch(
    record_id: int,
    db: AsyncSession = Depends(get_db),
    clock: CivilClock = Depends(get_clock),
    current_user: User = Depends(get_current_active_user),
) -> PunchRead:
    record = await get_record(db, record_id)
    if not current_user.is_admin and record.user_id != current_user.id:
        # Other users' records are reported as missing
        raise RecordNotFound(f"Punch record {record_id} not found")
    return PunchRead.from_record(record, clock)
