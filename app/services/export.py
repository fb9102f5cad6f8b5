"""
Report exports — flat rows shared by the CSV, XLSX and PDF renderers.
"""

from __future__ import annotations

import csv
import io
from collections.abc import Iterable, Sequence
from dataclasses import astuple, dataclass
from datetime import date, datetime, timezone, tzinfo

from openpyxl import Workbook
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.lib.units import cm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from app.models.punch import PunchRecord
from app.services.timesheet import PLACEHOLDER, worked_duration_label

STATUS_COMPLETE = "Complete"
STATUS_PARTIAL = "Partial"
STATUS_ABSENT = "Absent"

HEADERS = (
    "Employee",
    "Date",
    "Entrada",
    "Almoço",
    "Retorno",
    "Saída",
    "Worked",
    "Status",
    "Auto-closed",
)


@dataclass
class ExportRow:
    employee: str
    date: str
    entrada: str
    almoco: str
    retorno: str
    saida: str
    worked: str
    status: str
    auto_closed: str


def _fmt_time(value: datetime | None, tz: tzinfo) -> str:
    if value is None:
        return PLACEHOLDER
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(tz).strftime("%H:%M")


def status_label(record: PunchRecord) -> str:
    if record.saida is not None:
        return STATUS_COMPLETE
    if record.entrada is not None:
        return STATUS_PARTIAL
    return STATUS_ABSENT


def to_export_rows(records: Iterable[PunchRecord], tz: tzinfo) -> list[ExportRow]:
    """One row per record; the user relationship must be loaded."""
    return [
        ExportRow(
            employee=record.user.name if record.user is not None else str(record.user_id),
            date=record.date.strftime("%d/%m/%Y"),
            entrada=_fmt_time(record.entrada, tz),
            almoco=_fmt_time(record.almoco, tz),
            retorno=_fmt_time(record.retorno, tz),
            saida=_fmt_time(record.saida, tz),
            worked=worked_duration_label(record) or PLACEHOLDER,
            status=status_label(record),
            auto_closed="Yes" if record.auto_closed else "No",
        )
        for record in records
    ]


def export_filename(start: date, end: date, ext: str) -> str:
    return f"pontos-{start.isoformat()}-{end.isoformat()}.{ext}"


# ── Renderers ───────────────────────────────────────────────────────
def render_csv(rows: Sequence[ExportRow]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(HEADERS)
    for row in rows:
        writer.writerow(astuple(row))
    return buffer.getvalue()


def render_xlsx(rows: Sequence[ExportRow], sheet_title: str = "Pontos") -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = sheet_title

    header_font = Font(bold=True, color="FFFFFF")
    header_fill = PatternFill(start_color="1E293B", end_color="1E293B", fill_type="solid")
    ws.append(HEADERS)
    for cell in ws[1]:
        cell.font = header_font
        cell.fill = header_fill
        cell.alignment = Alignment(horizontal="center")

    for row in rows:
        ws.append(astuple(row))

    for idx, header in enumerate(HEADERS, start=1):
        width = max([len(header)] + [len(astuple(r)[idx - 1]) for r in rows])
        ws.column_dimensions[get_column_letter(idx)].width = width + 2
    ws.freeze_panes = "A2"

    buffer = io.BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


def render_pdf(rows: Sequence[ExportRow], title: str, subtitle: str = "") -> bytes:
    buffer = io.BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=landscape(A4),
        rightMargin=1.2 * cm,
        leftMargin=1.2 * cm,
        topMargin=1.2 * cm,
        bottomMargin=1.2 * cm,
        title=title,
    )
    styles = getSampleStyleSheet()

    story = [Paragraph(title, styles["Title"])]
    if subtitle:
        story.append(Paragraph(subtitle, styles["Normal"]))
    story.append(Spacer(1, 0.4 * cm))

    table = Table([list(HEADERS)] + [list(astuple(r)) for r in rows], repeatRows=1)
    table.setStyle(
        TableStyle(
            [
                ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor("#1e293b")),
                ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
                ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
                ("FONTSIZE", (0, 0), (-1, -1), 8),
                ("ALIGN", (1, 0), (-1, -1), "CENTER"),
                ("GRID", (0, 0), (-1, -1), 0.25, colors.HexColor("#cbd5e1")),
                ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.white, colors.HexColor("#f1f5f9")]),
            ]
        )
    )
    story.append(table)
    if not rows:
        story.append(Spacer(1, 0.4 * cm))
        story.append(Paragraph("No records in this period.", styles["Italic"]))

    doc.build(story)
    return buffer.getvalue()
