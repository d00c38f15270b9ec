"""
Creator API – Exam schedule exports.
"""
import csv
import os
import re
from io import BytesIO, StringIO

from django.conf import settings
from django.contrib.auth.decorators import login_required
from django.http import HttpResponse
from django.utils import timezone
from django.views.decorators.http import require_GET

from core.scheduling.derivation import (
    ALL_STATUSES, TIER_CRITICAL, TIER_WARNING, compute_fill_ratio, filter_rows,
    flatten_to_date_rows, group_rows_by_exam_type, status_badge,
)
from core.scheduling.records import ExamTypeRecord
from core.scheduling.timestamps import format_wall_clock
from core.services import ExamService

from .helpers import organization_required

HEADERS = [
    'Exam', 'Code', 'Price', 'Registration Deadline', 'Date', 'Status',
    'Locations', 'Registrations', 'Capacity', 'Fill %',
]


def _safe_filename(name: str) -> str:
    """Sanitize a string for safe use in Content-Disposition headers."""
    return re.sub(r'[^\w\-.]', '_', name)


def _export_rows(request):
    """Rows in screen order (grouped by exam), honouring ?search= and ?status=."""
    exam_types = [
        ExamTypeRecord.from_dict(exam_type.to_dict())
        for exam_type in ExamService.list_exams(request.organization.id)
    ]
    rows = filter_rows(
        flatten_to_date_rows(exam_types),
        request.GET.get('search', ''),
        request.GET.get('status', ALL_STATUSES),
    )
    for group in group_rows_by_exam_type(rows):
        for row in group.rows:
            fill = compute_fill_ratio(row.current_registrations, row.max_participants)
            yield [
                row.exam_name,
                row.code_name,
                str(row.price),
                format_wall_clock(row.registration_deadline) or '',
                format_wall_clock(row.scheduled_at) or '',
                status_badge(row.status).label,
                row.locations_display if row.has_date else '',
                row.current_registrations,
                row.max_participants,
                fill.percentage,
            ]


def _filename(request, extension):
    stamp = timezone.localtime().strftime('%Y%m%d_%H%M')
    return _safe_filename(f'{request.organization.name}_exam_dates_{stamp}.{extension}')


@login_required
@require_GET
@organization_required
def export_exam_dates_csv(request):
    """GET /api/creator/reports/exam-dates/csv"""
    output = StringIO()
    writer = csv.writer(output)
    writer.writerow(HEADERS)
    for row in _export_rows(request):
        writer.writerow(row)

    response = HttpResponse(output.getvalue(), content_type='text/csv')
    response['Content-Disposition'] = f'attachment; filename="{_filename(request, "csv")}"'
    return response


@login_required
@require_GET
@organization_required
def export_exam_dates_xlsx(request):
    """GET /api/creator/reports/exam-dates/xlsx"""
    from openpyxl import Workbook
    from openpyxl.styles import Alignment, Font, PatternFill
    from openpyxl.utils import get_column_letter

    wb = Workbook()
    ws = wb.active
    ws.title = 'Exam Dates'

    header_fill = PatternFill(start_color='4472C4', end_color='4472C4', fill_type='solid')
    header_font = Font(bold=True, color='FFFFFF', size=11)
    header_alignment = Alignment(horizontal='center', vertical='center')

    last_col_letter = get_column_letter(len(HEADERS))
    ws.merge_cells(f'A1:{last_col_letter}1')
    ws['A1'] = f'{request.organization.name} - Exam Schedule'
    ws['A1'].font = Font(bold=True, size=14)
    ws['A1'].alignment = Alignment(horizontal='center')

    ws.merge_cells(f'A2:{last_col_letter}2')
    ws['A2'] = f"Generated on: {timezone.localtime().strftime('%Y-%m-%d %H:%M')}"
    ws['A2'].alignment = Alignment(horizontal='center')

    for col_num, header in enumerate(HEADERS, 1):
        cell = ws.cell(row=4, column=col_num)
        cell.value = header
        cell.fill = header_fill
        cell.font = header_font
        cell.alignment = header_alignment

    tier_fills = {
        TIER_CRITICAL: PatternFill(start_color='FFC7CE', end_color='FFC7CE', fill_type='solid'),
        TIER_WARNING: PatternFill(start_color='FFEB9C', end_color='FFEB9C', fill_type='solid'),
    }
    for row_num, values in enumerate(_export_rows(request), 5):
        for col_num, value in enumerate(values, 1):
            ws.cell(row=row_num, column=col_num, value=value)
        # Highlight nearly-full sittings
        tier = compute_fill_ratio(values[7], values[8]).tier
        if tier in tier_fills:
            ws.cell(row=row_num, column=len(HEADERS)).fill = tier_fills[tier]

    for col_idx, col in enumerate(ws.iter_cols(min_row=4), 1):
        max_len = max((len(str(cell.value)) for cell in col if cell.value is not None), default=0)
        ws.column_dimensions[get_column_letter(col_idx)].width = min(max_len + 2, 50)

    buf = BytesIO()
    wb.save(buf)
    buf.seek(0)

    response = HttpResponse(
        buf.getvalue(),
        content_type='application/vnd.openxmlformats-officedocument.spreadsheetml.sheet',
    )
    response['Content-Disposition'] = f'attachment; filename="{_filename(request, "xlsx")}"'
    return response


def _pdf_font():
    """Registered font name for PDF text; Helvetica unless PDF_FONT_PATH is set."""
    from reportlab.pdfbase import pdfmetrics
    from reportlab.pdfbase.ttfonts import TTFont

    font_path = getattr(settings, 'PDF_FONT_PATH', '')
    if font_path and os.path.exists(font_path):
        pdfmetrics.registerFont(TTFont('PortalSans', font_path))
        return 'PortalSans'
    return 'Helvetica'


@login_required
@require_GET
@organization_required
def export_exam_dates_pdf(request):
    """GET /api/creator/reports/exam-dates/pdf"""
    from reportlab.lib import colors
    from reportlab.lib.enums import TA_CENTER
    from reportlab.lib.pagesizes import A4, landscape
    from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
    from reportlab.lib.units import inch
    from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle
    import arabic_reshaper
    from bidi.algorithm import get_display

    def reshape_arabic(text):
        if not text:
            return text
        return get_display(arabic_reshaper.reshape(str(text)))

    buffer = BytesIO()
    doc = SimpleDocTemplate(buffer, pagesize=landscape(A4),
                            leftMargin=0.5 * inch, rightMargin=0.5 * inch,
                            topMargin=0.5 * inch, bottomMargin=0.5 * inch)
    default_font = _pdf_font()

    styles = getSampleStyleSheet()
    title_style = ParagraphStyle(
        'ScheduleTitle', parent=styles['Heading1'],
        fontSize=14, alignment=TA_CENTER, spaceAfter=15, fontName=default_font,
    )
    elements = [
        Paragraph(f'{reshape_arabic(request.organization.name)} - Exam Schedule', title_style),
        Spacer(1, 0.15 * inch),
    ]

    # Notice-board columns: no price or deadline
    columns = [0, 1, 4, 5, 6, 7, 8, 9]
    data = [[HEADERS[i] for i in columns]]
    for values in _export_rows(request):
        row = [values[i] for i in columns]
        row[0] = reshape_arabic(row[0])
        row[4] = reshape_arabic(row[4])
        data.append([str(value) for value in row])

    table = Table(data, repeatRows=1)
    style_cmds = [
        ('BACKGROUND', (0, 0), (-1, 0), colors.HexColor('#2C3E50')),
        ('TEXTCOLOR', (0, 0), (-1, 0), colors.whitesmoke),
        ('FONTNAME', (0, 0), (-1, 0), default_font if default_font != 'Helvetica' else 'Helvetica-Bold'),
        ('FONTSIZE', (0, 0), (-1, 0), 10),
        ('FONTNAME', (0, 1), (-1, -1), default_font),
        ('FONTSIZE', (0, 1), (-1, -1), 9),
        ('ALIGN', (0, 0), (-1, -1), 'CENTER'),
        ('VALIGN', (0, 0), (-1, -1), 'MIDDLE'),
        ('TOPPADDING', (0, 0), (-1, -1), 6),
        ('BOTTOMPADDING', (0, 0), (-1, -1), 6),
        ('GRID', (0, 0), (-1, -1), 0.5, colors.black),
    ]
    for i in range(1, len(data)):
        if i % 2 == 0:
            style_cmds.append(('BACKGROUND', (0, i), (-1, i), colors.HexColor('#ECF0F1')))
    table.setStyle(TableStyle(style_cmds))
    elements.append(table)

    doc.build(elements)
    buffer.seek(0)

    response = HttpResponse(buffer.getvalue(), content_type='application/pdf')
    response['Content-Disposition'] = f'attachment; filename="{_filename(request, "pdf")}"'
    return response
