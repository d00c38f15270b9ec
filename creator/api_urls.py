"""Creator API URLs – all JSON endpoints under /api/creator/."""
from django.urls import path

from .api import exams, organizations, reports

app_name = 'creator_api'

urlpatterns = [
    # ── Organization & halls ────────────────────────────────────────────────
    path('organization', organizations.get_current_organization, name='get_organization'),
    path('locations', organizations.get_locations, name='get_locations'),

    # ── Exam types ───────────────────────────────────────────────────────────
    path('exams', exams.get_exams, name='get_exams'),
    path('exams/create', exams.create_exam_type, name='create_exam_type'),
    path('exams/<int:exam_type_id>/update', exams.update_exam_type, name='update_exam_type'),
    path('exams/<int:exam_type_id>/delete', exams.delete_exam_type, name='delete_exam_type'),
    path('exams/<int:exam_type_id>/dates/add', exams.add_exam_date, name='add_exam_date'),

    # ── Exam dates ───────────────────────────────────────────────────────────
    path('exam-dates/sweep', exams.sweep_exam_dates, name='sweep_exam_dates'),
    path('exam-dates/<int:exam_date_id>/update', exams.update_exam_date, name='update_exam_date'),
    path('exam-dates/<int:exam_date_id>/delete', exams.delete_exam_date, name='delete_exam_date'),
    path('exam-dates/<int:exam_date_id>/status', exams.set_exam_date_status, name='set_exam_date_status'),

    # ── Reports ──────────────────────────────────────────────────────────────
    path('reports/exam-dates/csv', reports.export_exam_dates_csv, name='export_exam_dates_csv'),
    path('reports/exam-dates/xlsx', reports.export_exam_dates_xlsx, name='export_exam_dates_xlsx'),
    path('reports/exam-dates/pdf', reports.export_exam_dates_pdf, name='export_exam_dates_pdf'),
]
