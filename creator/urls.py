"""Creator page URLs – the Manage Exams screen and its form actions."""
from django.urls import path

from .views import exams

app_name = 'creator'

urlpatterns = [
    # ── Exams ──────────────────────────────────────────────────────────────
    path('exams/', exams.exam_list, name='exam_list'),
    path('exams/new/', exams.exam_create, name='exam_create'),
    path('exams/sweep/', exams.exam_sweep, name='exam_sweep'),
    path('exams/<int:exam_type_id>/edit/', exams.exam_type_edit, name='exam_type_edit'),
    path('exams/<int:exam_type_id>/delete/', exams.exam_type_delete, name='exam_type_delete'),
    path('exams/<int:exam_type_id>/dates/new/', exams.exam_date_add, name='exam_date_add'),

    # ── Exam dates ─────────────────────────────────────────────────────────
    path('exam-dates/<int:exam_date_id>/edit/', exams.exam_date_edit, name='exam_date_edit'),
    path('exam-dates/<int:exam_date_id>/delete/', exams.exam_date_delete, name='exam_date_delete'),
    path('exam-dates/<int:exam_date_id>/status/', exams.exam_date_status, name='exam_date_status'),
]
