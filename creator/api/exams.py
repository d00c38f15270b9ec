"""
Creator API – Exam type and exam date endpoints.
"""
import logging

from django.contrib.auth.decorators import login_required
from django.http import JsonResponse
from django.views.decorators.http import require_GET, require_POST

from core.scheduling.drafts import coerce_text
from core.services import ExamService, ExamServiceError

from .helpers import invalid_json, json_body, organization_required, require_methods, service_error

audit_logger = logging.getLogger('portal.audit')


@login_required
@require_GET
@organization_required
def get_exams(request):
    """GET /api/creator/exams – exam types with nested dates and halls"""
    exam_types = ExamService.list_exams(request.organization.id)
    return JsonResponse({
        'message': 'OK',
        'data': [exam_type.to_dict() for exam_type in exam_types],
    })


@login_required
@require_POST
@organization_required
def create_exam_type(request):
    """POST /api/creator/exams/create"""
    data = json_body(request)
    if data is None:
        return invalid_json()
    try:
        exam_type = ExamService.create_exam_type(request.organization.id, data)
    except ExamServiceError as exc:
        return service_error(exc)
    return JsonResponse(
        {'message': f"Exam '{exam_type.name}' created", 'data': exam_type.to_dict()},
        status=201,
    )


@login_required
@require_methods('PUT', 'POST')
@organization_required
def update_exam_type(request, exam_type_id):
    """PUT /api/creator/exams/<id>/update"""
    data = json_body(request)
    if data is None:
        return invalid_json()
    try:
        exam_type = ExamService.update_exam_type(exam_type_id, request.organization.id, data)
    except ExamServiceError as exc:
        return service_error(exc)
    return JsonResponse({'message': 'Exam updated', 'data': exam_type.to_dict()})


@login_required
@require_methods('DELETE', 'POST')
@organization_required
def delete_exam_type(request, exam_type_id):
    """DELETE /api/creator/exams/<id>/delete – removes the type and all its dates"""
    try:
        ExamService.delete_exam_type(exam_type_id, request.organization.id)
    except ExamServiceError as exc:
        return service_error(exc)
    return JsonResponse({'message': 'Exam deleted', 'data': None})


@login_required
@require_POST
@organization_required
def add_exam_date(request, exam_type_id):
    """POST /api/creator/exams/<id>/dates/add"""
    data = json_body(request)
    if data is None:
        return invalid_json()
    try:
        exam_date = ExamService.add_exam_date(exam_type_id, request.organization.id, data)
    except ExamServiceError as exc:
        return service_error(exc)
    return JsonResponse({'message': 'Exam date added', 'data': exam_date.to_dict()}, status=201)


@login_required
@require_methods('PUT', 'POST')
@organization_required
def update_exam_date(request, exam_date_id):
    """PUT /api/creator/exam-dates/<id>/update"""
    data = json_body(request)
    if data is None:
        return invalid_json()
    try:
        exam_date = ExamService.update_exam_date(exam_date_id, request.organization.id, data)
    except ExamServiceError as exc:
        return service_error(exc)
    return JsonResponse({'message': 'Exam date updated', 'data': exam_date.to_dict()})


@login_required
@require_methods('DELETE', 'POST')
@organization_required
def delete_exam_date(request, exam_date_id):
    """DELETE /api/creator/exam-dates/<id>/delete"""
    try:
        ExamService.delete_exam_date(exam_date_id, request.organization.id)
    except ExamServiceError as exc:
        return service_error(exc)
    return JsonResponse({'message': 'Exam date deleted', 'data': None})


@login_required
@require_POST
@organization_required
def set_exam_date_status(request, exam_date_id):
    """POST /api/creator/exam-dates/<id>/status – body {"status": "completed"}"""
    data = json_body(request)
    if data is None:
        return invalid_json()
    status = coerce_text(data.get('status')).strip()
    if not status:
        return JsonResponse(
            {'message': 'status is required', 'errors': {'status': 'status is required'}},
            status=400,
        )
    try:
        exam_date = ExamService.set_exam_date_status(
            exam_date_id, request.organization.id, status
        )
    except ExamServiceError as exc:
        return service_error(exc)
    return JsonResponse({
        'message': f'Exam date marked as {exam_date.status}',
        'data': exam_date.to_dict(),
    })


@login_required
@require_POST
@organization_required
def sweep_exam_dates(request):
    """POST /api/creator/exam-dates/sweep – flip expired upcoming dates to completed"""
    result = ExamService.sweep_expired_exam_dates()
    audit_logger.info(
        'EXAM_DATE_SWEEP_REQUEST | admin=%s | org=%s | updated=%d',
        request.user.get_username(), request.organization.id, result['updated_count'],
    )
    return JsonResponse({'message': f"{result['updated_count']} exam date(s) completed", 'data': result})
