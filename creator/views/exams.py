"""
Manage Exams views – list plus the POST actions behind its modals.

Every action follows post/redirect/get: the exam manager validates and calls
the backend, errors come back as Django messages, and the browser lands on
the list again.
"""
import uuid
from urllib.parse import urlencode

from django.conf import settings
from django.contrib import messages
from django.contrib.auth.decorators import login_required
from django.core.cache import cache
from django.core.paginator import EmptyPage, PageNotAnInteger, Paginator
from django.shortcuts import redirect, render
from django.views.decorators.http import require_POST

from creator.backend import BackendError, DatabaseExamBackend
from creator.forms import (
    ExamFilterForm,
    StatusChangeForm,
    exam_date_draft_from_post,
    exam_date_edit_draft_from_post,
    exam_type_draft_from_post,
)
from creator.orchestrator import ExamManager, describe_error, resolve_session_context


def _manager(request):
    context = resolve_session_context(request)
    manager = ExamManager(DatabaseExamBackend(context.organization_id), context)
    if request.method == 'POST' and not _claim_submission(request):
        # Same page submitted again: the first request owns the change
        manager.submitting = True
    return manager


def _claim_submission(request):
    """
    Claim the one-time token rendered into every form on the list page.

    Returns False when the token was already used. Posts without a token
    are let through.
    """
    token = request.POST.get('submission_token', '').strip()
    if not token:
        return True
    timeout = getattr(settings, 'SUBMISSION_TOKEN_TTL', 600)
    return cache.add(f'exam-portal:submission:{token}', request.user.pk, timeout)


def _report(request, result, success_message):
    """Translate a MutationResult into flash messages."""
    if result.skipped:
        messages.warning(request, 'This form was already submitted.')
    elif result.ok:
        messages.success(request, success_message)
    else:
        if result.error:
            messages.error(request, result.error)
        for message in result.field_errors.values():
            messages.error(request, message)


def _back_to_list(request):
    """Redirect to the list, keeping the filters the form was posted from."""
    target = redirect('creator:exam_list')
    query = urlencode({
        key: request.POST[f'return_{key}']
        for key in ('search', 'status', 'page') if request.POST.get(f'return_{key}')
    })
    if query:
        target['Location'] += f'?{query}'
    return target


def _loaded_manager(request):
    """Manager with the current list, for actions that check loaded state."""
    manager = _manager(request)
    if manager.context.organization_id is not None:
        try:
            manager.reload()
        except BackendError as exc:
            messages.error(request, describe_error(exc))
            return None
    return manager


@login_required
def exam_list(request):
    """Exam types grouped with their dates, filtered and paginated by group."""
    manager = _manager(request)
    manager.load()

    filter_form = ExamFilterForm(request.GET or None)
    search, status = '', 'all'
    if filter_form.is_valid():
        search = filter_form.cleaned_data['search']
        status = filter_form.cleaned_data['status']

    groups = manager.groups(search, status)
    paginator = Paginator(groups, per_page=getattr(settings, 'EXAM_LIST_PAGE_SIZE', 10))
    try:
        page_obj = paginator.page(request.GET.get('page', 1))
    except (PageNotAnInteger, EmptyPage):
        page_obj = paginator.page(1)

    return render(request, 'creator/exams/list.html', {
        'groups': page_obj.object_list,
        'page_obj': page_obj,
        'paginator': paginator,
        'filter_form': filter_form,
        'search_query': search,
        'status_filter': status,
        'summary': manager.summary(),
        'locations': manager.locations,
        'load_error': manager.error,
        'preview_words': getattr(settings, 'DESCRIPTION_PREVIEW_WORDS', 20),
        'submission_token': uuid.uuid4().hex,
    })


@login_required
@require_POST
def exam_create(request):
    manager = _manager(request)
    draft = exam_type_draft_from_post(request.POST)
    result = manager.create_exam_type(draft)
    _report(request, result, f"Exam '{draft.name.strip()}' created.")
    return _back_to_list(request)


@login_required
@require_POST
def exam_type_edit(request, exam_type_id):
    manager = _manager(request)
    result = manager.update_exam_type(
        exam_type_id, exam_type_draft_from_post(request.POST, include_dates=False)
    )
    _report(request, result, 'Exam updated.')
    return _back_to_list(request)


@login_required
@require_POST
def exam_type_delete(request, exam_type_id):
    result = _manager(request).delete_exam_type(exam_type_id)
    _report(request, result, 'Exam deleted.')
    return _back_to_list(request)


@login_required
@require_POST
def exam_date_add(request, exam_type_id):
    manager = _loaded_manager(request)
    if manager is None:
        return _back_to_list(request)
    result = manager.add_exam_date(exam_type_id, exam_date_draft_from_post(request.POST))
    _report(request, result, 'Exam date added.')
    return _back_to_list(request)


@login_required
@require_POST
def exam_date_edit(request, exam_date_id):
    manager = _manager(request)
    result = manager.update_exam_date(exam_date_id, exam_date_edit_draft_from_post(request.POST))
    _report(request, result, 'Exam date updated.')
    return _back_to_list(request)


@login_required
@require_POST
def exam_date_delete(request, exam_date_id):
    result = _manager(request).delete_exam_date(exam_date_id)
    _report(request, result, 'Exam date deleted.')
    return _back_to_list(request)


@login_required
@require_POST
def exam_date_status(request, exam_date_id):
    form = StatusChangeForm(request.POST)
    if not form.is_valid():
        messages.error(request, 'Choose a valid status.')
        return _back_to_list(request)

    manager = _loaded_manager(request)
    if manager is None:
        return _back_to_list(request)
    status = form.cleaned_data['status']
    result = manager.change_exam_date_status(exam_date_id, status)
    _report(request, result, f'Exam date marked as {status}.')
    return _back_to_list(request)


@login_required
@require_POST
def exam_sweep(request):
    result = _manager(request).sweep_expired()
    if result.ok:
        messages.success(request, f'{result.data} expired exam date(s) marked as completed.')
    else:
        _report(request, result, '')
    return _back_to_list(request)
