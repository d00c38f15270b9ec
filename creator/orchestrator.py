"""
Exam manager – sequences every exam mutation end to end.

    validate -> backend call -> full reload -> reset form state

Validation failures never reach the backend. Backend failures are logged and
surfaced as a banner message; the loaded list is left untouched and nothing
is retried. The list is never patched locally: every successful mutation
reloads it from the backend.
"""
import logging
from dataclasses import dataclass, field
from typing import Optional

from django.conf import settings
from django.utils import timezone

from core.scheduling.derivation import (
    ALL_STATUSES, filter_rows, flatten_to_date_rows, group_rows_by_exam_type, summarize,
)
from core.scheduling.lifecycle import STATUSES, IllegalTransition
from core.scheduling.records import find_exam_date
from core.scheduling.timestamps import is_blank, to_wall_clock
from core.scheduling.validation import (
    validate_add_additional_date,
    validate_exam_creation_or_edit,
    validate_exam_date_edit,
    validate_exam_type_edit,
    validate_status_change,
)

from .backend import BackendError, DatabaseExamBackend

logger = logging.getLogger(__name__)

ORGANIZATION_REQUIRED = (
    'Organization access required. Your account is not linked to an organization.'
)
GENERIC_ERROR = 'The request could not be completed. Please try again.'


@dataclass(frozen=True)
class SessionContext:
    """Who is acting, and for which organization."""

    organization_id: Optional[int] = None
    username: str = ''


def resolve_session_context(request, backend=None):
    backend = backend or DatabaseExamBackend()
    organization = backend.resolve_current_organization(request.user)
    return SessionContext(
        organization_id=organization['id'] if organization else None,
        username=request.user.get_username() if request.user.is_authenticated else '',
    )


class ReloadGuard:
    """
    Staleness guard for list reloads.

    Each reload takes a ticket; only the response holding the most recently
    issued ticket may replace the list.
    """

    def __init__(self):
        self._latest = 0

    def issue(self):
        self._latest += 1
        return self._latest

    def is_current(self, ticket):
        return ticket == self._latest


@dataclass
class MutationResult:
    ok: bool
    field_errors: dict = field(default_factory=dict)
    error: Optional[str] = None
    precondition_failed: bool = False
    skipped: bool = False
    data: object = None


def describe_error(exc):
    """Server message, else the exception text, else a generic message."""
    server_message = getattr(exc, 'server_message', None)
    if server_message:
        return server_message
    text = str(exc).strip()
    return text or GENERIC_ERROR


def _date_payload(draft):
    return {
        'date': to_wall_clock(draft.date),
        'location_ids': list(draft.location_ids),
        'location': (draft.location or '').strip(),
    }


def _price_text(price):
    return '0' if is_blank(price) else str(price).strip()


class ExamManager:
    """Screen state for Manage Exams: the loaded list plus transient form state."""

    def __init__(self, backend, context, clock=timezone.now):
        self.backend = backend
        self.context = context
        self.clock = clock
        self.exam_types = []
        self.locations = []
        self.field_errors = {}
        self.error = None
        self.submitting = False
        self.reload_guard = ReloadGuard()

    # ── Loading ─────────────────────────────────────────────────────────────

    def reload(self):
        """Replace the list with a fresh copy; returns False for a stale response."""
        ticket = self.reload_guard.issue()
        exam_types = self.backend.list_exams(self.context.organization_id)
        if not self.reload_guard.is_current(ticket):
            logger.debug('Discarding stale exam list (ticket %s)', ticket)
            return False
        self.exam_types = list(exam_types)
        return True

    def load(self):
        """Initial screen load: opportunistic sweep, then exams and halls."""
        if self.context.organization_id is None:
            self.error = ORGANIZATION_REQUIRED
            return MutationResult(ok=False, error=self.error, precondition_failed=True)

        if getattr(settings, 'SWEEP_ON_LOAD', True):
            try:
                self.backend.sweep_expired_exam_dates()
            except BackendError as exc:
                logger.warning('Expiry sweep on load failed: %s', describe_error(exc))

        try:
            self.reload()
            self.locations = list(self.backend.list_locations(self.context.organization_id))
        except BackendError as exc:
            logger.error('Loading exams failed for org %s: %s',
                         self.context.organization_id, describe_error(exc))
            self.error = describe_error(exc)
            return MutationResult(ok=False, error=self.error)
        return MutationResult(ok=True)

    # ── Mutations ───────────────────────────────────────────────────────────

    def _run(self, action, call, errors=None):
        if self.submitting:
            return MutationResult(ok=False, skipped=True)
        if self.context.organization_id is None:
            self.error = ORGANIZATION_REQUIRED
            return MutationResult(ok=False, error=self.error, precondition_failed=True)
        if errors:
            self.field_errors = dict(errors)
            return MutationResult(ok=False, field_errors=dict(errors))

        self.submitting = True
        try:
            data = call()
            self.reload()
        except BackendError as exc:
            self.error = describe_error(exc)
            self.field_errors = dict(exc.errors)
            logger.warning('%s failed | org=%s | user=%s | status=%s | error=%s',
                           action, self.context.organization_id, self.context.username,
                           exc.status_code, self.error)
            return MutationResult(ok=False, field_errors=dict(exc.errors), error=self.error)
        finally:
            self.submitting = False

        self.field_errors = {}
        self.error = None
        return MutationResult(ok=True, data=data)

    def create_exam_type(self, draft):
        errors = validate_exam_creation_or_edit(draft, self.clock())
        payload = None if errors else {
            'organization_id': self.context.organization_id,
            'name': draft.name.strip(),
            'code_name': draft.code_name.strip(),
            'description': (draft.description or '').strip(),
            'price': _price_text(draft.price),
            'registration_deadline': to_wall_clock(draft.registration_deadline),
            'exam_dates': [
                _date_payload(d) for d in draft.exam_dates if not is_blank(d.date)
            ],
        }
        return self._run(
            'EXAM_TYPE_CREATE', lambda: self.backend.create_exam_type(payload), errors
        )

    def update_exam_type(self, exam_type_id, draft):
        errors = validate_exam_type_edit(draft)
        payload = {
            'name': (draft.name or '').strip(),
            'code_name': (draft.code_name or '').strip(),
            'description': (draft.description or '').strip(),
            'price': _price_text(draft.price),
        }
        return self._run(
            'EXAM_TYPE_UPDATE',
            lambda: self.backend.update_exam_type(exam_type_id, payload),
            errors,
        )

    def update_exam_date(self, exam_date_id, draft):
        errors = validate_exam_date_edit(draft, self.clock())
        payload = None
        if not errors:
            payload = _date_payload(draft)
            payload['registration_deadline'] = to_wall_clock(draft.registration_deadline)
        return self._run(
            'EXAM_DATE_UPDATE',
            lambda: self.backend.update_exam_date(exam_date_id, payload),
            errors,
        )

    def add_exam_date(self, exam_type_id, draft):
        exam_type = self.find_exam_type(exam_type_id)
        deadline = exam_type.registration_deadline if exam_type else None
        errors = validate_add_additional_date(draft, self.clock(), deadline)
        payload = None if errors else _date_payload(draft)
        return self._run(
            'EXAM_DATE_ADD',
            lambda: self.backend.add_exam_date(exam_type_id, payload),
            errors,
        )

    def delete_exam_type(self, exam_type_id):
        return self._run(
            'EXAM_TYPE_DELETE', lambda: self.backend.delete_exam_type(exam_type_id)
        )

    def delete_exam_date(self, exam_date_id):
        return self._run(
            'EXAM_DATE_DELETE', lambda: self.backend.delete_exam_date(exam_date_id)
        )

    def change_exam_date_status(self, exam_date_id, status):
        current = find_exam_date(self.exam_types, exam_date_id)
        if current is not None:
            errors = validate_status_change(current.status, status)
        elif status not in STATUSES:
            errors = {'status': str(IllegalTransition(None, status))}
        else:
            # Not loaded here; the backend enforces the transition table
            errors = {}
        return self._run(
            'EXAM_DATE_STATUS',
            lambda: self.backend.set_exam_date_status(exam_date_id, status),
            errors,
        )

    def sweep_expired(self):
        result = self._run('EXAM_DATE_SWEEP', self.backend.sweep_expired_exam_dates)
        if result.ok:
            result.data = (result.data or {}).get('updated_count', 0)
        return result

    # ── Derived views ───────────────────────────────────────────────────────

    def find_exam_type(self, exam_type_id):
        for exam_type in self.exam_types:
            if exam_type.id == exam_type_id:
                return exam_type
        return None

    def rows(self, search='', status=ALL_STATUSES):
        return filter_rows(flatten_to_date_rows(self.exam_types), search, status)

    def groups(self, search='', status=ALL_STATUSES):
        return group_rows_by_exam_type(self.rows(search, status))

    def summary(self):
        return summarize(self.exam_types)
