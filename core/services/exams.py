"""
Exam service – the system of record for exam types, dates and their status.

Every mutation re-runs the scheduling validators before writing, so callers
that skip client-side validation still cannot persist an inconsistent
schedule. Mutations are atomic and logged to ``portal.audit``.
"""
import logging
from decimal import Decimal

from django.db import transaction
from django.db.models import Prefetch
from django.utils import timezone

from core.models import (
    ExamDate, ExamDateLocation, ExamType, Location, Organization, OrganizationAdmin,
)
from core.models.mixins import TimestampMixin
from core.scheduling.drafts import ExamDateDraft, ExamDateEditDraft, ExamTypeDraft
from core.scheduling.lifecycle import COMPLETED, UPCOMING, IllegalTransition, check_transition
from core.scheduling.timestamps import is_blank, parse_wall_clock
from core.scheduling.validation import (
    DEADLINE_AFTER_EXAM,
    validate_add_additional_date,
    validate_exam_creation_or_edit,
    validate_exam_date_edit,
    validate_exam_type_edit,
)

audit_logger = logging.getLogger('portal.audit')

VALIDATION_FAILED = 'Please correct the highlighted fields.'
UNKNOWN_LOCATION = 'One or more selected locations do not belong to this organization'


class ExamServiceError(Exception):
    """Base error; ``message`` is safe to show to the user."""

    status_code = 400

    def __init__(self, message, errors=None):
        super().__init__(message)
        self.message = message
        self.errors = errors or {}


class NotFound(ExamServiceError):
    status_code = 404


class Rejected(ExamServiceError):
    status_code = 422


def _exam_types_queryset():
    links = ExamDateLocation.objects.select_related('location').order_by('priority', 'id')
    dates = ExamDate.objects.order_by('scheduled_at').prefetch_related(
        Prefetch('location_links', queryset=links)
    )
    return ExamType.objects.prefetch_related(Prefetch('exam_dates', queryset=dates))


def _get_exam_type(exam_type_id, organization_id):
    try:
        return ExamType.objects.get(pk=exam_type_id, organization_id=organization_id)
    except ExamType.DoesNotExist:
        raise NotFound('Exam not found')


def _get_exam_date(exam_date_id, organization_id):
    try:
        return ExamDate.objects.select_related('exam_type').get(
            pk=exam_date_id, exam_type__organization_id=organization_id
        )
    except ExamDate.DoesNotExist:
        raise NotFound('Exam date not found')


def _assign_locations(exam_date, location_ids, organization_id, error_key='location_ids'):
    """Replace the halls of ``exam_date``; list order becomes priority."""
    found = set(
        Location.objects.filter(
            organization_id=organization_id, id__in=location_ids
        ).values_list('id', flat=True)
    )
    if found != set(location_ids):
        raise Rejected(VALIDATION_FAILED, {error_key: UNKNOWN_LOCATION})

    ExamDateLocation.objects.filter(exam_date=exam_date).delete()
    ExamDateLocation.objects.bulk_create([
        ExamDateLocation(exam_date=exam_date, location_id=location_id, priority=priority)
        for priority, location_id in enumerate(location_ids, start=1)
    ])


def _apply_type_fields(exam_type, draft):
    exam_type.name = draft.name.strip()
    exam_type.code_name = draft.code_name.strip()
    exam_type.description = (draft.description or '').strip()
    exam_type.price = Decimal('0') if is_blank(draft.price) else Decimal(str(draft.price).strip())


class ExamService:

    @staticmethod
    def list_exams(organization_id):
        """All exam types of an organization with nested dates and halls."""
        return list(_exam_types_queryset().filter(organization_id=organization_id).order_by('name'))

    @staticmethod
    def get_exam_type(exam_type_id, organization_id):
        exam_type = _exam_types_queryset().filter(
            pk=exam_type_id, organization_id=organization_id
        ).first()
        if exam_type is None:
            raise NotFound('Exam not found')
        return exam_type

    @staticmethod
    @transaction.atomic
    def create_exam_type(organization_id, payload, now=None):
        now = now or timezone.now()
        draft = ExamTypeDraft.from_payload(payload)
        errors = validate_exam_creation_or_edit(draft, now)
        if errors:
            raise Rejected(VALIDATION_FAILED, errors)

        exam_type = ExamType(
            organization_id=organization_id,
            registration_deadline=parse_wall_clock(draft.registration_deadline),
        )
        _apply_type_fields(exam_type, draft)
        exam_type.save()

        created = 0
        for index, date_draft in enumerate(draft.exam_dates):
            if is_blank(date_draft.date):
                continue
            exam_date = ExamDate.objects.create(
                exam_type=exam_type,
                scheduled_at=parse_wall_clock(date_draft.date),
                location=date_draft.location.strip(),
            )
            _assign_locations(
                exam_date, date_draft.location_ids, organization_id,
                error_key=f'exam_dates.{index}.location_ids',
            )
            created += 1

        audit_logger.info(
            'EXAM_TYPE_CREATE | org=%s | exam_type_id=%s | code=%s | dates=%d',
            organization_id, exam_type.id, exam_type.code_name, created,
        )
        return ExamService.get_exam_type(exam_type.id, organization_id)

    @staticmethod
    @transaction.atomic
    def update_exam_type(exam_type_id, organization_id, payload):
        exam_type = _get_exam_type(exam_type_id, organization_id)
        draft = ExamTypeDraft.from_payload(payload)
        errors = validate_exam_type_edit(draft)
        if errors:
            raise Rejected(VALIDATION_FAILED, errors)

        _apply_type_fields(exam_type, draft)
        exam_type.save()
        audit_logger.info(
            'EXAM_TYPE_UPDATE | org=%s | exam_type_id=%s', organization_id, exam_type.id,
        )
        return ExamService.get_exam_type(exam_type.id, organization_id)

    @staticmethod
    @transaction.atomic
    def delete_exam_type(exam_type_id, organization_id):
        exam_type = _get_exam_type(exam_type_id, organization_id)
        date_count = exam_type.exam_dates.count()
        exam_type.delete()
        audit_logger.info(
            'EXAM_TYPE_DELETE | org=%s | exam_type_id=%s | dates=%d',
            organization_id, exam_type_id, date_count,
        )

    @staticmethod
    @transaction.atomic
    def add_exam_date(exam_type_id, organization_id, payload, now=None):
        now = now or timezone.now()
        exam_type = _get_exam_type(exam_type_id, organization_id)
        draft = ExamDateDraft.from_payload(payload)
        errors = validate_add_additional_date(draft, now, exam_type.registration_deadline)
        if errors:
            raise Rejected(VALIDATION_FAILED, errors)

        exam_date = ExamDate.objects.create(
            exam_type=exam_type,
            scheduled_at=parse_wall_clock(draft.date),
            location=draft.location.strip(),
        )
        _assign_locations(exam_date, draft.location_ids, organization_id)
        audit_logger.info(
            'EXAM_DATE_ADD | org=%s | exam_type_id=%s | exam_date_id=%s | at=%s',
            organization_id, exam_type.id, exam_date.id, exam_date.scheduled_at.isoformat(),
        )
        return exam_date

    @staticmethod
    @transaction.atomic
    def update_exam_date(exam_date_id, organization_id, payload, now=None):
        now = now or timezone.now()
        exam_date = _get_exam_date(exam_date_id, organization_id)
        draft = ExamDateEditDraft.from_payload(payload)
        errors = validate_exam_date_edit(draft, now)
        if errors:
            raise Rejected(VALIDATION_FAILED, errors)

        exam_type = exam_date.exam_type
        scheduled_at = parse_wall_clock(draft.date)
        deadline = (
            parse_wall_clock(draft.registration_deadline)
            if not is_blank(draft.registration_deadline)
            else exam_type.registration_deadline
        )
        if deadline is not None:
            # The deadline has to precede every future sitting of the type, not just this one
            other_dates = exam_type.exam_dates.exclude(pk=exam_date.pk).filter(
                status=UPCOMING, scheduled_at__gt=now,
            ).values_list('scheduled_at', flat=True)
            earliest = min([scheduled_at, *other_dates])
            if deadline >= earliest:
                raise Rejected(VALIDATION_FAILED, {'registration_deadline': DEADLINE_AFTER_EXAM})

        exam_date.scheduled_at = scheduled_at
        exam_date.location = draft.location.strip()
        exam_date.save()
        _assign_locations(exam_date, draft.location_ids, organization_id)

        if deadline != exam_type.registration_deadline:
            exam_type.registration_deadline = deadline
            exam_type.save(update_fields=['registration_deadline'])

        audit_logger.info(
            'EXAM_DATE_UPDATE | org=%s | exam_date_id=%s | at=%s',
            organization_id, exam_date.id, scheduled_at.isoformat(),
        )
        return exam_date

    @staticmethod
    @transaction.atomic
    def delete_exam_date(exam_date_id, organization_id):
        exam_date = _get_exam_date(exam_date_id, organization_id)
        exam_type_id = exam_date.exam_type_id
        exam_date.delete()
        audit_logger.info(
            'EXAM_DATE_DELETE | org=%s | exam_type_id=%s | exam_date_id=%s',
            organization_id, exam_type_id, exam_date_id,
        )

    @staticmethod
    @transaction.atomic
    def set_exam_date_status(exam_date_id, organization_id, status):
        exam_date = _get_exam_date(exam_date_id, organization_id)
        previous_status = exam_date.status
        try:
            check_transition(previous_status, status)
        except IllegalTransition as exc:
            raise Rejected(str(exc), {'status': str(exc)})

        exam_date.status = status
        exam_date.save(update_fields=['status'])
        audit_logger.info(
            'EXAM_DATE_STATUS | org=%s | exam_date_id=%s | previous_status=%s | new_status=%s',
            organization_id, exam_date.id, previous_status, status,
        )
        return exam_date

    @staticmethod
    def sweep_expired_exam_dates(now=None):
        """Flip every upcoming date that has started to completed; returns the count."""
        now = now or timezone.now()
        updated = ExamDate.objects.filter(
            status=UPCOMING, scheduled_at__lte=now,
        ).update(status=COMPLETED, updated_at=TimestampMixin.utc_timestamp())
        if updated:
            audit_logger.info('EXAM_DATE_SWEEP | updated=%d | now=%s', updated, now.isoformat())
        return {'updated_count': updated}

    @staticmethod
    def resolve_current_organization(user):
        """The active organization ``user`` administers, or None."""
        if user is None or not user.is_authenticated:
            return None
        link = (
            OrganizationAdmin.objects.select_related('organization')
            .filter(user=user, organization__is_active=True)
            .first()
        )
        return link.organization if link else None

    @staticmethod
    def list_locations(organization_id):
        return list(Location.objects.filter(organization_id=organization_id).order_by('location_name'))

    @staticmethod
    def get_organization(organization_id):
        try:
            return Organization.objects.get(pk=organization_id)
        except Organization.DoesNotExist:
            raise NotFound('Organization not found')
