"""
Validation engine for exam types and exam dates.

Every validator returns a dict mapping a field key to a user-facing message;
an empty dict means the draft is valid. Validators never raise for bad input
and never touch the database, so the same rules run in the creator screens
and in the JSON API.

Deadline rule: when several dates are given, the registration deadline is
compared against the earliest one, whatever its position in the list.
"""
from decimal import Decimal, InvalidOperation

from .lifecycle import IllegalTransition, check_transition
from .timestamps import is_blank, parse_wall_clock

NAME_REQUIRED = 'Exam name is required'
NAME_TOO_LONG = 'Exam name must be at most 200 characters'
CODE_REQUIRED = 'Exam code is required'
CODE_TOO_LONG = 'Exam code must be at most 30 characters'
PRICE_INVALID = 'Price must be a number'
PRICE_NEGATIVE = 'Price cannot be negative'
PRICE_TOO_LARGE = 'Price must be less than 100000000'
PRICE_PRECISION = 'Price can have at most 2 decimal places'
DATE_REQUIRED = 'Exam date is required'
DATE_INVALID = 'Exam date is not a valid date and time'
DATE_IN_PAST = 'Exam date must be in the future'
DATE_BEFORE_DEADLINE = 'Exam date must be after the registration deadline'
LOCATION_REQUIRED = 'Select at least one location'
LOCATION_TOO_LONG = 'Location note must be at most 200 characters'
DEADLINE_INVALID = 'Registration deadline is not a valid date and time'
DEADLINE_IN_PAST = 'Registration deadline must be in the future'
DEADLINE_AFTER_EXAM = 'Registration deadline must be before the exam date and time'

# Column limits of ExamType and ExamDate
NAME_MAX_LENGTH = 200
CODE_MAX_LENGTH = 30
LOCATION_MAX_LENGTH = 200
PRICE_LIMIT = Decimal('100000000')
PRICE_STEP = Decimal('0.01')


def _check_type_fields(draft, errors):
    name = (draft.name or '').strip()
    code_name = (draft.code_name or '').strip()
    if not name:
        errors['name'] = NAME_REQUIRED
    elif len(name) > NAME_MAX_LENGTH:
        errors['name'] = NAME_TOO_LONG
    if not code_name:
        errors['code_name'] = CODE_REQUIRED
    elif len(code_name) > CODE_MAX_LENGTH:
        errors['code_name'] = CODE_TOO_LONG

    if is_blank(draft.price):
        return
    try:
        amount = Decimal(str(draft.price).strip())
    except InvalidOperation:
        errors['price'] = PRICE_INVALID
        return
    if not amount.is_finite():
        errors['price'] = PRICE_INVALID
    elif amount < 0:
        errors['price'] = PRICE_NEGATIVE
    elif amount >= PRICE_LIMIT:
        errors['price'] = PRICE_TOO_LARGE
    elif amount != amount.quantize(PRICE_STEP):
        errors['price'] = PRICE_PRECISION


def _check_location_note(draft, key, errors):
    if len((draft.location or '').strip()) > LOCATION_MAX_LENGTH:
        errors[key] = LOCATION_TOO_LONG


def _check_date(value, now, key, errors):
    """Validate one non-blank date; returns the parsed value (even if past)."""
    try:
        scheduled_at = parse_wall_clock(value)
    except ValueError:
        errors[key] = DATE_INVALID
        return None
    if scheduled_at <= now:
        errors[key] = DATE_IN_PAST
    return scheduled_at


def _check_deadline(value, exam_at, now, errors):
    if is_blank(value):
        return
    try:
        deadline = parse_wall_clock(value)
    except ValueError:
        errors['registration_deadline'] = DEADLINE_INVALID
        return
    if deadline <= now:
        errors['registration_deadline'] = DEADLINE_IN_PAST
    elif exam_at is not None and deadline >= exam_at:
        errors['registration_deadline'] = DEADLINE_AFTER_EXAM


def validate_exam_creation_or_edit(draft, now):
    """
    Validate a full exam type draft with its dates.

    Keys: ``name``, ``code_name``, ``price``, ``registration_deadline``,
    ``exam_dates.<i>.date``, ``exam_dates.<i>.location_ids`` and
    ``exam_dates.<i>.location``. Rows that are not objects are invalid dates. Dates left
    blank are skipped entirely; when no date is filled in the deadline is
    only checked against ``now``.
    """
    errors = {}
    _check_type_fields(draft, errors)

    scheduled = []
    for index, exam_date in enumerate(draft.exam_dates):
        prefix = f'exam_dates.{index}'
        if exam_date.malformed:
            errors[f'{prefix}.date'] = DATE_INVALID
            continue
        if is_blank(exam_date.date):
            continue
        _check_location_note(exam_date, f'{prefix}.location', errors)
        scheduled_at = _check_date(exam_date.date, now, f'{prefix}.date', errors)
        if scheduled_at is not None:
            scheduled.append(scheduled_at)
        if not exam_date.location_ids:
            errors[f'{prefix}.location_ids'] = LOCATION_REQUIRED

    _check_deadline(
        draft.registration_deadline,
        min(scheduled) if scheduled else None,
        now,
        errors,
    )
    return errors


def validate_exam_type_edit(draft):
    """Type-only edit: name, code and price."""
    errors = {}
    _check_type_fields(draft, errors)
    return errors


def _validate_single_date(draft, now, errors):
    if is_blank(draft.date):
        errors['date'] = DATE_REQUIRED
        scheduled_at = None
    else:
        scheduled_at = _check_date(draft.date, now, 'date', errors)
    if not draft.location_ids:
        errors['location_ids'] = LOCATION_REQUIRED
    _check_location_note(draft, 'location', errors)
    return scheduled_at


def validate_exam_date_edit(draft, now):
    """Edit one scheduled date, optionally moving the type's deadline."""
    errors = {}
    scheduled_at = _validate_single_date(draft, now, errors)
    _check_deadline(draft.registration_deadline, scheduled_at, now, errors)
    return errors


def validate_add_additional_date(draft, now, registration_deadline=None):
    """
    Add a date to an existing type.

    The deadline belongs to the type and is not edited here, but when the
    type already has one the new date must fall after it.
    """
    errors = {}
    scheduled_at = _validate_single_date(draft, now, errors)
    if (
        'date' not in errors
        and registration_deadline is not None
        and scheduled_at <= registration_deadline
    ):
        errors['date'] = DATE_BEFORE_DEADLINE
    return errors


def validate_status_change(current, target):
    try:
        check_transition(current, target)
    except IllegalTransition as exc:
        return {'status': str(exc)}
    return {}
