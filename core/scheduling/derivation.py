"""
Derivation engine – display aggregates computed from loaded exam records.

All functions are pure: they build new objects and never mutate their input,
so calling them twice on the same list yields equal results.
"""
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional

from .lifecycle import CANCELLED, COMPLETED, UPCOMING

NO_LOCATION = 'TBD'
ALL_STATUSES = 'all'

TIER_CRITICAL = 'critical'
TIER_WARNING = 'warning'
TIER_NORMAL = 'normal'

STATUS_BADGES = {
    UPCOMING: ('Upcoming', 'badge-upcoming'),
    COMPLETED: ('Completed', 'badge-completed'),
    CANCELLED: ('Cancelled', 'badge-cancelled'),
}
UNKNOWN_BADGE = ('No date scheduled', 'badge-muted')


@dataclass(frozen=True)
class ExamDateRow:
    exam_type_id: int
    exam_name: str
    code_name: str
    description: str
    price: Decimal
    registration_deadline: Optional[datetime]
    has_date: bool
    exam_date_id: Optional[int] = None
    scheduled_at: Optional[datetime] = None
    status: Optional[str] = None
    locations_display: str = NO_LOCATION
    # Hall ids in priority order
    location_ids: tuple = ()
    current_registrations: int = 0
    max_participants: int = 0


@dataclass(frozen=True)
class ExamGroup:
    exam_type_id: int
    name: str
    code_name: str
    rows: tuple


@dataclass(frozen=True)
class FillRatio:
    percentage: int
    tier: str


@dataclass(frozen=True)
class StatusBadge:
    label: str
    css_class: str


def format_locations(exam_date):
    """Hall names ordered by priority, else the legacy text, else TBD."""
    if exam_date.locations:
        ordered = sorted(exam_date.locations, key=lambda loc: loc.priority)
        return ', '.join(loc.name for loc in ordered)
    if exam_date.legacy_location and exam_date.legacy_location.strip():
        return exam_date.legacy_location.strip()
    return NO_LOCATION


def flatten_to_date_rows(exam_types) -> List[ExamDateRow]:
    rows = []
    for exam_type in exam_types:
        common = dict(
            exam_type_id=exam_type.id,
            exam_name=exam_type.name,
            code_name=exam_type.code_name,
            description=exam_type.description,
            price=exam_type.price,
            registration_deadline=exam_type.registration_deadline,
        )
        if not exam_type.exam_dates:
            rows.append(ExamDateRow(has_date=False, **common))
            continue
        for exam_date in exam_type.exam_dates:
            rows.append(ExamDateRow(
                has_date=True,
                exam_date_id=exam_date.id,
                scheduled_at=exam_date.scheduled_at,
                status=exam_date.status,
                locations_display=format_locations(exam_date),
                location_ids=tuple(
                    loc.id for loc in sorted(exam_date.locations or (), key=lambda loc: loc.priority)
                ),
                current_registrations=exam_date.current_registrations,
                max_participants=exam_date.max_participants,
                **common,
            ))
    return rows


def _name_key(name):
    # Case-insensitive first so "alpha" sorts next to "Alpha", then stable on the raw text
    return (name.casefold(), name)


def _row_key(row):
    if row.scheduled_at is None:
        return (1, 0.0)
    return (0, row.scheduled_at.timestamp())


def group_rows_by_exam_type(rows) -> List[ExamGroup]:
    """
    Group flattened rows under their exam type.

    Groups are ordered by exam name, rows by ascending date with the
    "no date scheduled" placeholder last.
    """
    buckets = {}
    for row in rows:
        buckets.setdefault(row.exam_type_id, []).append(row)

    groups = []
    for exam_type_id, members in buckets.items():
        first = members[0]
        groups.append(ExamGroup(
            exam_type_id=exam_type_id,
            name=first.exam_name,
            code_name=first.code_name,
            rows=tuple(sorted(members, key=_row_key)),
        ))
    groups.sort(key=lambda g: _name_key(g.name))
    return groups


def compute_fill_ratio(current_registrations, max_participants) -> FillRatio:
    if not max_participants or max_participants <= 0:
        exact = Decimal(0)
    else:
        exact = Decimal(current_registrations) * 100 / Decimal(max_participants)
    percentage = int(exact.quantize(Decimal('1'), rounding=ROUND_HALF_UP))

    # Tier follows the exact ratio; only the displayed percentage is rounded
    if exact >= 90:
        tier = TIER_CRITICAL
    elif exact >= 70:
        tier = TIER_WARNING
    else:
        tier = TIER_NORMAL
    return FillRatio(percentage=percentage, tier=tier)


def truncate_to_word_count(text, max_words):
    if not text:
        return ''
    words = text.split()
    if len(words) <= max_words:
        return text
    return ' '.join(words[:max_words]) + '...'


def row_matches(row, search='', status=ALL_STATUSES):
    needle = (search or '').strip().casefold()
    if needle and needle not in row.exam_name.casefold() and needle not in row.code_name.casefold():
        return False
    if status and status != ALL_STATUSES and row.status != status:
        return False
    return True


def filter_rows(rows, search='', status=ALL_STATUSES):
    """Name/code substring search ANDed with an exact status filter."""
    return [row for row in rows if row_matches(row, search, status)]


def status_badge(status) -> StatusBadge:
    label, css_class = STATUS_BADGES.get(status, UNKNOWN_BADGE)
    return StatusBadge(label=label, css_class=css_class)


def summarize(exam_types):
    """Totals for the stats cards on the Manage Exams screen."""
    summary = {
        'exam_types': 0,
        'exam_dates': 0,
        UPCOMING: 0,
        COMPLETED: 0,
        CANCELLED: 0,
        'registrations': 0,
    }
    for exam_type in exam_types:
        summary['exam_types'] += 1
        for exam_date in exam_type.exam_dates:
            summary['exam_dates'] += 1
            if exam_date.status in summary:
                summary[exam_date.status] += 1
            summary['registrations'] += exam_date.current_registrations
    return summary
