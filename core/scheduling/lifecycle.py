"""
Exam-date status lifecycle.

    upcoming ──► completed
        │
        └──────► cancelled

``completed`` and ``cancelled`` are terminal. Expired ``upcoming`` dates are
flipped to ``completed`` by the sweep; everything else needs an explicit
request.
"""
UPCOMING = 'upcoming'
COMPLETED = 'completed'
CANCELLED = 'cancelled'

STATUS_CHOICES = [
    (UPCOMING, 'Upcoming'),
    (COMPLETED, 'Completed'),
    (CANCELLED, 'Cancelled'),
]

STATUSES = frozenset(value for value, _ in STATUS_CHOICES)

TRANSITIONS = {
    UPCOMING: frozenset({COMPLETED, CANCELLED}),
    COMPLETED: frozenset(),
    CANCELLED: frozenset(),
}


class IllegalTransition(ValueError):
    """Raised when a status change is not in the transition table."""

    def __init__(self, current, target):
        self.current = current
        self.target = target
        if target not in STATUSES:
            message = f'Unknown exam date status "{target}".'
        elif not TRANSITIONS.get(current):
            message = f'Exam date is already {current} and cannot be changed.'
        else:
            message = f'Cannot change exam date status from {current} to {target}.'
        super().__init__(message)


def can_transition(current, target):
    return target in TRANSITIONS.get(current, frozenset())


def check_transition(current, target):
    """Raise IllegalTransition unless ``current -> target`` is allowed."""
    if not can_transition(current, target):
        raise IllegalTransition(current, target)
    return target


def is_terminal(status):
    return not TRANSITIONS.get(status)


def is_expired(exam_date, now):
    """An upcoming date whose start time is not in the future any more."""
    return (
        exam_date.status == UPCOMING
        and exam_date.scheduled_at is not None
        and exam_date.scheduled_at <= now
    )


def find_expired(exam_dates, now):
    """Ids of the dates the sweep would flip to completed."""
    return [d.id for d in exam_dates if is_expired(d, now)]
