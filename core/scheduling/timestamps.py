"""
Wall-clock timestamp helpers.

Timestamps cross the API boundary as minute-precision local wall-clock text
(``YYYY-MM-DDTHH:mm``, no seconds, no offset).
"""
from datetime import datetime

from django.utils import timezone

WALL_CLOCK_FORMAT = '%Y-%m-%dT%H:%M'


def is_blank(value):
    return value is None or (isinstance(value, str) and not value.strip())


def parse_wall_clock(value):
    """
    Parse a wall-clock value into an aware datetime.

    Accepts ``datetime`` instances or ISO text (``T`` or space separator,
    optional seconds). Naive values are interpreted in the current time zone.
    Returns None for blank input and raises ValueError for garbage.
    """
    if is_blank(value):
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value).strip())
    if timezone.is_naive(parsed):
        parsed = timezone.make_aware(parsed)
    return parsed


def truncate_to_minute(value):
    return value.replace(second=0, microsecond=0)


def format_wall_clock(value):
    """Render an aware datetime as ``YYYY-MM-DDTHH:mm`` in local time."""
    if value is None:
        return None
    if timezone.is_aware(value):
        value = timezone.localtime(value)
    return truncate_to_minute(value).strftime(WALL_CLOCK_FORMAT)


def to_wall_clock(value):
    """Normalize draft input (text or datetime) to boundary text; blank -> None."""
    parsed = parse_wall_clock(value)
    return format_wall_clock(parsed) if parsed is not None else None
