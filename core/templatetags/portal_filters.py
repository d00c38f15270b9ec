"""
Template filters for the exam portal.
"""
from django import template
from django.utils import timezone

from core.scheduling.derivation import compute_fill_ratio, status_badge, truncate_to_word_count
from core.scheduling.timestamps import format_wall_clock

register = template.Library()


@register.filter(name='truncate_words_to')
def truncate_words_to_filter(value, max_words=20):
    """
    Shorten a description to ``max_words`` words with a trailing "...".

    Usage: {{ exam.description|truncate_words_to:20 }}
    """
    try:
        return truncate_to_word_count(value, int(max_words))
    except (ValueError, TypeError):
        return value


@register.filter(name='fill_percentage')
def fill_percentage_filter(row):
    """Usage: {{ row|fill_percentage }}%"""
    return compute_fill_ratio(row.current_registrations, row.max_participants).percentage


@register.filter(name='fill_tier')
def fill_tier_filter(row):
    """critical / warning / normal, for the capacity bar colour."""
    return compute_fill_ratio(row.current_registrations, row.max_participants).tier


@register.filter(name='status_badge_class')
def status_badge_class_filter(status):
    return status_badge(status).css_class


@register.filter(name='status_label')
def status_label_filter(status):
    return status_badge(status).label


@register.filter(name='wall_clock')
def wall_clock_filter(value):
    """
    Format an aware datetime as ``YYYY-MM-DDTHH:mm`` for datetime-local inputs.

    Usage: <input type="datetime-local" value="{{ row.scheduled_at|wall_clock }}">
    """
    return format_wall_clock(value) or ''


@register.filter(name='open_deadline')
def open_deadline_filter(value):
    """
    Wall-clock text for a registration deadline that has not passed yet.

    A closed deadline renders blank; submitting the edit form then keeps the
    stored one.
    """
    if value is None or value <= timezone.now():
        return ''
    return format_wall_clock(value)


@register.filter(name='hall_choices')
def hall_choices_filter(locations, selected_ids=None):
    """
    Checkbox entries for the hall picker: ``(location, checked)`` pairs.

    Selected halls come first in their priority order so that posting the
    form back keeps that order.

    Usage: {% for location, checked in locations|hall_choices:row.location_ids %}
    """
    selected_ids = list(selected_ids or ())
    by_id = {location.id: location for location in locations}
    choices = [(by_id[i], True) for i in selected_ids if i in by_id]
    choices += [(location, False) for location in locations if location.id not in selected_ids]
    return choices
