"""
Core models package – all exam portal domain models.
"""
from .mixins import TimestampMixin
from .organization import Organization, OrganizationAdmin, Location
from .exam import ExamType, ExamDate, ExamDateLocation

__all__ = [
    # Base
    'TimestampMixin',
    # Organizations & halls
    'Organization', 'OrganizationAdmin', 'Location',
    # Exams
    'ExamType', 'ExamDate', 'ExamDateLocation',
]
