"""
ExamType, ExamDate and ExamDateLocation models.
"""
from django.core.validators import MinValueValidator
from django.db import models

from core.scheduling.lifecycle import STATUS_CHOICES, UPCOMING
from core.scheduling.timestamps import format_wall_clock
from .mixins import TimestampMixin


class ExamType(TimestampMixin):
    """The reusable definition of an examination (e.g. GCAT)."""

    organization = models.ForeignKey(
        'core.Organization', on_delete=models.CASCADE, related_name='exam_types', db_index=True
    )

    name = models.CharField(max_length=200)
    code_name = models.CharField(max_length=30)
    description = models.TextField(blank=True, default='')
    price = models.DecimalField(
        max_digits=10, decimal_places=2, default=0,
        validators=[MinValueValidator(0)],
    )
    registration_deadline = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = 'exam_types'
        ordering = ['name']

    def __str__(self):
        return f'{self.code_name}: {self.name}'

    def to_dict(self, include_dates=True):
        data = {
            'id': self.id,
            'organization_id': self.organization_id,
            'name': self.name,
            'code_name': self.code_name,
            'description': self.description,
            'price': str(self.price),
            'registration_deadline': format_wall_clock(self.registration_deadline),
        }
        if include_dates:
            data['exam_dates'] = [d.to_dict() for d in self.exam_dates.all()]
        return data


class ExamDate(TimestampMixin):
    """One scheduled sitting of an exam type."""

    exam_type = models.ForeignKey(
        ExamType, on_delete=models.CASCADE, related_name='exam_dates', db_index=True
    )

    scheduled_at = models.DateTimeField(db_index=True)
    # Legacy single-venue text, superseded by location_links
    location = models.CharField(max_length=200, blank=True, default='')

    # Status: upcoming, completed, cancelled
    status = models.CharField(
        max_length=20, choices=STATUS_CHOICES, default=UPCOMING, db_index=True
    )
    # Owned by the registration system; read-only here
    current_registrations = models.PositiveIntegerField(default=0)

    locations = models.ManyToManyField(
        'core.Location', through='ExamDateLocation', related_name='exam_dates', blank=True
    )

    class Meta:
        db_table = 'exam_dates'
        ordering = ['scheduled_at']
        permissions = [
            ('can_sweep_exam_dates', 'Can mark expired exam dates as completed'),
        ]

    def __str__(self):
        return f'{self.exam_type.code_name} on {format_wall_clock(self.scheduled_at)}'

    @property
    def max_participants(self):
        return sum(link.location.capacity for link in self.location_links.all())

    def to_dict(self):
        links = list(self.location_links.all())
        return {
            'id': self.id,
            'exam_type_id': self.exam_type_id,
            'date': format_wall_clock(self.scheduled_at),
            'status': self.status,
            'location': self.location,
            'locations': [link.to_dict() for link in links],
            'current_registrations': self.current_registrations,
            'max_participants': sum(link.location.capacity for link in links),
        }


class ExamDateLocation(models.Model):
    """Hall assigned to an exam date; ``priority`` orders halls for display."""

    exam_date = models.ForeignKey(
        ExamDate, on_delete=models.CASCADE, related_name='location_links', db_index=True
    )
    location = models.ForeignKey(
        'core.Location', on_delete=models.RESTRICT, related_name='exam_date_links', db_index=True
    )
    priority = models.PositiveIntegerField(default=0)

    class Meta:
        db_table = 'exam_date_locations'
        ordering = ['priority', 'id']
        constraints = [
            models.UniqueConstraint(
                fields=['exam_date', 'location'],
                name='unique_exam_date_location'
            ),
        ]

    def __str__(self):
        return f'{self.location.location_name} (priority {self.priority})'

    def to_dict(self):
        return {
            'id': self.location_id,
            'location_name': self.location.location_name,
            'capacity': self.location.capacity,
            'priority': self.priority,
        }
