"""
Organization, OrganizationAdmin and Location models.
"""
from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models

from .mixins import TimestampMixin


class Organization(TimestampMixin):
    """A university or institute that runs examinations."""

    name = models.CharField(max_length=200, unique=True)
    is_active = models.BooleanField(default=True)

    class Meta:
        db_table = 'organizations'
        ordering = ['name']

    def __str__(self):
        return self.name

    def to_dict(self):
        return {'id': self.id, 'name': self.name}


class OrganizationAdmin(TimestampMixin):
    """Links an auth user to the organization they administer."""

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE,
        related_name='organization_admin',
    )
    organization = models.ForeignKey(
        Organization, on_delete=models.CASCADE, related_name='admins', db_index=True
    )

    class Meta:
        db_table = 'organization_admins'

    def __str__(self):
        return f'{self.user} @ {self.organization}'


class Location(TimestampMixin):
    """An examination hall with a fixed seating capacity."""

    organization = models.ForeignKey(
        Organization, on_delete=models.CASCADE, related_name='locations', db_index=True
    )
    location_name = models.CharField(max_length=200)
    capacity = models.PositiveIntegerField(validators=[MinValueValidator(1)])

    class Meta:
        db_table = 'locations'
        ordering = ['location_name']
        constraints = [
            models.UniqueConstraint(
                fields=['organization', 'location_name'],
                name='unique_organization_location'
            ),
        ]

    def __str__(self):
        return f'{self.location_name} ({self.capacity})'

    def to_dict(self):
        return {
            'id': self.id,
            'organization_id': self.organization_id,
            'location_name': self.location_name,
            'capacity': self.capacity,
        }
