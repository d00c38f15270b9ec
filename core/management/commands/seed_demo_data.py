"""
Management command: seed_demo_data

Creates a demo organization with an admin account, examination halls and a
few exam types with upcoming, past and cancelled sittings. Safe to re-run:
existing rows are reused.

Usage:
  python manage.py seed_demo_data --username demo-admin --password secret
"""
from datetime import timedelta
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand
from django.db import transaction
from django.utils import timezone

from core.models import (
    ExamDate, ExamDateLocation, ExamType, Location, Organization, OrganizationAdmin,
)
from core.scheduling.lifecycle import CANCELLED, UPCOMING

ORGANIZATION_NAME = 'Demo University'

HALLS = [
    ('Main Hall', 200),
    ('Hall B', 80),
    ('Computer Lab 1', 40),
]

# (code, name, price, description, [(days from now, hour, halls, registrations, status)])
EXAM_DEFS = [
    ('GCAT', 'General Cognitive Aptitude Test', '150.00',
     'Measures verbal, quantitative and logical reasoning for undergraduate admission.',
     [(21, 9, ['Main Hall', 'Hall B'], 236, UPCOMING),
      (49, 9, ['Main Hall'], 41, UPCOMING),
      (-14, 9, ['Main Hall'], 190, UPCOMING)]),
    ('EPT', 'English Proficiency Test', '90.00',
     'Reading, listening and writing sections for non-native speakers.',
     [(10, 13, ['Computer Lab 1'], 38, UPCOMING),
      (30, 13, ['Computer Lab 1', 'Hall B'], 12, CANCELLED)]),
    ('MAT', 'Mathematics Placement Test', '0',
     '', []),
]


class Command(BaseCommand):
    help = 'Seed a demo organization, halls and exam schedule'

    def add_arguments(self, parser):
        parser.add_argument('--username', type=str, default='demo-admin')
        parser.add_argument('--password', type=str, default='demo-admin-pass')

    @transaction.atomic
    def handle(self, *args, **options):
        organization, _ = Organization.objects.get_or_create(name=ORGANIZATION_NAME)

        User = get_user_model()
        user, created = User.objects.get_or_create(username=options['username'])
        if created:
            user.set_password(options['password'])
            user.save()
            self.stdout.write(f"  Created user: {user.username}")
        OrganizationAdmin.objects.update_or_create(user=user, defaults={'organization': organization})

        halls = {}
        for name, capacity in HALLS:
            halls[name], _ = Location.objects.get_or_create(
                organization=organization, location_name=name, defaults={'capacity': capacity},
            )

        now = timezone.now().replace(minute=0, second=0, microsecond=0)
        created_types = 0
        for code, name, price, description, dates in EXAM_DEFS:
            exam_type, was_created = ExamType.objects.get_or_create(
                organization=organization, code_name=code,
                defaults={'name': name, 'price': Decimal(price), 'description': description},
            )
            if not was_created:
                self.stdout.write(f'  Already exists: {code}')
                continue
            created_types += 1

            for days, hour, hall_names, registrations, status in dates:
                exam_date = ExamDate.objects.create(
                    exam_type=exam_type,
                    scheduled_at=(now + timedelta(days=days)).replace(hour=hour),
                    status=status,
                    current_registrations=registrations,
                )
                ExamDateLocation.objects.bulk_create([
                    ExamDateLocation(exam_date=exam_date, location=halls[hall], priority=priority)
                    for priority, hall in enumerate(hall_names, start=1)
                ])

            upcoming = [d for d in exam_type.exam_dates.all() if d.scheduled_at > now]
            if upcoming:
                exam_type.registration_deadline = min(d.scheduled_at for d in upcoming) - timedelta(days=3)
                exam_type.save(update_fields=['registration_deadline'])
            self.stdout.write(f'  Created exam type: {code}')

        self.stdout.write(self.style.SUCCESS(
            f'Done. {created_types} exam type(s) created for {organization.name}.'
        ))
