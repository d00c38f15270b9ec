"""
Management command: sweep_exam_dates

Marks every upcoming exam date whose start time has passed as completed.
Meant for cron; the Manage Exams screen also sweeps when it loads.
"""
from django.core.management.base import BaseCommand, CommandError
from django.utils import timezone

from core.scheduling.timestamps import parse_wall_clock
from core.services import ExamService


class Command(BaseCommand):
    help = 'Mark expired upcoming exam dates as completed'

    def add_arguments(self, parser):
        parser.add_argument(
            '--now', type=str, default=None,
            help='Reference time as YYYY-MM-DDTHH:MM (defaults to the current time)',
        )

    def handle(self, *args, **options):
        try:
            now = parse_wall_clock(options['now']) or timezone.now()
        except ValueError:
            raise CommandError(f"Invalid --now value: {options['now']!r}")

        result = ExamService.sweep_expired_exam_dates(now=now)
        self.stdout.write(self.style.SUCCESS(
            f"Done. {result['updated_count']} exam date(s) marked as completed."
        ))
