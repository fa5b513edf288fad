"""
Register the backup schedules with django-celery-beat.

Usage:
    python manage.py seed_periodic_tasks
    python manage.py seed_periodic_tasks --check-hour 1 --cleanup-hour 4
"""
import json

from django.conf import settings
from django.core.management.base import BaseCommand, CommandError
from django_celery_beat.models import CrontabSchedule, PeriodicTask

SCHEDULES = [
    ("Automated backup check", "backups.tasks.run_automated_backup_check", "check_hour"),
    ("Cleanup automated backups", "backups.tasks.cleanup_automated_backups", "cleanup_hour"),
]


class Command(BaseCommand):
    help = "Create or update the periodic tasks for automated backups"

    def add_arguments(self, parser):
        parser.add_argument("--check-hour", type=int, default=2, help="Hour for the workload check (default: 2)")
        parser.add_argument("--cleanup-hour", type=int, default=3, help="Hour for retention cleanup (default: 3)")

    def handle(self, *args, **options):
        for name, task, hour_option in SCHEDULES:
            hour = options[hour_option]
            if not 0 <= hour <= 23:
                raise CommandError(f"--{hour_option.replace('_', '-')} must be between 0 and 23")

            schedule, _ = CrontabSchedule.objects.get_or_create(
                minute="0",
                hour=str(hour),
                day_of_week="*",
                day_of_month="*",
                month_of_year="*",
                timezone=settings.TIME_ZONE,
            )
            _, created = PeriodicTask.objects.update_or_create(
                name=name,
                defaults={
                    "task": task,
                    "crontab": schedule,
                    "interval": None,
                    "args": json.dumps([]),
                    "enabled": True,
                },
            )
            verb = "Created" if created else "Updated"
            self.stdout.write(f"{verb} '{name}' at {hour:02d}:00")

        self.stdout.write(self.style.SUCCESS("Periodic tasks ready"))
