"""
Celery application configuration.

This is the main Celery app for the TaxDesk backend.
It runs backup/restore jobs, automated backup checks, approval
emails and other background work.

Usage:
    # Start worker
    celery -A taxdesk_backend worker -l INFO

    # Start beat scheduler (for periodic tasks)
    celery -A taxdesk_backend beat -l INFO

    # Start both (development only)
    celery -A taxdesk_backend worker -B -l INFO
"""
import os

from celery import Celery

# Set default Django settings
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "taxdesk_backend.settings")

# Create Celery app
app = Celery("taxdesk_backend")

# Load config from Django settings
app.config_from_object("django.conf:settings", namespace="CELERY")

# Auto-discover tasks from all installed apps
app.autodiscover_tasks()
