"""
Celery application configuration.

Handles periodic ledger verification and background repair jobs.

Usage:
    # Start worker
    celery -A ledgercore worker -l INFO

    # Start beat scheduler (for periodic tasks)
    celery -A ledgercore beat -l INFO
"""
import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "ledgercore.settings")

app = Celery("ledgercore")

# Load config from Django settings
app.config_from_object("django.conf:settings", namespace="CELERY")

# Auto-discover tasks from all installed apps
app.autodiscover_tasks()
