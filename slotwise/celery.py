"""
Celery configuration for Slotwise.

Background work is limited to warming the availability cache ahead of demand.
"""

import logging
import os

from celery import Celery
from celery.schedules import crontab
from celery.signals import task_failure, task_retry, task_success

logger = logging.getLogger(__name__)

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "slotwise.settings.development")

app = Celery("slotwise")

# Using a string here means the worker doesn't have to serialize
# the configuration object to child processes.
app.config_from_object("django.conf:settings", namespace="CELERY")
app.autodiscover_tasks()

app.conf.task_routes = {
    "apps.availabilityapp.tasks.*": {"queue": "availability"},
}

app.conf.beat_schedule = {
    "refresh-availability-precompute": {
        "task": "apps.availabilityapp.tasks.precompute_all_organizers",
        "schedule": crontab(hour=2, minute=0),
        "options": {"expires": 3600},
    },
}


@task_success.connect
def task_success_handler(sender=None, **kwargs):
    logger.info(f"Task {sender.name} succeeded")


@task_failure.connect
def task_failure_handler(sender=None, exception=None, **kwargs):
    logger.error(f"Task {sender.name} failed: {exception}")


@task_retry.connect
def task_retry_handler(sender=None, reason=None, **kwargs):
    logger.warning(f"Task {sender.name} retrying: {reason}")
