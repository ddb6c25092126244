"""
Celery Configuration for the Flipp Backend

Runs the periodic exchange-rate refresh and the stale checkout sweep.
"""

import os

from celery import Celery


# Set the default Django settings module for the 'celery' program.
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "flippBackend.settings")

app = Celery("flippBackend")

# Using a string here means the worker doesn't have to serialize
# the configuration object to child processes.
app.config_from_object("django.conf:settings", namespace="CELERY")

# Load task modules from all registered Django apps.
app.autodiscover_tasks()
app.autodiscover_tasks(["payment_system.Tasks"])

REFRESH_SECONDS = float(os.environ.get("EXCHANGE_RATE_REFRESH_SECONDS", "3600"))

app.conf.beat_schedule = {
    "refresh-exchange-rates": {
        "task": "payment_system.Tasks.exchange_rate_tasks.refresh_exchange_rates_task",
        "schedule": REFRESH_SECONDS,
        "options": {"expires": REFRESH_SECONDS / 2, "queue": "marketplace_tasks"},
    },
    "expire-stale-checkouts": {
        "task": "payment_system.Tasks.payment_tasks.expire_stale_checkouts_task",
        "schedule": 60.0 * 60.0,  # Every hour
        "options": {"expires": 15.0 * 60.0, "queue": "payment_tasks"},
    },
}

app.conf.update(
    task_routes={
        "payment_system.Tasks.payment_tasks.*": {"queue": "payment_tasks"},
        "payment_system.Tasks.exchange_rate_tasks.*": {"queue": "marketplace_tasks"},
    },
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    result_expires=60 * 60 * 24,
    worker_max_tasks_per_child=1000,
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    task_time_limit=10 * 60,
    task_soft_time_limit=8 * 60,
)
