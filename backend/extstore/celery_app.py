"""Celery application bootstrap used by workers and beat."""

from __future__ import annotations

from celery import Celery
from celery.schedules import crontab
from kombu import Exchange, Queue

from extstore.config import settings

celery_app = Celery(
    "extstore",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=[
        "extstore.tasks.sync",
    ],
)

celery_app.conf.update(
    task_default_queue=settings.CELERY_DEFAULT_QUEUE,
    task_default_exchange="extstore",
    task_default_routing_key="store.default",
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    task_soft_time_limit=settings.CELERY_TASK_SOFT_TIME_LIMIT,
    task_time_limit=settings.CELERY_TASK_TIME_LIMIT,
    task_queues=[
        # Default queue for unassigned tasks
        Queue(
            settings.CELERY_DEFAULT_QUEUE,
            Exchange("extstore"),
            routing_key="store.default",
        ),
        # Sync: GitHub release polling and package downloads
        Queue(
            "sync",
            Exchange("extstore"),
            routing_key="store.sync",
        ),
    ],
    broker_connection_retry_on_startup=True,
    # Celery Beat Schedule for periodic tasks
    beat_schedule={
        "sync-all-extensions-hourly": {
            "task": "extstore.tasks.sync.sync_all_extensions",
            "schedule": crontab(minute=settings.BULK_SYNC_CRON_MINUTE),
        },
    },
    timezone="UTC",
)


__all__ = ["celery_app"]
