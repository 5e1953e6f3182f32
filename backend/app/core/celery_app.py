"""
Celery application for scheduled bulk runs and worker-side resumption
"""

from celery import Celery

from app.core.config import settings

celery_app = Celery(
    "glowbot",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=["app.tasks.bulk_tasks"]
)

celery_app.conf.update(
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    # A bulk run can take many minutes; one at a time per worker process
    worker_prefetch_multiplier=1,
    task_acks_late=True,
    beat_schedule={
        "run-due-scheduled-bulk-jobs": {
            "task": "run_due_scheduled_bulk_jobs",
            "schedule": float(settings.SCHEDULER_CHECK_INTERVAL),
        },
    },
)
