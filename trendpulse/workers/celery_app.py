"""Celery application configuration.

This module configures the Celery application for TrendPulse background
tasks. Uses Redis as both broker and result backend; scoring passes run on
a fixed beat schedule.
"""

from datetime import timedelta

from celery import Celery

from trendpulse.core.config import get_config

config = get_config()

# Create Celery app
celery_app = Celery(
    "trendpulse",
    broker=str(config.celery_broker_url),
    backend=str(config.celery_result_backend),
)

# A pass abandons itself at pass_timeout_seconds; the hard limit is a backstop
_pass_timeout = int(config.pass_timeout_seconds)

celery_app.conf.update(
    # Task settings
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    # Task execution settings
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    task_time_limit=_pass_timeout + 60,
    task_soft_time_limit=_pass_timeout + 30,
    # Worker settings
    worker_prefetch_multiplier=1,
    worker_max_tasks_per_child=100,
    # Result settings
    result_expires=86400,  # 24 hours
    # Beat scheduler settings
    beat_scheduler="celery.beat:PersistentScheduler",
    beat_schedule_filename="celerybeat-schedule",
    beat_schedule={
        "trend-scoring-pass": {
            "task": "trendpulse.workers.scoring.run_scoring_pass",
            "schedule": timedelta(seconds=config.scoring_interval_seconds),
            "options": {
                "queue": "scoring",
                # A pass that could not start before the next one is pointless
                "expires": config.scoring_interval_seconds,
            },
        },
    },
    # Task routes
    task_routes={
        "trendpulse.workers.scoring.*": {"queue": "scoring"},
    },
    # Default queue
    task_default_queue="default",
)

# Auto-discover tasks from these modules
celery_app.autodiscover_tasks(
    [
        "trendpulse.workers.scoring",
    ]
)

__all__ = ["celery_app"]
