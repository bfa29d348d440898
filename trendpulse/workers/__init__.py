"""Celery workers for TrendPulse.

Modules:
- celery_app: Celery application configuration and beat schedule
- scoring: Scoring pass tasks
"""

from trendpulse.workers.celery_app import celery_app

__all__ = [
    "celery_app",
]
