"""Trend scoring Celery tasks.

Tasks:
- run_scoring_pass: one scoring pass over the mentions since the last completed run
"""

import asyncio
from datetime import datetime
from typing import Any

from celery import shared_task
from celery.utils.log import get_task_logger

from trendpulse.core.container import close_resources, container
from trendpulse.services.engine.base import BatchWindow, PassStats

logger = get_task_logger(__name__)


async def _run_scoring_pass_async(window: BatchWindow | None) -> PassStats:
    engine = container.trend_engine()
    try:
        return await engine.run_scoring_pass(window)
    finally:
        await close_resources()


@shared_task(
    bind=True,
    name="trendpulse.workers.scoring.run_scoring_pass",
    max_retries=0,
)
def run_scoring_pass(
    self,
    window_start: str | None = None,
    window_end: str | None = None,
) -> dict[str, Any]:
    """Run one scoring pass.

    Failed or timed-out passes are recorded by the engine and are not
    retried; the next scheduled pass starts where the last completed one
    ended, so it covers the same mentions.

    Args:
        window_start: ISO timestamp of the window start (optional)
        window_end: ISO timestamp of the window end (optional)

    Returns:
        PassStats as dict
    """
    window = None
    if window_start and window_end:
        window = BatchWindow(
            start=datetime.fromisoformat(window_start),
            end=datetime.fromisoformat(window_end),
        )

    logger.info(f"Starting scoring pass (task {self.request.id})")
    try:
        stats = asyncio.run(_run_scoring_pass_async(window))
    finally:
        # Clients were bound to the loop asyncio.run just closed
        container.reset_singletons()

    logger.info(
        f"Scoring pass {stats.status.value}: {stats.events_scored} events scored, "
        f"{stats.spikes_detected} spikes, {stats.events_failed} failed "
        f"in {stats.duration_ms:.0f}ms"
    )
    return stats.model_dump(mode="json")


__all__ = ["run_scoring_pass"]
