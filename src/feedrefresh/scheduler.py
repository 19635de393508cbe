"""Scheduler configuration using APScheduler.

Provides the periodic feed refresh job.
"""

from datetime import datetime

import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from feedrefresh.services.refresh_service import RefreshService

logger = structlog.get_logger()


def create_scheduler(
    refresh_service: RefreshService,
    interval_minutes: int = 30,
    run_immediately: bool = False,
) -> AsyncIOScheduler:
    """Create and configure the task scheduler.

    Args:
        refresh_service: Refresh service whose run is scheduled.
        interval_minutes: Minutes between refresh runs.
        run_immediately: Also run once as soon as the scheduler starts.

    Returns:
        Configured AsyncIOScheduler.
    """
    scheduler = AsyncIOScheduler()

    # next_run_time=None would add the job paused, so only pass it when set
    extra = {"next_run_time": datetime.now()} if run_immediately else {}

    # A run outlasts the interval while rate-limited batches wait
    scheduler.add_job(
        refresh_service.run_refresh,
        trigger=IntervalTrigger(minutes=interval_minutes),
        id="feed_refresh",
        name="Periodic Feed Refresh",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
        **extra,
    )

    logger.info(
        "Scheduler configured",
        job_id="feed_refresh",
        interval_minutes=interval_minutes,
    )

    return scheduler


async def run_once(refresh_service: RefreshService) -> dict:
    """Run the refresh once immediately.

    Args:
        refresh_service: Refresh service instance.

    Returns:
        Refresh statistics.
    """
    logger.info("Running refresh manually")
    return await refresh_service.run_refresh()
