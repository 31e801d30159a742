"""
APScheduler factory: creates and configures the scheduler with the scan job.
"""

import logging

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_MISSED
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from regscan.config import config

logger = logging.getLogger(__name__)


def create_scheduler() -> AsyncIOScheduler:
    """Create an AsyncIOScheduler with the periodic scan job configured.

    Reads the interval and timezone from config under ``scheduler``.
    The job uses misfire_grace_time=3600 to survive sleep/wake.

    Returns:
        Configured AsyncIOScheduler (not yet started).
    """
    timezone = config.get("scheduler.timezone", "UTC")
    scheduler = AsyncIOScheduler(timezone=timezone)

    _add_scan_job(scheduler)

    from regscan.scheduler.error_handler import job_error_listener

    scheduler.add_listener(job_error_listener, mask=EVENT_JOB_ERROR | EVENT_JOB_MISSED)

    logger.info(
        "Scheduler configured with %d jobs (timezone=%s)", len(scheduler.get_jobs()), timezone
    )
    return scheduler


def _add_scan_job(scheduler: AsyncIOScheduler) -> None:
    from regscan.scheduler.jobs import scan_job

    hours = config.get("scheduler.interval_hours", 6)
    scheduler.add_job(
        scan_job,
        IntervalTrigger(hours=hours),
        id="regulatory_scan",
        name="Regulatory News Scan",
        misfire_grace_time=3600,
        coalesce=True,
        max_instances=1,
        replace_existing=True,
    )
    logger.info("Scan scheduled every %s hours", hours)
