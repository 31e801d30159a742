"""
APScheduler event listener for scan job failures and missed runs.
"""

import logging

from apscheduler.events import EVENT_JOB_MISSED

logger = logging.getLogger(__name__)


def job_error_listener(event):
    """Log EVENT_JOB_ERROR and EVENT_JOB_MISSED events."""
    if event.code == EVENT_JOB_MISSED:
        logger.warning(
            "Scheduled job '%s' missed its run time %s", event.job_id, event.scheduled_run_time
        )
        return

    logger.error(
        "Scheduled job '%s' failed: %s\n%s",
        event.job_id,
        event.exception,
        event.traceback or "",
    )
