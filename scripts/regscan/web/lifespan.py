"""
FastAPI lifespan context manager.

Starts/stops APScheduler alongside the web server when it is enabled in config.
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import FastAPI

from regscan.config import config

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage startup/shutdown of the scheduler."""
    app.state.started_at = datetime.now()
    app.state.scheduler = _start_scheduler()

    logger.info("Scanner started: scheduler=%s", app.state.scheduler is not None)

    yield

    if app.state.scheduler:
        try:
            app.state.scheduler.shutdown(wait=False)
            logger.info("Scheduler stopped")
        except Exception:
            logger.exception("Error stopping scheduler")

    logger.info("Scanner shutdown complete")


def _start_scheduler():
    """Start APScheduler if scanning on a schedule is enabled."""
    if not config.get("scheduler.enabled", False):
        logger.info("Scheduler disabled in config")
        return None

    try:
        from regscan.scheduler.setup import create_scheduler

        scheduler = create_scheduler()
        scheduler.start()
        logger.info("APScheduler started with %d jobs", len(scheduler.get_jobs()))
        return scheduler
    except Exception:
        logger.exception("Failed to start scheduler")
        return None
