"""
Health check endpoint for monitoring service status.
"""

import logging
from datetime import datetime

from fastapi import APIRouter, Depends, Request

from regscan import __version__
from regscan.database import Database
from regscan.web.dependencies import get_db

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


def _scheduler_status(scheduler) -> dict:
    if scheduler is None:
        return {"running": False, "jobs": []}
    return {
        "running": scheduler.running,
        "jobs": [
            {
                "id": job.id,
                "name": job.name,
                "next_run": str(job.next_run_time) if job.next_run_time else None,
            }
            for job in scheduler.get_jobs()
        ],
    }


@router.get("/health")
async def health_check(request: Request, db: Database = Depends(get_db)):
    """Return service status, including sources currently failing."""
    started_at = getattr(request.app.state, "started_at", None)
    uptime_seconds = (datetime.now() - started_at).total_seconds() if started_at else None

    try:
        failing = [r.get("source_name") for r in db.health.filter({"status": "failing"})]
        store_ok = True
    except Exception as e:
        logger.warning("Health check could not read source health: %s", e)
        failing = []
        store_ok = False

    return {
        "status": "healthy" if store_ok else "degraded",
        "version": __version__,
        "started_at": str(started_at) if started_at else None,
        "uptime_seconds": uptime_seconds,
        "store": {"available": store_ok},
        "failing_sources": failing,
        "scheduler": _scheduler_status(getattr(request.app.state, "scheduler", None)),
    }
