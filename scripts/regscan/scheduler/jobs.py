"""
Scheduled job definitions.

Jobs are async functions run on the scheduler's event loop; the scan itself
already pushes blocking I/O onto worker threads.
"""

import logging
from typing import Optional

from regscan.config import config

logger = logging.getLogger(__name__)


async def scan_job(date_range_days: Optional[int] = None) -> Optional[dict]:
    """Run a full scan over all sources and log the outcome.

    Raises:
        RuntimeError: If the scan fails, so the error listener records it.
    """
    from regscan.scanner.orchestrator import ScanRequest
    from regscan.services import get_orchestrator

    days = date_range_days or config.get("scan.default_date_range_days", 14)
    logger.info("Scheduled scan started (last %d days)", days)

    report = await get_orchestrator().run(ScanRequest(date_range_days=days))
    if not report.success:
        raise RuntimeError(f"Scheduled scan failed: {report.error}")

    logger.info(
        "Scheduled scan complete: %d fetched, %d duplicates, %d filtered, %d saved, %d errors",
        report.stats.fetched,
        report.stats.duplicates_skipped,
        report.stats.filtered_by_rules,
        report.updates_saved,
        len(report.errors),
    )
    return report.to_dict()
