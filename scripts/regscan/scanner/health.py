"""
Per-source health telemetry.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from .models import RawItem, Source, SourceHealth

logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _base(source: Source) -> SourceHealth:
    return SourceHealth(
        source_name=source.name,
        source_url=source.url,
        source_type=source.type,
        last_check=_now(),
        status="healthy",
    )


def healthy(source: Source, items: List[RawItem], retries_used: int) -> SourceHealth:
    health = _base(source)
    health.last_success = health.last_check
    health.items_fetched = len(items)
    health.retries_used = retries_used
    return health


def failing(source: Source, error: Optional[str], retries_used: int) -> SourceHealth:
    health = _base(source)
    health.status = "failing"
    health.error_message = error or "Unknown error"
    health.retries_used = retries_used
    return health


def degraded(source: Source, message: str, retries_used: int) -> SourceHealth:
    health = _base(source)
    health.status = "degraded"
    health.error_message = message
    health.retries_used = retries_used
    return health


def record_health(health_store: Any, health: SourceHealth) -> Optional[dict]:
    """
    Upsert one health record keyed by source URL.

    ``consecutive_failures`` grows by one on each failing check and resets
    to zero otherwise. Store errors are logged and swallowed.

    Returns:
        The stored record, or None if the write failed.
    """
    try:
        existing = health_store.filter({"source_url": health.source_url}, limit=1)
        if existing:
            previous = existing[0]
            if health.status == "failing":
                health.consecutive_failures = (previous.get("consecutive_failures") or 0) + 1
            else:
                health.consecutive_failures = 0
            patch = health.as_record()
            if health.status != "failing":
                patch["error_message"] = None
            return health_store.update(previous["id"], patch)

        health.consecutive_failures = 1 if health.status == "failing" else 0
        return health_store.create(health.as_record())
    except Exception as e:
        logger.warning("Health tracking failed for %s: %s", health.source_name, e)
        return None


def _record_group(health_store: Any, records: List[SourceHealth]) -> int:
    return sum(1 for health in records if record_health(health_store, health) is not None)


async def record_all(health_store: Any, records: List[SourceHealth]) -> int:
    """
    Write health records; returns how many were stored.

    Records sharing a source URL are written one after another so the
    upsert sees the earlier write. Distinct URLs are written concurrently.
    """
    groups: Dict[str, List[SourceHealth]] = {}
    for health in records:
        groups.setdefault(health.source_url, []).append(health)

    results = await asyncio.gather(
        *(asyncio.to_thread(_record_group, health_store, group) for group in groups.values()),
        return_exceptions=True,
    )
    return sum(r for r in results if not isinstance(r, Exception))
