"""
RSS/Atom/RDF feed adapter.
"""

import logging
from datetime import datetime, timedelta, timezone
from email.utils import parsedate_to_datetime
from typing import List, Optional

from regscan.config import config
from regscan.scanner import health
from regscan.scanner.feed_parser import parse_feed
from regscan.scanner.http import fetch_with_retry
from regscan.scanner.models import RawItem, SourceFetch
from regscan.scanner.sources.base import SourceAdapter

logger = logging.getLogger(__name__)

DATE_FORMATS = ("%Y-%m-%d", "%m/%d/%Y", "%B %d, %Y", "%b %d, %Y", "%d %B %Y")


def parse_date(value: Optional[str]) -> Optional[datetime]:
    """Parse an RFC 822, ISO 8601 or common human date into an aware datetime."""
    if not value:
        return None
    value = value.strip()

    parsed = None
    try:
        parsed = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        pass

    if parsed is None:
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            pass

    if parsed is None:
        for fmt in DATE_FORMATS:
            try:
                parsed = datetime.strptime(value, fmt)
                break
            except ValueError:
                continue

    if parsed is None:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def within_date_range(pub_date: Optional[str], days: int, now: Optional[datetime] = None) -> bool:
    """Items without a date are kept; items with an unreadable date are not."""
    if not pub_date:
        return True
    parsed = parse_date(pub_date)
    if parsed is None:
        return False
    now = now or datetime.now(timezone.utc)
    return parsed >= now - timedelta(days=days)


class RSSFeedAdapter(SourceAdapter):
    """Fetch and parse a single syndication feed."""

    def fetch(self, days: int = 14) -> SourceFetch:
        outcome = fetch_with_retry(
            self.source.url,
            headers={"User-Agent": config.get("http.scanner_user_agent")},
        )
        if not outcome.success:
            logger.warning("RSS %s failed: %s", self.name, outcome.error)
            return SourceFetch(
                health=health.failing(self.source, outcome.error, outcome.attempts_used),
                error=f"RSS {self.name}: {outcome.error}",
            )

        items = parse_feed(outcome.text, self.name)
        recent = self._recent(items, days)
        logger.info("  %s: %d items (%d in range)", self.name, len(items), len(recent))
        return SourceFetch(
            items=recent,
            health=health.healthy(self.source, recent, outcome.attempts_used),
        )

    def _recent(self, items: List[RawItem], days: int) -> List[RawItem]:
        limit = config.get("scan.items_per_feed", 20)
        return [item for item in items if within_date_range(item.pub_date, days)][:limit]
