"""
Web page adapter for sources without a feed.
"""

import logging

from regscan.scanner import health
from regscan.scanner.models import SourceFetch
from regscan.scanner.scraper import scrape
from regscan.scanner.sources.base import SourceAdapter

logger = logging.getLogger(__name__)


class ScrapeSiteAdapter(SourceAdapter):
    """Scrape article links from a listing page."""

    def fetch(self, days: int = 14) -> SourceFetch:
        result = scrape(self.source)

        if result.error:
            logger.warning("Scrape %s failed: %s", self.name, result.error)
            return SourceFetch(
                health=health.failing(self.source, result.error, result.retries_used),
                error=f"Scrape {self.name}: {result.error}",
            )

        if not result.items:
            logger.info("  %s: no items found", self.name)
            return SourceFetch(
                health=health.degraded(self.source, "No items found", result.retries_used),
            )

        logger.info("  %s: %d items", self.name, len(result.items))
        return SourceFetch(
            items=result.items,
            health=health.healthy(self.source, result.items, result.retries_used),
        )
