"""
Source registry: built-in feeds and pages merged with sources configured in the store.
"""

import logging
import re
from typing import Any, Iterable, List, Optional

from regscan.scanner.models import Lookup, ScrapeSelectors, Source
from regscan.scanner.scraper import compile_title_pattern
from regscan.scanner.sources.base import SourceAdapter
from regscan.scanner.sources.rss import RSSFeedAdapter
from regscan.scanner.sources.scrape import ScrapeSiteAdapter

logger = logging.getLogger(__name__)

RSS_FEEDS = [
    # US government
    Source("FTC Press Releases", "https://www.ftc.gov/feeds/press-release.xml", region="US"),
    Source(
        "FTC Consumer Protection",
        "https://www.ftc.gov/feeds/press-release-consumer-protection.xml",
        region="US",
    ),
    Source(
        "FTC Competition",
        "https://www.ftc.gov/feeds/press-release-competition.xml",
        region="US",
    ),
    Source("OCC News Releases", "https://www.occ.gov/rss/occ_news.xml", region="US"),
    Source("OCC Bulletins", "https://www.occ.gov/rss/occ_bulletins.xml", region="US"),
    # EU
    Source("EU Competition News", "https://ec.europa.eu/competition/rss/news_en.xml", region="EU"),
    # Legal blogs
    Source("SCOTUSblog", "https://www.scotusblog.com/feed/", region="US"),
    Source("IPKat", "https://ipkitten.blogspot.com/feeds/posts/default", region="Global"),
    Source("Law and the Workplace", "https://www.lawandtheworkplace.com/feed/", region="US"),
    Source(
        "Consumer Financial Services Law Monitor",
        "https://www.consumerfinancialserviceslawmonitor.com/feed/",
        region="US",
    ),
    # Fintech
    Source("Fintech Business Weekly", "https://fintechbusinessweekly.substack.com/feed", region="US"),
    # Legal news
    Source("Law360", "https://www.law360.com/search/articles?format=rss&q=&facet=", region="US"),
    Source("Law360 Pulse Legal Tech", "https://www.law360.com/pulse/legal-tech/rss", region="US"),
]

SCRAPE_CONFIGS = [
    Source(
        "Skadden Insights",
        "https://www.skadden.com/insights",
        type="scrape",
        region="US",
        selectors=ScrapeSelectors(
            article="article, .insight-item, .card, [class*='insight'], [class*='article']",
            title_pattern=re.compile(
                r'<a[^>]*href="([^"]*/insights/[^"]*)"[^>]*>([^<]+)</a>', re.IGNORECASE
            ),
        ),
    ),
    Source(
        "CFPB Newsroom",
        "https://www.consumerfinance.gov/about-us/newsroom/",
        type="scrape",
        region="US",
        selectors=ScrapeSelectors(
            title_pattern=re.compile(
                r'<a[^>]*href="(/about-us/newsroom/[^"]*)"[^>]*class="[^"]*"[^>]*>([^<]+)</a>'
                r'|<h[1-3][^>]*class="[^"]*title[^"]*"[^>]*><a[^>]*href="([^"]*)"[^>]*>([^<]+)</a>',
                re.IGNORECASE,
            ),
            base_url="https://www.consumerfinance.gov",
        ),
    ),
    Source(
        "FDIC Press Releases",
        "https://www.fdic.gov/news/press-releases",
        type="scrape",
        region="US",
        selectors=ScrapeSelectors(
            title_pattern=re.compile(
                r'<a[^>]*href="(/news/press-releases/[^"]*)"[^>]*>([^<]+)</a>', re.IGNORECASE
            ),
            base_url="https://www.fdic.gov",
        ),
    ),
    Source(
        "EBG Law Insights",
        "https://www.ebglaw.com/insights/",
        type="scrape",
        region="US",
        selectors=ScrapeSelectors(
            title_pattern=re.compile(
                r'<a[^>]*href="(https://www\.ebglaw\.com/insights/[^"]*)"[^>]*>([^<]+)</a>',
                re.IGNORECASE,
            ),
        ),
    ),
    Source(
        "Jackson Lewis",
        "https://www.jacksonlewis.com/insights",
        type="scrape",
        region="US",
        selectors=ScrapeSelectors(
            title_pattern=re.compile(
                r'<a[^>]*href="(https://www\.jacksonlewis\.com/insights/[^"]*)"[^>]*>([^<]+)</a>'
                r'|<a[^>]*href="(/insights/[^"]*)"[^>]*>([^<]+)</a>',
                re.IGNORECASE,
            ),
            base_url="https://www.jacksonlewis.com",
        ),
    ),
]

# Selection ids for the built-in sources, as shown to users
STATIC_SOURCE_IDS = {
    "ftc": "FTC Press Releases",
    "ftc_consumer": "FTC Consumer Protection",
    "ftc_competition": "FTC Competition",
    "occ_news": "OCC News Releases",
    "occ_bulletins": "OCC Bulletins",
    "eu_competition": "EU Competition News",
    "scotusblog": "SCOTUSblog",
    "ipkat": "IPKat",
    "lawworkplace": "Law and the Workplace",
    "cfs_monitor": "Consumer Financial Services Law Monitor",
    "fintech_weekly": "Fintech Business Weekly",
    "law360": "Law360",
    "law360_pulse": "Law360 Pulse Legal Tech",
    "skadden": "Skadden Insights",
    "ebglaw": "EBG Law Insights",
    "jacksonlewis": "Jackson Lewis",
    "cfpb": "CFPB Newsroom",
    "fdic": "FDIC Press Releases",
}


def static_sources() -> List[Source]:
    return RSS_FEEDS + SCRAPE_CONFIGS


def source_from_record(record: dict) -> Optional[Source]:
    """Build a Source from a stored source record; invalid records yield None."""
    source_type = record.get("type")
    if source_type not in ("rss", "scrape") or not record.get("url") or not record.get("name"):
        logger.warning("Skipping invalid source record %s", record.get("id"))
        return None

    selectors = None
    if source_type == "scrape":
        selectors = ScrapeSelectors(
            article=record.get("scrape_selector") or None,
            title=record.get("title_selector") or None,
            date=record.get("date_selector") or None,
            description=record.get("description_selector") or None,
            author=record.get("author_selector") or None,
            title_pattern=compile_title_pattern(record.get("title_pattern")),
            base_url=record.get("base_url") or None,
            regex_only=bool(record.get("use_regex_only")),
        )

    return Source(
        name=record["name"],
        url=record["url"],
        type=source_type,
        region=record.get("region") or "Global",
        id=str(record["id"]) if record.get("id") is not None else None,
        selectors=selectors,
    )


def load_dynamic_sources(source_store: Any) -> Lookup[List[Source]]:
    """Load active user-configured sources; degrades to none if the store fails."""
    try:
        records = source_store.filter({"is_active": True})
    except Exception as e:
        logger.error("Failed to fetch custom sources: %s", e)
        return Lookup.degrade([], e)

    sources = [s for s in (source_from_record(r) for r in records) if s is not None]
    return Lookup(sources)


def select_sources(sources: List[Source], selected_ids: Optional[Iterable[str]]) -> List[Source]:
    """
    Restrict sources to a user selection.

    Built-in sources are selected by their short id (see STATIC_SOURCE_IDS),
    configured sources by their store id. No selection means all sources.
    """
    if not selected_ids:
        return list(sources)

    selected = {str(i) for i in selected_ids}
    names = {STATIC_SOURCE_IDS[i] for i in selected if i in STATIC_SOURCE_IDS}
    chosen = [
        s for s in sources if (s.id is None and s.name in names) or (s.id is not None and s.id in selected)
    ]
    logger.info("Filtered to %d of %d sources based on selection", len(chosen), len(sources))
    return chosen


def get_adapters(sources: List[Source]) -> List[SourceAdapter]:
    """Wrap each source in the adapter for its type."""
    adapters: List[SourceAdapter] = []
    for source in sources:
        if source.type == "rss":
            adapters.append(RSSFeedAdapter(source))
        else:
            adapters.append(ScrapeSiteAdapter(source))
    return adapters
