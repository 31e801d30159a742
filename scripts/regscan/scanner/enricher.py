"""
Article enrichment: fetch each candidate's own page for full text, a precise
publish date and the author.

Enrichment is best-effort. Any failure leaves the item exactly as it was.
"""

import asyncio
import copy
import logging
from typing import List, Optional

from bs4 import BeautifulSoup

from ..config import config
from .http import fetch_with_retry
from .models import RawItem, collapse_whitespace

logger = logging.getLogger(__name__)

DATE_PROBES = [
    ('meta[property="article:published_time"]', "content"),
    ('meta[name="date"]', "content"),
    ('meta[name="pubdate"]', "content"),
    ('meta[name="publish_date"]', "content"),
    ("time[datetime]", "datetime"),
]

AUTHOR_META_PROBES = [
    ('meta[name="author"]', "content"),
    ('meta[property="article:author"]', "content"),
]
AUTHOR_TEXT_PROBES = [".author", ".byline", '[rel="author"]']

CONTENT_SELECTORS = [
    "article",
    '[role="main"]',
    ".post-content",
    ".article-content",
    ".entry-content",
    ".main-content",
    "#content",
    "main",
]


def _probe_attribute(soup: BeautifulSoup, probes: list) -> Optional[str]:
    for selector, attribute in probes:
        found = soup.select_one(selector)
        if found is not None and found.get(attribute):
            return found.get(attribute).strip()
    return None


def _probe_text(soup: BeautifulSoup, selectors: list) -> Optional[str]:
    for selector in selectors:
        found = soup.select_one(selector)
        if found is not None:
            text = collapse_whitespace(found.get_text(" ", strip=True))
            if text:
                return text
    return None


def extract_main_text(soup: BeautifulSoup) -> str:
    """
    Find the article body.

    Tries the container selectors in order and accepts the first whose text
    is substantial; otherwise joins the substantial paragraphs, provided
    there are enough of them.
    """
    min_container = config.get("enrichment.min_container_chars", 300)
    for selector in CONTENT_SELECTORS:
        found = soup.select_one(selector)
        if found is not None:
            text = found.get_text(" ", strip=True)
            if len(text) > min_container:
                return text

    min_paragraph = config.get("enrichment.min_paragraph_chars", 60)
    paragraphs = [p.get_text(" ", strip=True) for p in soup.find_all("p")]
    substantial = [text for text in paragraphs if len(text) > min_paragraph]
    if len(substantial) >= config.get("enrichment.min_paragraphs", 3):
        return "\n\n".join(substantial)
    return ""


def apply_page(item: RawItem, html_text: str) -> RawItem:
    """Merge what can be learned from an article page into ``item``."""
    soup = BeautifulSoup(html_text, "html.parser")

    published = _probe_attribute(soup, DATE_PROBES)
    if published:
        item.pub_date = published

    if not item.author:
        author = _probe_attribute(soup, AUTHOR_META_PROBES) or _probe_text(soup, AUTHOR_TEXT_PROBES)
        if author:
            item.author = author

    content = extract_main_text(soup)
    if content:
        max_chars = config.get("enrichment.max_content_chars", 8000)
        item.full_content = collapse_whitespace(content)[:max_chars]

        if not item.description or len(item.description) < config.get(
            "enrichment.weak_description_chars", 150
        ):
            preview = config.get("enrichment.description_preview_chars", 300)
            item.description = item.full_content[:preview] + "..."

    return item


def enrich(item: RawItem) -> RawItem:
    """
    Enrich an item from its article page.

    Items without an absolute link are returned untouched, as is any item
    whose page cannot be fetched or parsed.

    Args:
        item: Item to enrich in place.

    Returns:
        The same item.
    """
    if not item.link or not item.link.startswith("http"):
        return item

    outcome = fetch_with_retry(item.link)
    if not outcome.success:
        logger.debug("Enrichment fetch failed for %s: %s", item.link, outcome.error)
        return item

    # Work on a copy so a parse failure cannot leave the item half-updated
    candidate = copy.copy(item)
    try:
        apply_page(candidate, outcome.text)
    except Exception as e:
        logger.debug("Enrichment failed for %s: %s", item.link, e)
        return item

    item.pub_date = candidate.pub_date
    item.author = candidate.author
    item.full_content = candidate.full_content
    item.description = candidate.description
    return item


async def enrich_all(items: List[RawItem], limit: Optional[int] = None) -> int:
    """
    Enrich the first ``limit`` items concurrently.

    Args:
        items: Candidate items; enriched in place.
        limit: Maximum number of items to enrich (default from config).

    Returns:
        Number of items that gained full content.
    """
    if limit is None:
        limit = config.get("scan.enrich_limit", 15)
    batch = items[:limit]
    if not batch:
        return 0

    logger.info("Enriching %d new items with full content", len(batch))
    results = await asyncio.gather(
        *(asyncio.to_thread(enrich, item) for item in batch),
        return_exceptions=True,
    )
    for item, result in zip(batch, results):
        if isinstance(result, Exception):
            logger.debug("Enrichment task failed for %s: %s", item.link, result)
    return sum(1 for item in batch if item.full_content)
