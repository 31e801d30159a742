"""
Article discovery on plain web pages.

Sources without a feed are scraped either with a configured title/link regex
(for script-rendered pages where the DOM carries little) or by CSS selectors
over the parsed document. A page whose DOM cannot be queried falls back to
the regex extractor.
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional
from urllib.parse import urlparse

from bs4 import BeautifulSoup

from ..config import config
from .http import fetch_with_retry
from .models import RawItem, ScrapeSelectors, Source, collapse_whitespace, strip_tags

logger = logging.getLogger(__name__)

DEFAULT_ARTICLE_SELECTOR = "article a, .card a, .insight a, .post a, h2 a, h3 a"
GENERIC_DATE_SELECTOR = 'time, .date, .timestamp, [class*="date"]'
GENERIC_AUTHOR_SELECTOR = '.author, .byline, [rel="author"], .meta-author'

REGEX_STOPWORDS = ("view all", "read more", "subscribe")
DOM_STOPWORDS = REGEX_STOPWORDS + ("sign up",)
MAX_TITLE_LENGTH = 300


@dataclass
class ScrapeResult:
    """Items found on a page; ``error`` is set only when the page could not be fetched."""

    items: List[RawItem] = field(default_factory=list)
    error: Optional[str] = None
    retries_used: int = 0


def browser_headers() -> dict:
    return {
        "User-Agent": config.get("http.browser_user_agent"),
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
        "Accept-Language": "en-US,en;q=0.5",
    }


def absolute_link(link: str, source: Source) -> str:
    """Resolve a relative link against the configured base URL or the page origin."""
    if not link or link.startswith("http"):
        return link
    selectors = source.selectors or ScrapeSelectors()
    if selectors.base_url:
        base = selectors.base_url.rstrip("/")
    else:
        parsed = urlparse(source.url)
        base = f"{parsed.scheme}://{parsed.netloc}"
    return base + link if link.startswith("/") else f"{base}/{link}"


def _is_utility_title(title: str, stopwords: tuple) -> bool:
    lowered = title.lower()
    return any(word in lowered for word in stopwords) or len(title) > MAX_TITLE_LENGTH


def extract_with_pattern(
    html_text: str,
    source: Source,
    limit: int,
    min_title_length: int,
    fold_case: bool = True,
) -> List[RawItem]:
    """
    Extract items by applying the source's title/link regex to raw HTML.

    Args:
        html_text: Page HTML.
        source: Source with ``selectors.title_pattern`` set.
        limit: Maximum number of matches to consider.
        min_title_length: Titles shorter than this are skipped.
        fold_case: Dedupe titles case-insensitively.

    Returns:
        Extracted items, first occurrence per title.
    """
    pattern = source.selectors.title_pattern if source.selectors else None
    if pattern is None:
        return []

    items = []
    seen = set()
    now = datetime.now(timezone.utc).isoformat()

    for match in list(pattern.finditer(html_text))[:limit]:
        groups = match.groups() + (None,) * 4
        link = groups[0] or groups[2] or ""
        title = collapse_whitespace(strip_tags(groups[1] or groups[3] or ""))
        key = title.lower() if fold_case else title

        if not title or len(title) < min_title_length or key in seen:
            continue
        seen.add(key)
        if _is_utility_title(title, REGEX_STOPWORDS):
            continue

        items.append(
            RawItem(
                title=title,
                link=absolute_link(link, source),
                description="",
                pub_date=now,
                source=source.name,
            )
        )
    return items


def _first_text(element, selector: str) -> str:
    found = element.select_one(selector)
    return collapse_whitespace(found.get_text(" ", strip=True)) if found else ""


def _date_text(element, selector: str) -> str:
    found = element.select_one(selector)
    if not found:
        return ""
    return (found.get("datetime") or found.get_text(" ", strip=True) or "").strip()


def extract_with_dom(html_text: str, source: Source, limit: int) -> List[RawItem]:
    """
    Extract items by CSS selection over the parsed page.

    Raises:
        Exception: Whatever the HTML parser or selector engine raises; callers
            fall back to the regex extractor.
    """
    selectors = source.selectors or ScrapeSelectors()
    soup = BeautifulSoup(html_text, "html.parser")
    elements = soup.select(selectors.article or DEFAULT_ARTICLE_SELECTOR)

    items = []
    seen = set()
    for element in elements[:limit]:
        title_element = element.select_one(selectors.title) if selectors.title else None
        if title_element is not None:
            title = title_element.get_text(" ", strip=True)
            if title_element.name == "a":
                anchor = title_element
            else:
                anchor = title_element.find_parent("a") or element.select_one("a")
        else:
            anchor = element if element.name == "a" else element.select_one("a")
            title = anchor.get_text(" ", strip=True) if anchor is not None else ""

        if anchor is None:
            continue

        title = collapse_whitespace(title)
        if not title or len(title) < 10 or title.lower() in seen:
            continue
        if _is_utility_title(title, DOM_STOPWORDS):
            continue
        seen.add(title.lower())

        pub_date = _date_text(element, selectors.date or GENERIC_DATE_SELECTOR)
        description = _first_text(element, selectors.description) if selectors.description else ""
        author = _first_text(element, selectors.author or GENERIC_AUTHOR_SELECTOR)

        items.append(
            RawItem(
                title=title,
                link=absolute_link(anchor.get("href", "") or "", source),
                description=description,
                pub_date=pub_date or datetime.now(timezone.utc).isoformat(),
                source=source.name,
                author=author,
            )
        )
    return items


def scrape(source: Source) -> ScrapeResult:
    """
    Fetch a page and extract candidate articles.

    Never raises. A failed fetch yields ``error``; a fetched page with nothing
    extractable yields no items and no error.

    Args:
        source: Scrape source configuration.

    Returns:
        ScrapeResult with items, error and attempts used.
    """
    outcome = fetch_with_retry(source.url, headers=browser_headers())
    if not outcome.success:
        return ScrapeResult(error=outcome.error, retries_used=outcome.attempts_used)

    html_text = outcome.text
    selectors = source.selectors or ScrapeSelectors()
    limit = config.get("scan.scrape_limit", 20)

    if selectors.regex_only and selectors.title_pattern:
        items = extract_with_pattern(html_text, source, limit=limit, min_title_length=15)
        return ScrapeResult(items=items, retries_used=outcome.attempts_used)

    try:
        items = extract_with_dom(html_text, source, limit=limit)
    except Exception as e:
        logger.warning("DOM extraction failed for %s, using regex fallback: %s", source.name, e)
        items = extract_with_pattern(
            html_text,
            source,
            limit=config.get("scan.scrape_fallback_limit", 15),
            min_title_length=10,
            fold_case=False,
        )

    return ScrapeResult(items=items, retries_used=outcome.attempts_used)


def compile_title_pattern(pattern: Optional[str]) -> Optional[re.Pattern]:
    """Compile a stored title/link pattern, ignoring invalid ones."""
    if not pattern:
        return None
    try:
        return re.compile(pattern, re.IGNORECASE)
    except re.error as e:
        logger.warning("Ignoring invalid title pattern %r: %s", pattern, e)
        return None
