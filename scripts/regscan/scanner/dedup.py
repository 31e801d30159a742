"""
Deduplication of candidate items.

An item is a duplicate when its normalized title or its normalized, non-empty
URL has been seen before, whether earlier in the same batch, in the recent
history of persisted updates, or among updates saved earlier in this scan.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Iterable, List, Optional, Set
from urllib.parse import parse_qs, urlencode, urlparse, urlunparse

from ..config import config
from .models import Lookup, RawItem, collapse_whitespace

logger = logging.getLogger(__name__)

TRACKING_PREFIXES = ("utm_",)
TRACKING_PARAMS = {"fbclid", "gclid"}


def _is_tracking_param(name: str) -> bool:
    return name in TRACKING_PARAMS or name.startswith(TRACKING_PREFIXES)


def normalize_url(url: Optional[str]) -> Optional[str]:
    """Normalize a URL for dedup comparison.

    Lowercases, strips tracking params, the fragment and trailing slashes.
    Returns None for empty input.
    """
    if not url or not url.strip():
        return None

    try:
        parsed = urlparse(url.lower().strip())

        if parsed.query:
            params = parse_qs(parsed.query, keep_blank_values=True)
            filtered = {k: v for k, v in params.items() if not _is_tracking_param(k)}
            query = urlencode(filtered, doseq=True)
        else:
            query = ""

        path = parsed.path.rstrip("/")

        return urlunparse((parsed.scheme, parsed.netloc, path, parsed.params, query, ""))
    except ValueError:
        return url.lower().strip()


def normalize_title(title: Optional[str]) -> str:
    """Normalize a title for comparison: lowercase, trimmed, single-spaced."""
    if not title:
        return ""
    return collapse_whitespace(title).lower()


@dataclass
class KnownKeys:
    """Title and URL membership sets for duplicate checks."""

    titles: Set[str] = field(default_factory=set)
    urls: Set[str] = field(default_factory=set)

    def contains(self, title: Optional[str], url: Optional[str]) -> bool:
        title_key = normalize_title(title)
        url_key = normalize_url(url)
        if title_key and title_key in self.titles:
            return True
        return bool(url_key and url_key in self.urls)

    def add(self, title: Optional[str], url: Optional[str]) -> None:
        title_key = normalize_title(title)
        url_key = normalize_url(url)
        if title_key:
            self.titles.add(title_key)
        if url_key:
            self.urls.add(url_key)

    @classmethod
    def from_records(cls, records: Iterable[dict]) -> "KnownKeys":
        keys = cls()
        for record in records:
            keys.add(record.get("title"), record.get("source_url"))
        return keys


@dataclass
class DedupResult:
    """Items that survived deduplication, with removal counts."""

    items: List[RawItem] = field(default_factory=list)
    batch_removed: int = 0
    history_removed: int = 0
    degraded: bool = False

    @property
    def removed(self) -> int:
        return self.batch_removed + self.history_removed


def dedupe_batch(items: List[RawItem]) -> List[RawItem]:
    """Keep the first occurrence per normalized title and per normalized URL."""
    seen = KnownKeys()
    unique = []
    for item in items:
        if seen.contains(item.title, item.link):
            continue
        seen.add(item.title, item.link)
        unique.append(item)
    return unique


def load_known_keys(
    update_store: Any,
    window_days: Optional[int] = None,
    limit: Optional[int] = None,
) -> Lookup[KnownKeys]:
    """
    Build title/URL sets from recently persisted updates.

    Degrades to empty sets when the store cannot be read.

    Args:
        update_store: Store exposing ``filter(criteria, since=, limit=)``.
        window_days: How far back to look (default from config).
        limit: Maximum number of records to read (default from config).

    Returns:
        Lookup of KnownKeys.
    """
    if window_days is None:
        window_days = config.get("scan.history_window_days", 60)
    if limit is None:
        limit = config.get("scan.history_limit", 500)

    since = datetime.now() - timedelta(days=window_days)
    try:
        records = update_store.filter({}, since=since, limit=limit)
    except Exception as e:
        logger.error("Failed to fetch existing updates for deduplication: %s", e)
        return Lookup.degrade(KnownKeys(), e)
    return Lookup(KnownKeys.from_records(records))


def dedupe(items: List[RawItem], update_store: Any) -> DedupResult:
    """
    Remove duplicates within the batch and against recent history.

    If history cannot be read, the batch-deduplicated items are returned and
    the result is marked degraded.

    Args:
        items: Candidate items from all sources.
        update_store: Store of persisted updates.

    Returns:
        DedupResult with surviving items and counts.
    """
    batch = dedupe_batch(items)
    result = DedupResult(items=batch, batch_removed=len(items) - len(batch))
    if not batch:
        return result

    known = load_known_keys(update_store)
    if known.degraded:
        result.degraded = True
        return result

    fresh = [item for item in batch if not known.value.contains(item.title, item.link)]
    result.items = fresh
    result.history_removed = len(batch) - len(fresh)

    if result.removed:
        logger.info(
            "Deduplicated %d items (%d in batch, %d already stored)",
            result.removed,
            result.batch_removed,
            result.history_removed,
        )
    return result
