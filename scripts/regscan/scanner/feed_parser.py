"""
Feed parsing for RSS 2.0, Atom and RDF/RSS 1.0 sources.

Parsing is an ordered chain of strategies. The structured strategy uses
feedparser and maps every entry through one dialect-aware function; the
regex strategies recover items from feeds that are not well-formed XML but
still contain recognisable ``<item>`` or ``<entry>`` blocks.
"""

import html
import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, List, Optional

import feedparser

from .models import RawItem, strip_tags

logger = logging.getLogger(__name__)


class FeedDialect(Enum):
    RSS2 = "rss2"
    ATOM = "atom"
    RDF = "rdf"

    @classmethod
    def from_version(cls, version: Optional[str]) -> Optional["FeedDialect"]:
        """Map a feedparser version string (e.g. 'rss20', 'atom10') to a dialect."""
        version = (version or "").lower()
        if version.startswith("atom"):
            return cls.ATOM
        if version in ("rss10", "rss090"):
            return cls.RDF
        if version.startswith("rss"):
            return cls.RSS2
        return None


@dataclass
class StrategyResult:
    """Outcome of one parsing strategy."""

    items: List[RawItem] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None and bool(self.items)


def node_text(value: Any) -> str:
    """
    Normalize any text-bearing node to trimmed, tag-stripped plain text.

    Accepts plain strings, ``{"#text": ...}`` / ``{"#cdata": ...}`` wrappers,
    feedparser detail dicts (``{"value": ...}``) and lists of any of these
    (the first non-empty one wins).
    """
    if value is None:
        return ""
    if isinstance(value, (list, tuple)):
        for element in value:
            text = node_text(element)
            if text:
                return text
        return ""
    if isinstance(value, dict):
        for key in ("#text", "#cdata", "value"):
            if value.get(key):
                return node_text(str(value[key]))
        return ""
    return html.unescape(strip_tags(str(value))).strip()


def resolve_atom_link(links: Any) -> str:
    """Pick the article link among Atom link entries.

    Prefers ``rel="alternate"`` or ``type="text/html"``, else the first link.
    """
    if not links:
        return ""
    if isinstance(links, dict):
        links = [links]
    for link in links:
        if link.get("type") == "text/html" or link.get("rel") == "alternate":
            return link.get("href", "") or ""
    return links[0].get("href", "") or ""


def _entry_to_item(entry: Any, dialect: FeedDialect, source_name: str) -> Optional[RawItem]:
    title = node_text(entry.get("title"))
    if not title:
        return None

    if dialect is FeedDialect.ATOM:
        link = resolve_atom_link(entry.get("links")) or node_text(entry.get("link"))
        description = node_text(entry.get("summary")) or node_text(entry.get("content"))
        pub_date = node_text(entry.get("published")) or node_text(entry.get("updated"))
    elif dialect is FeedDialect.RDF:
        link = node_text(entry.get("link"))
        description = node_text(entry.get("summary"))
        # feedparser exposes dc:date as "updated"
        pub_date = node_text(entry.get("updated")) or node_text(entry.get("published"))
    else:
        link = node_text(entry.get("link")) or resolve_atom_link(entry.get("links"))
        description = node_text(entry.get("summary"))
        pub_date = node_text(entry.get("published")) or node_text(entry.get("updated"))

    return RawItem(
        title=title,
        link=link,
        description=description,
        pub_date=pub_date,
        source=source_name,
        author=node_text(entry.get("author")),
    )


def parse_structured(xml_text: str, source_name: str) -> StrategyResult:
    """Parse with feedparser; malformed documents that yield no entries fail."""
    try:
        parsed = feedparser.parse(xml_text)
    except Exception as e:
        return StrategyResult(error=f"feedparser failed: {e}")

    if parsed.get("bozo") and not parsed.entries:
        return StrategyResult(error=f"Malformed feed: {parsed.get('bozo_exception')}")

    dialect = FeedDialect.from_version(parsed.get("version")) or FeedDialect.RSS2
    items = []
    for entry in parsed.entries:
        item = _entry_to_item(entry, dialect, source_name)
        if item:
            items.append(item)
    return StrategyResult(items=items)


def extract_tag(xml: str, tag_name: str) -> str:
    """Extract the text of the first ``tag_name`` element, unwrapping CDATA."""
    tag = re.escape(tag_name)
    pattern = re.compile(
        rf"<{tag}[^>]*><!\[CDATA\[(.*?)\]\]></{tag}>|<{tag}[^>]*>(.*?)</{tag}>",
        re.IGNORECASE | re.DOTALL,
    )
    match = pattern.search(xml)
    if not match:
        return ""
    return node_text(match.group(1) or match.group(2) or "")


_ITEM_BLOCK_RE = re.compile(r"<item\b[^>]*>(.*?)</item>", re.IGNORECASE | re.DOTALL)
_ENTRY_BLOCK_RE = re.compile(r"<entry\b[^>]*>(.*?)</entry>", re.IGNORECASE | re.DOTALL)
_HREF_RE = re.compile(r"<link[^>]*href=[\"']([^\"']*)[\"']", re.IGNORECASE)


def parse_item_blocks(xml_text: str, source_name: str) -> StrategyResult:
    """Recover RSS/RDF ``<item>`` blocks with per-tag regexes."""
    items = []
    for block in _ITEM_BLOCK_RE.findall(xml_text):
        title = extract_tag(block, "title")
        if not title:
            continue
        items.append(
            RawItem(
                title=title,
                link=extract_tag(block, "link"),
                description=extract_tag(block, "description"),
                pub_date=extract_tag(block, "pubDate") or extract_tag(block, "dc:date"),
                source=source_name,
            )
        )
    return StrategyResult(items=items)


def parse_entry_blocks(xml_text: str, source_name: str) -> StrategyResult:
    """Recover Atom ``<entry>`` blocks with per-tag regexes."""
    items = []
    for block in _ENTRY_BLOCK_RE.findall(xml_text):
        title = extract_tag(block, "title")
        if not title:
            continue
        href = _HREF_RE.search(block)
        items.append(
            RawItem(
                title=title,
                link=href.group(1) if href else "",
                description=extract_tag(block, "summary") or extract_tag(block, "content"),
                pub_date=extract_tag(block, "published") or extract_tag(block, "updated"),
                source=source_name,
            )
        )
    return StrategyResult(items=items)


PARSE_STRATEGIES: List[Callable[[str, str], StrategyResult]] = [
    parse_structured,
    parse_item_blocks,
    parse_entry_blocks,
]


def parse_feed(xml_text: str, source_name: str) -> List[RawItem]:
    """
    Parse feed XML into RawItems.

    Strategies run in order until one produces items; a feed that no
    strategy understands yields an empty list.

    Args:
        xml_text: Raw feed document.
        source_name: Name recorded on every item.

    Returns:
        Items with non-empty titles.
    """
    for strategy in PARSE_STRATEGIES:
        result = strategy(xml_text, source_name)
        if result.ok:
            return result.items
        if result.error:
            logger.debug("%s: %s failed: %s", source_name, strategy.__name__, result.error)
    return []
