"""
Core data types shared by the scan pipeline.
"""

import re
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Generic, List, Optional, Pattern, TypeVar

T = TypeVar("T")

SOURCE_TYPES = ("rss", "scrape")
HEALTH_STATUSES = ("healthy", "degraded", "failing")
RULE_TYPES = (
    "include_keyword",
    "include_topic",
    "exclude_keyword",
    "exclude_topic",
    "exclude_title_pattern",
    "exclude_source_pattern",
)


@dataclass(frozen=True)
class ScrapeSelectors:
    """Extraction hints for a scraped page.

    ``title_pattern`` groups are (link, title), with groups 3 and 4 as an
    alternate (link, title) pair for patterns with two branches.
    """

    article: Optional[str] = None
    title: Optional[str] = None
    date: Optional[str] = None
    description: Optional[str] = None
    author: Optional[str] = None
    title_pattern: Optional[Pattern[str]] = None
    base_url: Optional[str] = None
    regex_only: bool = False


@dataclass(frozen=True)
class Source:
    """One configured origin of articles."""

    name: str
    url: str
    type: str = "rss"
    region: str = "Global"
    id: Optional[str] = None
    selectors: Optional[ScrapeSelectors] = None

    def __post_init__(self):
        if self.type not in SOURCE_TYPES:
            raise ValueError(f"Unknown source type: {self.type}")

    @property
    def identity(self) -> str:
        """Store-assigned id for dynamic sources, name for static ones."""
        return self.id or self.name


@dataclass
class RawItem:
    """A candidate article extracted from a source, prior to persistence."""

    title: str
    link: str
    description: str
    pub_date: str
    source: str
    author: str = ""
    full_content: Optional[str] = None


@dataclass
class SourceHealth:
    """Per-source status and telemetry, upserted once per scan."""

    source_name: str
    source_url: str
    source_type: str
    last_check: str
    status: str
    last_success: Optional[str] = None
    items_fetched: Optional[int] = None
    error_message: Optional[str] = None
    consecutive_failures: int = 0
    retries_used: int = 0

    def as_record(self) -> Dict[str, Any]:
        """Convert to a store record, leaving out unset optional fields."""
        return {k: v for k, v in asdict(self).items() if v is not None}


@dataclass
class RelevanceRule:
    """A learned or static pattern used to exclude or prioritise items."""

    rule_type: str
    pattern: str
    id: Optional[int] = None
    domain: Optional[str] = None
    source_name: Optional[str] = None
    reason: str = ""
    accuracy_score: float = 0.7
    derived_from_feedback_count: int = 1
    times_applied: int = 0
    is_active: bool = True

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "RelevanceRule":
        return cls(
            rule_type=record.get("rule_type") or "",
            pattern=record.get("pattern") or "",
            id=record.get("id"),
            domain=record.get("domain"),
            source_name=record.get("source_name"),
            reason=record.get("reason") or "",
            accuracy_score=record.get("accuracy_score") or 0.7,
            derived_from_feedback_count=record.get("derived_from_feedback_count") or 1,
            times_applied=record.get("times_applied") or 0,
            is_active=bool(record.get("is_active", True)),
        )

    @property
    def is_exclusion(self) -> bool:
        return self.rule_type.startswith("exclude")

    @property
    def is_inclusion(self) -> bool:
        return self.rule_type.startswith("include")


@dataclass
class Lookup(Generic[T]):
    """Result of a best-effort lookup.

    When the lookup fails, ``value`` holds the documented default for the
    call site and ``error`` explains why.
    """

    value: T
    error: Optional[str] = None

    @property
    def degraded(self) -> bool:
        return self.error is not None

    @classmethod
    def degrade(cls, default: T, error: Any) -> "Lookup[T]":
        return cls(value=default, error=str(error) or type(error).__name__)


@dataclass
class SourceFetch:
    """Items and health telemetry produced by fetching one source."""

    items: List[RawItem] = field(default_factory=list)
    health: Optional[SourceHealth] = None
    error: Optional[str] = None


def collapse_whitespace(text: str) -> str:
    """Collapse runs of whitespace to single spaces and trim."""
    return re.sub(r"\s+", " ", text or "").strip()


def strip_tags(text: str) -> str:
    """Remove anything that looks like an HTML/XML tag."""
    return re.sub(r"<[^>]*>", "", text or "")
