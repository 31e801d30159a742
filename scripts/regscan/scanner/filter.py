"""
Rule-based relevance filtering ahead of classification.

Exclusion rules learned from user feedback drop matching items before they
reach the (expensive) classification call. Inclusion rules are not applied
here; they are passed to the classification prompt as prioritisation hints.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from .models import Lookup, RawItem, RelevanceRule
from .outbox import Outbox

logger = logging.getLogger(__name__)


@dataclass
class FilterOutcome:
    """Items kept and excluded by the relevance rules."""

    kept: List[RawItem] = field(default_factory=list)
    excluded: List[Tuple[RawItem, RelevanceRule]] = field(default_factory=list)

    @property
    def total_excluded(self) -> int:
        return len(self.excluded)

    def __str__(self) -> str:
        return f"Relevance rules: {len(self.kept)} kept, {self.total_excluded} excluded"


def rule_matches(rule: RelevanceRule, item: RawItem) -> bool:
    """Case-insensitive substring match of an exclusion rule against an item."""
    pattern = (rule.pattern or "").lower()
    if not pattern:
        return False

    title = (item.title or "").lower()
    description = (item.description or "").lower()
    source = (item.source or "").lower()

    if rule.rule_type in ("exclude_keyword", "exclude_topic"):
        return pattern in title or pattern in description
    if rule.rule_type == "exclude_title_pattern":
        return pattern in title
    if rule.rule_type == "exclude_source_pattern":
        return pattern in source
    return False


class RelevanceFilter:
    """Applies active exclusion rules to candidate items."""

    def __init__(
        self,
        rules: List[RelevanceRule],
        rule_store: Any = None,
        outbox: Optional[Outbox] = None,
    ) -> None:
        """
        Initialize the filter.

        Args:
            rules: All loaded rules; inactive and inclusion rules are ignored.
            rule_store: Store used to record rule usage (optional).
            outbox: Queue for the usage-count writes (optional).
        """
        self.rules = [r for r in rules if r.is_active and r.is_exclusion and r.pattern]
        self.rule_store = rule_store
        self.outbox = outbox

    def _record_usage(self, rule: RelevanceRule, matches: int) -> None:
        """Queue one write per rule carrying its final usage count."""
        if self.outbox is None or self.rule_store is None or rule.id is None:
            return
        rule.times_applied += matches
        rule_id, times_applied = rule.id, rule.times_applied
        store = self.rule_store
        self.outbox.enqueue(
            f"rule-usage:{rule_id}",
            lambda: store.update(rule_id, {"times_applied": times_applied}),
        )

    def match(self, item: RawItem) -> Optional[RelevanceRule]:
        """Return the first exclusion rule matching ``item``, if any."""
        for rule in self.rules:
            if rule_matches(rule, item):
                return rule
        return None

    def apply(self, items: List[RawItem]) -> FilterOutcome:
        """
        Filter items against the exclusion rules.

        The first matching rule drops an item. Each rule that matched gets a
        single usage-count write queued on the outbox.

        Args:
            items: Candidate items.

        Returns:
            FilterOutcome with kept and excluded items.
        """
        outcome = FilterOutcome()
        matches: Dict[int, int] = {}
        for item in items:
            rule = self.match(item)
            if rule is None:
                outcome.kept.append(item)
                continue
            outcome.excluded.append((item, rule))
            matches[id(rule)] = matches.get(id(rule), 0) + 1
            logger.debug("Excluded %r by %s rule %r", item.title, rule.rule_type, rule.pattern)

        for rule in self.rules:
            if id(rule) in matches:
                self._record_usage(rule, matches[id(rule)])

        if outcome.total_excluded:
            logger.info(str(outcome))
        return outcome


def load_rules(rule_store: Any) -> Lookup[List[RelevanceRule]]:
    """Load active relevance rules; degrades to no rules if the store fails."""
    try:
        records = rule_store.filter({"is_active": True})
    except Exception as e:
        logger.info("No relevance rules available, proceeding without filtering: %s", e)
        return Lookup.degrade([], e)
    return Lookup([RelevanceRule.from_record(r) for r in records])
