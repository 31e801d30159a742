"""
Learning relevance rules from user feedback.

A user marking an update relevant produces inclusion rules (prioritisation
hints for the classification prompt). Marking it irrelevant produces
exclusion rules that the relevance filter applies on later scans, and
resolves the update. Rules that already exist are reinforced instead of
duplicated.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from pydantic import BaseModel

from .classifier import validate
from .llm import Analyzer

logger = logging.getLogger(__name__)

DEFAULT_CONFIDENCE = 0.7
USER_KEYWORD_ACCURACY = 0.8
REINFORCE_STEP = 0.05


class InclusionSuggestions(BaseModel):
    include_keywords: List[str] = []
    include_topics: List[str] = []
    confidence: Optional[float] = None


class ExclusionSuggestions(BaseModel):
    topic_exclusions: List[str] = []
    keyword_patterns: List[str] = []
    title_patterns: List[str] = []
    confidence: Optional[float] = None
    reasoning: Optional[str] = None


INCLUSION_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "include_keywords": {"type": "array", "items": {"type": "string"}},
        "include_topics": {"type": "array", "items": {"type": "string"}},
        "confidence": {"type": "number"},
    },
}

EXCLUSION_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "topic_exclusions": {
            "type": "array",
            "items": {"type": "string"},
            "description": "Specific sub-topics to exclude",
        },
        "keyword_patterns": {
            "type": "array",
            "items": {"type": "string"},
            "description": "Keywords indicating irrelevance",
        },
        "title_patterns": {
            "type": "array",
            "items": {"type": "string"},
            "description": "Title patterns to filter",
        },
        "confidence": {"type": "number", "description": "Confidence in these patterns (0-1)"},
        "reasoning": {"type": "string", "description": "Explanation of the learning"},
    },
}

INCLUSION_PROMPT = """You are an AI learning system. A user marked this article as RELEVANT to their SaaS compliance needs.

ARTICLE:
- Title: {title}
- Source: {source}
- Domain: {domain}
- Summary: {summary}

USER FEEDBACK:
- Reason: {reason}
- User-provided keywords to include: {keywords}

Extract 2-3 additional specific keywords or topics from this article that should be PRIORITIZED in future scans. Be conservative - only suggest patterns clearly indicated by this article."""

EXCLUSION_PROMPT = """You are an AI learning system for a regulatory compliance tool. A user has marked the following article as NOT RELEVANT to their SaaS business compliance needs.

ARTICLE DETAILS:
- Title: {title}
- Source: {source}
- Domain: {domain}
- Summary: {summary}

USER FEEDBACK:
- Reason: {reason}
- Additional Details: {details}

Analyze this feedback and extract patterns that should be used to filter out similar irrelevant articles in future scans. Consider:

1. TOPIC EXCLUSIONS: Specific topics within the domain that aren't relevant (e.g., "grocery mergers" within Antitrust)
2. KEYWORD PATTERNS: Words or phrases that indicate irrelevance (be specific, avoid overly broad terms)
3. TITLE PATTERNS: Common title structures that indicate irrelevant content

Be conservative - only suggest patterns that are clearly indicated by this feedback. Don't over-generalize.
Each pattern should be specific enough to avoid false positives but general enough to catch similar articles."""


@dataclass
class Feedback:
    """A user's verdict on one persisted update."""

    title: str
    is_relevant: bool
    reason: str = ""
    feedback_id: Optional[int] = None
    update_id: Optional[int] = None
    summary: str = ""
    source: str = ""
    domain: str = ""
    details: str = ""
    include_keywords: List[str] = field(default_factory=list)


@dataclass
class LearningResult:
    rules_created: int = 0
    rules_updated: int = 0
    patterns: List[str] = field(default_factory=list)
    confidence: float = DEFAULT_CONFIDENCE
    reasoning: Optional[str] = None
    kind: str = "exclude"

    @property
    def patterns_learned(self) -> int:
        return self.rules_created + self.rules_updated

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": True,
            "type": self.kind,
            "patterns_learned": self.patterns_learned,
            "rules_created": self.rules_created,
            "rules_updated": self.rules_updated,
            "patterns": self.patterns,
            "confidence": self.confidence,
            "reasoning": self.reasoning,
        }


class RuleLearner:
    """Turns feedback into relevance rules."""

    def __init__(self, analyzer: Analyzer, rule_store: Any, feedback_store: Any, update_store: Any):
        self.analyzer = analyzer
        self.rule_store = rule_store
        self.feedback_store = feedback_store
        self.update_store = update_store

    def learn(self, feedback: Feedback) -> LearningResult:
        """
        Learn rules from one piece of feedback.

        Args:
            feedback: The user's verdict and context.

        Returns:
            LearningResult with counts and the learned patterns.
        """
        if feedback.feedback_id is None:
            record = self.feedback_store.create(
                {
                    "update_id": feedback.update_id,
                    "is_relevant": feedback.is_relevant,
                    "reason": feedback.reason,
                    "details": feedback.details,
                }
            )
            feedback.feedback_id = record["id"]

        if feedback.is_relevant:
            return self._learn_inclusions(feedback)
        return self._learn_exclusions(feedback)

    def _prompt_fields(self, feedback: Feedback) -> Dict[str, str]:
        return {
            "title": feedback.title,
            "source": feedback.source,
            "domain": feedback.domain,
            "summary": feedback.summary or "Not provided",
            "reason": feedback.reason,
        }

    def _learn_inclusions(self, feedback: Feedback) -> LearningResult:
        user_reason = f"User marked article as relevant: {feedback.reason}"
        rules = [
            self._rule("include_keyword", keyword, feedback, USER_KEYWORD_ACCURACY, user_reason)
            for keyword in feedback.include_keywords
        ]

        prompt = INCLUSION_PROMPT.format(
            keywords=", ".join(feedback.include_keywords) or "None",
            **self._prompt_fields(feedback),
        )
        suggestions = validate(self.analyzer.analyze(prompt, INCLUSION_SCHEMA), InclusionSuggestions)
        confidence = suggestions.confidence or DEFAULT_CONFIDENCE
        reason = f"AI learned from relevant article: {feedback.title[:50]}"
        rules += [self._rule("include_keyword", kw, feedback, confidence, reason) for kw in suggestions.include_keywords]
        rules += [self._rule("include_topic", t, feedback, confidence, reason) for t in suggestions.include_topics]

        result = self._save_rules(rules)
        result.kind = "include"
        result.confidence = confidence
        self.feedback_store.update(
            feedback.feedback_id,
            {"learned_patterns": result.patterns, "confidence_score": confidence},
        )
        return result

    def _learn_exclusions(self, feedback: Feedback) -> LearningResult:
        prompt = EXCLUSION_PROMPT.format(
            details=feedback.details or "Not provided",
            **self._prompt_fields(feedback),
        )
        suggestions = validate(self.analyzer.analyze(prompt, EXCLUSION_SCHEMA), ExclusionSuggestions)
        confidence = suggestions.confidence or DEFAULT_CONFIDENCE
        reason = f"Learned from feedback: {feedback.reason}"

        rules = [self._rule("exclude_topic", t, feedback, confidence, reason) for t in suggestions.topic_exclusions]
        for keyword in suggestions.keyword_patterns:
            rule = self._rule("exclude_keyword", keyword, feedback, confidence, reason)
            rule["source_name"] = feedback.source
            rules.append(rule)
        rules += [
            self._rule("exclude_title_pattern", p, feedback, confidence, reason)
            for p in suggestions.title_patterns
        ]

        result = self._save_rules(rules)
        result.confidence = confidence
        result.reasoning = suggestions.reasoning
        self.feedback_store.update(
            feedback.feedback_id,
            {
                "learned_patterns": result.patterns,
                "topic_exclusions": [t.lower() for t in suggestions.topic_exclusions],
                "confidence_score": confidence,
            },
        )
        if feedback.update_id is not None:
            self.update_store.update(feedback.update_id, {"status": "Resolved"})
        return result

    @staticmethod
    def _rule(rule_type: str, pattern: str, feedback: Feedback, accuracy: float, reason: str) -> Dict[str, Any]:
        return {
            "rule_type": rule_type,
            "pattern": pattern.strip().lower(),
            "domain": feedback.domain,
            "reason": reason,
            "accuracy_score": accuracy,
            "derived_from_feedback_count": 1,
            "times_applied": 0,
            "is_active": True,
        }

    def _save_rules(self, rules: List[Dict[str, Any]]) -> LearningResult:
        """Create new rules; reinforce any with the same type and pattern."""
        result = LearningResult()
        for rule in rules:
            if not rule["pattern"]:
                continue
            result.patterns.append(rule["pattern"])
            existing = self.rule_store.filter(
                {"rule_type": rule["rule_type"], "pattern": rule["pattern"]}, limit=1
            )
            if existing:
                current = existing[0]
                self.rule_store.update(
                    current["id"],
                    {
                        "derived_from_feedback_count": (current.get("derived_from_feedback_count") or 1) + 1,
                        "accuracy_score": min(
                            1.0, (current.get("accuracy_score") or DEFAULT_CONFIDENCE) + REINFORCE_STEP
                        ),
                    },
                )
                result.rules_updated += 1
            else:
                self.rule_store.create(rule)
                result.rules_created += 1

        logger.info(
            "Learned %d patterns (%d new rules, %d reinforced)",
            result.patterns_learned,
            result.rules_created,
            result.rules_updated,
        )
        return result
