"""
Classification of filtered candidates by the language model.

Builds the analysis prompt (company context, categorisation framework,
learned relevance rules and the candidate items), calls the analyzer with a
JSON schema, and validates the returned shape before anything downstream
uses it.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional, Type, TypeVar, get_args

from pydantic import BaseModel, ValidationError

from ..config import config
from .llm import Analyzer
from .models import Lookup, RawItem, RelevanceRule

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

Domain = Literal["AI Law", "Privacy", "Antitrust", "Consumer Protection", "Platform Liability", "IP"]
Jurisdiction = Literal[
    "United States",
    "European Union",
    "United Kingdom",
    "Israel",
    "Brazil",
    "China",
    "India",
    "Australia",
    "Canada",
    "Global",
    "Germany",
    "Netherlands",
]
RiskScore = Literal["High", "Medium", "Low"]
UpdateType = Literal["Regulatory", "Enforcement", "Ruling", "Court Filing", "Class Action"]

DOMAINS = get_args(Domain)
JURISDICTIONS = get_args(Jurisdiction)
RISK_SCORES = get_args(RiskScore)
UPDATE_TYPES = get_args(UpdateType)

# Update types that get the secondary enforcement analysis
ENFORCEMENT_TYPES = ("Ruling", "Enforcement")

DEFAULT_COMPANY_CONTEXT = (
    "a B2B SaaS technology company headquartered in Israel, publicly traded in the U.S., "
    "serving business users globally"
)

FULL_CONTENT_CHARS = 1500
DESCRIPTION_CHARS = 500


class ClassificationError(Exception):
    """The classification result did not match the declared schema."""


class ClassifiedUpdate(BaseModel):
    """One update returned by the classification call."""

    title: str
    source: str
    publish_date: str
    domain: Domain
    jurisdiction: Jurisdiction
    risk_score: RiskScore
    update_type: UpdateType
    summary: str
    source_url: Optional[str] = None
    compliance_actions: List[str] = []
    key_dates: List[str] = []
    affected_areas: List[str] = []


class ClassificationResponse(BaseModel):
    updates: List[ClassifiedUpdate]
    weekly_summary: Optional[str] = None


class EnforcementAnalysis(BaseModel):
    """Secondary analysis of a ruling or enforcement action."""

    is_court_decision_or_enforcement: bool
    involved_parties: List[str] = []
    enforcement_type: str = ""
    legal_field: str = ""
    possible_implications: str = ""
    trend_analysis: str = ""


def _string_array() -> Dict[str, Any]:
    return {"type": "array", "items": {"type": "string"}}


UPDATE_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "updates": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "title": {"type": "string"},
                    "source": {"type": "string"},
                    "source_url": {"type": "string"},
                    "publish_date": {
                        "type": "string",
                        "description": "Original publication date in YYYY-MM-DD format",
                    },
                    "domain": {"type": "string", "enum": list(DOMAINS)},
                    "jurisdiction": {"type": "string", "enum": list(JURISDICTIONS)},
                    "risk_score": {"type": "string", "enum": list(RISK_SCORES)},
                    "update_type": {"type": "string", "enum": list(UPDATE_TYPES)},
                    "summary": {"type": "string"},
                    "compliance_actions": _string_array(),
                    "key_dates": _string_array(),
                    "affected_areas": _string_array(),
                },
                "required": [
                    "title",
                    "source",
                    "domain",
                    "jurisdiction",
                    "risk_score",
                    "summary",
                    "update_type",
                    "publish_date",
                ],
            },
        },
        "weekly_summary": {"type": "string"},
    },
    "required": ["updates"],
}

ENFORCEMENT_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "is_court_decision_or_enforcement": {"type": "boolean"},
        "involved_parties": _string_array(),
        "enforcement_type": {"type": "string"},
        "legal_field": {"type": "string"},
        "possible_implications": {"type": "string"},
        "trend_analysis": {"type": "string"},
    },
    "required": ["is_court_decision_or_enforcement"],
}


@dataclass
class CompanyContext:
    """Who the analysis is written for."""

    description: str = DEFAULT_COMPANY_CONTEXT
    industry: str = "SaaS"
    frameworks: List[str] = field(default_factory=list)
    risk_areas: List[str] = field(default_factory=list)
    from_profile: bool = False

    @classmethod
    def from_record(cls, profile: Dict[str, Any]) -> "CompanyContext":
        industry = profile.get("industry") or "SaaS/Software"
        description = f"a {profile.get('business_model') or 'B2B'} {industry} company"
        if profile.get("company_size"):
            description += f" ({profile['company_size']})"
        if profile.get("operating_regions"):
            description += f" operating in {', '.join(profile['operating_regions'])}"
        if profile.get("uses_ai_ml"):
            description += ", using AI/ML in their products"
        return cls(
            description=description,
            industry=profile.get("industry") or "SaaS",
            frameworks=list(profile.get("regulatory_frameworks") or []),
            risk_areas=list(profile.get("key_risk_areas") or []),
            from_profile=True,
        )

    @property
    def audience(self) -> str:
        if self.from_profile:
            return f"a {self.industry} company's"
        return "a B2B SaaS company's"


def load_company_context(profile_store: Any) -> Lookup[CompanyContext]:
    """Load the first company profile; degrades to the generic context."""
    try:
        profiles = profile_store.filter({}, limit=1)
    except Exception as e:
        logger.info("No company profile found, using defaults: %s", e)
        return Lookup.degrade(CompanyContext(), e)
    if not profiles:
        return Lookup(CompanyContext())
    return Lookup(CompanyContext.from_record(profiles[0]))


PROMPT_TEMPLATE = """You are a senior legal compliance analyst for {company}.
{priorities}
Analyze the following feed items. Your goal is to filter out NOISE and only surface items that require attention.
ONLY include items that are DIRECTLY relevant to technology/software companies.

CATEGORIZATION FRAMEWORK:
- AI Law: AI regulation, algorithmic accountability, AI Act updates, automated decision-making rules
- Privacy: GDPR, CCPA, data protection laws, cross-border data transfer, privacy by design requirements
- Consumer Protection: ONLY tech-related enforcement (dark patterns, deceptive tech practices, online advertising, data security breaches, software/app violations)
- Antitrust: Platform/tech market dominance, Big Tech investigations, data-sharing obligations
- Platform Liability: Content moderation, DSA compliance, intermediary liability, Section 230
- IP: Intellectual property, patents, trademarks, copyrights affecting tech/software companies

UPDATE TYPES: {update_types}

STRICT EXCLUSION LIST - DO NOT INCLUDE:
- Healthcare, pregnancy, fertility, medical devices (unless health-tech data privacy)
- Pet products, food safety, dietary supplements
- Automobiles, car dealers, vehicle safety
- Real estate, mortgages, housing
- Physical retail, brick-and-mortar stores
- Telecommunications infrastructure (unless data privacy related)
- Traditional banking (unless fintech/digital payments)
- Employment/labor law (unless gig economy platforms)
- Environmental regulations
- Physical product safety recalls
- Immigration, education loans, student services
- Debt collection (unless software-based)
- ANY consumer issue not related to software, apps, websites, or digital services

INCLUDE ONLY IF THE UPDATE IS DIRECTLY OR INDIRECTLY RELEVANT TO A SAAS/TECH COMPANY:
- Directly affects software/SaaS companies or could set precedent for them
- Involves digital platforms, apps, websites, cloud services, or software products
- Relates to data privacy, cybersecurity, AI/ML systems used in software
- Concerns online advertising, digital marketing practices, or SaaS marketing
- Involves enforcement actions AGAINST tech companies
- Affects terms of service, user agreements, or contracts for digital products
- Could impact how SaaS companies collect, process, or store user data

CRITICAL FILTER: Ask yourself - "Would {audience} legal/compliance team need to know about this?" If no, EXCLUDE.

USER-TRAINED EXCLUSION PATTERNS (learned from user feedback - STRICTLY EXCLUDE articles matching these patterns):
{exclusions}

USER-TRAINED INCLUSION PATTERNS (PRIORITIZE articles matching these patterns - they are highly relevant):
{inclusions}

RISK SCORING GUIDANCE:
- HIGH: Critical update. Requires immediate attention. Directly affects the company's core business, involves priority regulatory frameworks (GDPR, CCPA, AI Act), or has imminent deadlines.
- MEDIUM: Important. Indirectly relevant, sets precedent, or affects related industries. Worth monitoring.
- LOW: FYI only. General regulatory news or minor updates. Use sparingly to avoid clutter.

FEED CONTENT:
{feed_content}

Be EXTREMELY selective. Only include items that are DIRECTLY or INDIRECTLY relevant to a B2B SaaS technology company.

IMPORTANT: For each item, extract and include the publish_date in YYYY-MM-DD format from the "Publish Date" field provided."""

ENFORCEMENT_PROMPT_TEMPLATE = """Analyze this regulatory update to determine if it describes a Ruling with a FINAL court decision or an Enforcement action with PENALTIES or SETTLEMENTS.

UPDATE DETAILS:
Title: {title}
Summary: {summary}
Type: {update_type}
Domain: {domain}

ANALYSIS REQUIREMENTS:
1. Is this a FINAL court decision (not preliminary, not appeal pending) OR an enforcement with actual penalties/settlements?
2. Does this have DIRECT or INDIRECT implications for SaaS companies' business and operations?

If YES to both:
- Identify all involved parties (tech companies, regulators, government agencies)
- Classify the enforcement type (fine, injunction, settlement, consent decree, etc.)
- Specify the legal field (antitrust, privacy, consumer protection, etc.)
- Analyze possible implications for a typical SaaS company
- Provide trend analysis: Is this part of a broader regulatory pattern?

If NO to either question, set is_court_decision_or_enforcement to false."""


def format_item(item: RawItem) -> str:
    """Render one candidate for the prompt."""
    if item.full_content:
        content = item.full_content[:FULL_CONTENT_CHARS]
    else:
        content = (item.description or "")[:DESCRIPTION_CHARS]
    return (
        f"Source: {item.source}\n"
        f"Title: {item.title}\n"
        f"Author: {item.author or 'N/A'}\n"
        f"Publish Date: {item.pub_date or 'N/A'}\n"
        f"Link: {item.link}\n"
        f"Content/Summary: {content or 'N/A'}"
    )


def _rule_lines(rules: List[RelevanceRule], default_reason: str, empty: str) -> str:
    if not rules:
        return empty
    return "\n".join(
        f'- {r.rule_type}: "{r.pattern}" (reason: {r.reason or default_reason})' for r in rules
    )


def build_prompt(items: List[RawItem], context: CompanyContext, rules: List[RelevanceRule]) -> str:
    """
    Build the classification prompt.

    Args:
        items: Candidates to classify.
        context: Company the analysis is written for.
        rules: Active relevance rules; exclusions and inclusions get their own sections.

    Returns:
        Prompt text.
    """
    priorities = ""
    if context.frameworks:
        priorities += f"PRIORITY REGULATORY FRAMEWORKS: {', '.join(context.frameworks)}\n"
    if context.risk_areas:
        priorities += f"PRIORITY RISK AREAS: {', '.join(context.risk_areas)}\n"

    active = [r for r in rules if r.is_active]
    return PROMPT_TEMPLATE.format(
        company=context.description,
        priorities=priorities,
        update_types=", ".join(UPDATE_TYPES),
        audience=context.audience,
        exclusions=_rule_lines(
            [r for r in active if r.is_exclusion], "user marked irrelevant", "No exclusion patterns yet."
        ),
        inclusions=_rule_lines(
            [r for r in active if r.is_inclusion], "user marked relevant", "No inclusion patterns yet."
        ),
        feed_content="\n\n---\n\n".join(format_item(item) for item in items),
    )


def validate(result: Any, model: Type[M]) -> M:
    """Check a structured result against its response model.

    Raises:
        ClassificationError: On missing required fields, enum violations or wrong types.
    """
    if not isinstance(result, dict):
        raise ClassificationError(f"Expected an object, got {type(result).__name__}")
    try:
        return model.model_validate(result)
    except ValidationError as e:
        raise ClassificationError(f"Invalid {model.__name__}: {e.error_count()} errors; {e}") from e


@dataclass
class ClassificationBatch:
    updates: List[ClassifiedUpdate] = field(default_factory=list)
    weekly_summary: Optional[str] = None
    unclassified: int = 0


async def classify_batch(
    analyzer: Analyzer,
    items: List[RawItem],
    context: CompanyContext,
    rules: List[RelevanceRule],
    limit: Optional[int] = None,
) -> ClassificationBatch:
    """
    Classify up to ``limit`` candidates in a single analyzer call.

    Items beyond the limit are not classified; their count is reported as
    ``unclassified``.

    Raises:
        ClassificationError: If the call fails or its result is malformed.
    """
    if limit is None:
        limit = config.get("scan.classify_batch_size", 50)
    batch = items[:limit]
    unclassified = len(items) - len(batch)
    if not batch:
        return ClassificationBatch(unclassified=unclassified)

    if unclassified:
        logger.warning("Classifying first %d of %d items; %d left unclassified", limit, len(items), unclassified)

    prompt = build_prompt(batch, context, rules)
    try:
        raw = await asyncio.to_thread(analyzer.analyze, prompt, UPDATE_SCHEMA)
    except Exception as e:
        raise ClassificationError(f"Classification call failed: {e}") from e

    response = validate(raw, ClassificationResponse)
    logger.info("Classifier returned %d relevant updates from %d items", len(response.updates), len(batch))
    return ClassificationBatch(
        updates=response.updates,
        weekly_summary=response.weekly_summary,
        unclassified=unclassified,
    )


def analyze_enforcement(analyzer: Analyzer, update: ClassifiedUpdate) -> Optional[EnforcementAnalysis]:
    """Run the secondary analysis for rulings and enforcement actions; None otherwise or on failure."""
    if update.update_type not in ENFORCEMENT_TYPES:
        return None

    prompt = ENFORCEMENT_PROMPT_TEMPLATE.format(
        title=update.title,
        summary=update.summary,
        update_type=update.update_type,
        domain=update.domain,
    )
    try:
        return validate(analyzer.analyze(prompt, ENFORCEMENT_SCHEMA), EnforcementAnalysis)
    except Exception as e:
        logger.warning("Enforcement analysis failed for %r: %s", update.title, e)
        return None


async def analyze_all(
    analyzer: Analyzer, updates: List[ClassifiedUpdate]
) -> List[Optional[EnforcementAnalysis]]:
    """Run the secondary analyses concurrently; results line up with ``updates``."""
    results = await asyncio.gather(
        *(asyncio.to_thread(analyze_enforcement, analyzer, update) for update in updates),
        return_exceptions=True,
    )
    return [None if isinstance(r, BaseException) else r for r in results]
