"""
Scan orchestration.

Runs one scan end to end:

    CollectSources -> FetchAll -> Dedupe -> Enrich -> PersistHealth ->
    FilterByRules -> Classify -> FinalDedupe -> Persist -> Report

Per-source failures never abort a scan; they end up in the report's error
list. Anything unexpected is caught at this boundary and reported as a
failed scan.
"""

import asyncio
import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, Iterator, List, Optional

from ..config import config
from ..database import Database
from . import classifier, dedup, enricher, health
from .classifier import ClassificationBatch, ClassificationError, ClassifiedUpdate, EnforcementAnalysis
from .filter import RelevanceFilter, load_rules
from .llm import Analyzer
from .models import RawItem, RelevanceRule, SourceFetch, SourceHealth
from .outbox import Outbox
from .sources.registry import get_adapters, load_dynamic_sources, select_sources, static_sources

logger = logging.getLogger(__name__)


@dataclass
class ScanRequest:
    """Parameters of one scan. Out-of-range date ranges fall back to the default."""

    date_range_days: Optional[int] = None
    selected_source_ids: Optional[List[str]] = None

    def __post_init__(self):
        self.date_range_days = config.clamp_date_range(self.date_range_days)


@dataclass
class ScanStats:
    rss_items: int = 0
    scraped_items: int = 0
    duplicates_skipped: int = 0
    enriched: int = 0
    filtered_by_rules: int = 0
    unclassified: int = 0
    classified: int = 0
    persisted: int = 0

    @property
    def fetched(self) -> int:
        return self.rss_items + self.scraped_items

    def to_dict(self) -> Dict[str, int]:
        return {
            "rss_items": self.rss_items,
            "scraped_items": self.scraped_items,
            "fetched": self.fetched,
            "duplicates_skipped": self.duplicates_skipped,
            "enriched": self.enriched,
            "filtered_by_rules": self.filtered_by_rules,
            "unclassified": self.unclassified,
            "classified": self.classified,
            "persisted": self.persisted,
        }


@dataclass
class ScanReport:
    """Outcome of a scan, serialisable as the HTTP response body."""

    success: bool = True
    message: str = ""
    error: Optional[str] = None
    weekly_summary: Optional[str] = None
    saved_updates: List[Dict[str, Any]] = field(default_factory=list)
    date_range_days: int = 14
    stats: ScanStats = field(default_factory=ScanStats)
    source_health: List[SourceHealth] = field(default_factory=list)
    sources_scanned: int = 0
    phase_timings_ms: Dict[str, int] = field(default_factory=dict)
    execution_time_ms: int = 0
    errors: List[str] = field(default_factory=list)

    @property
    def updates_saved(self) -> int:
        return len(self.saved_updates)

    def to_dict(self) -> Dict[str, Any]:
        if not self.success:
            return {
                "success": False,
                "error": self.error,
                "execution_time_ms": self.execution_time_ms,
            }
        return {
            "success": True,
            "message": self.message,
            "weekly_summary": self.weekly_summary,
            "updates_saved": self.updates_saved,
            "saved_updates": [
                {k: u.get(k) for k in ("id", "title", "source", "source_url", "domain", "risk_score")}
                for u in self.saved_updates
            ],
            "date_range_days": self.date_range_days,
            "sources_scanned": self.sources_scanned,
            "stats": self.stats.to_dict(),
            "source_health": [
                {
                    "source_name": h.source_name,
                    "status": h.status,
                    "items_fetched": h.items_fetched or 0,
                    "error_message": h.error_message,
                }
                for h in self.source_health
            ],
            "phase_timings_ms": self.phase_timings_ms,
            "execution_time_ms": self.execution_time_ms,
            "errors": self.errors,
        }


def _find_original(update: ClassifiedUpdate, items: List[RawItem]) -> Optional[RawItem]:
    url_key = dedup.normalize_url(update.source_url)
    title_key = dedup.normalize_title(update.title)
    for item in items:
        if url_key and dedup.normalize_url(item.link) == url_key:
            return item
        if title_key and dedup.normalize_title(item.title) == title_key:
            return item
    return None


def build_record(
    update: ClassifiedUpdate,
    analysis: Optional[EnforcementAnalysis],
    source_name: str,
    today: str,
) -> Dict[str, Any]:
    """Build the persisted update record from a classified update."""
    extra = analysis or EnforcementAnalysis(is_court_decision_or_enforcement=False)
    update_type = update.update_type or "Regulatory"
    return {
        "title": update.title,
        "source": source_name,
        "source_url": update.source_url or "",
        "domain": update.domain,
        "jurisdiction": update.jurisdiction,
        "risk_score": update.risk_score,
        "update_type": update_type,
        "summary": update.summary,
        "compliance_actions": update.compliance_actions,
        "key_dates": update.key_dates,
        "affected_areas": update.affected_areas,
        "full_analysis": f"Update Type: {update_type}\n\n{update.summary}",
        "publish_date": update.publish_date or today,
        "scan_date": today,
        "status": "New",
        "is_court_decision_or_enforcement": extra.is_court_decision_or_enforcement,
        "involved_parties": extra.involved_parties,
        "enforcement_type": extra.enforcement_type,
        "legal_field": extra.legal_field,
        "possible_implications": extra.possible_implications,
        "trend_analysis": extra.trend_analysis,
    }


class ScanOrchestrator:
    """Runs scans against a database and an analyzer."""

    def __init__(self, db: Database, analyzer: Analyzer) -> None:
        """
        Initialize the orchestrator.

        Args:
            db: Database providing the entity stores.
            analyzer: Structured-output model collaborator.
        """
        self.db = db
        self.analyzer = analyzer

    @contextmanager
    def _phase(self, report: ScanReport, name: str) -> Iterator[None]:
        start = time.monotonic()
        logger.info("Scan phase: %s", name)
        try:
            yield
        finally:
            report.phase_timings_ms[name] = int((time.monotonic() - start) * 1000)

    async def run(self, request: Optional[ScanRequest] = None) -> ScanReport:
        """
        Run a full scan.

        Args:
            request: Scan parameters (defaults apply when omitted).

        Returns:
            ScanReport; ``success`` is False only for unexpected failures.
        """
        request = request or ScanRequest()
        report = ScanReport(date_range_days=request.date_range_days)
        start = time.monotonic()
        try:
            await self._run(request, report)
        except Exception as e:
            logger.exception("Scan failed")
            report.success = False
            report.error = str(e) or type(e).__name__
        report.execution_time_ms = int((time.monotonic() - start) * 1000)
        logger.info(
            "Scan finished in %d ms: %d saved, %d errors",
            report.execution_time_ms,
            report.updates_saved,
            len(report.errors),
        )
        return report

    async def _run(self, request: ScanRequest, report: ScanReport) -> None:
        outbox = Outbox()
        stats = report.stats

        with self._phase(report, "collect_sources"):
            dynamic = await asyncio.to_thread(load_dynamic_sources, self.db.sources)
            sources = select_sources(static_sources() + dynamic.value, request.selected_source_ids)
            adapters = get_adapters(sources)
            report.sources_scanned = len(adapters)
            rss_count = sum(1 for a in adapters if a.kind == "rss")
            logger.info("Scanning %d feeds and %d sites", rss_count, len(adapters) - rss_count)

        with self._phase(report, "fetch_all"):
            results = await asyncio.gather(
                *(asyncio.to_thread(a.fetch, request.date_range_days) for a in adapters),
                return_exceptions=True,
            )
            items: List[RawItem] = []
            for adapter, result in zip(adapters, results):
                if isinstance(result, BaseException):
                    label = "RSS fetch failed" if adapter.kind == "rss" else "Scrape failed"
                    report.errors.append(f"{label}: {result}")
                    continue
                self._collect(adapter.kind, result, items, report)

        with self._phase(report, "dedupe"):
            deduped = await asyncio.to_thread(dedup.dedupe, items, self.db.updates)
            if deduped.degraded:
                report.errors.append("Deduplication against stored updates unavailable")
            items = deduped.items
            stats.duplicates_skipped = deduped.removed

        with self._phase(report, "enrich"):
            stats.enriched = await enricher.enrich_all(items)

        with self._phase(report, "persist_health"):
            await health.record_all(self.db.health, report.source_health)

        if not items:
            if stats.duplicates_skipped:
                report.message = (
                    f"Found {stats.fetched} items but all were duplicates of existing updates"
                )
            else:
                report.message = "No recent items found in feeds"
            return

        with self._phase(report, "filter_by_rules"):
            rules = await asyncio.to_thread(load_rules, self.db.rules)
            outcome = RelevanceFilter(rules.value, self.db.rules, outbox).apply(items)
            stats.filtered_by_rules = outcome.total_excluded
            items = outcome.kept

        with self._phase(report, "classify"):
            batch = await self._classify(items, rules.value, report)
            analyses = await classifier.analyze_all(self.analyzer, batch.updates)
            report.weekly_summary = batch.weekly_summary
            stats.unclassified = batch.unclassified
            stats.classified = len(batch.updates)

        with self._phase(report, "final_dedupe"):
            known = await asyncio.to_thread(dedup.load_known_keys, self.db.updates)
            if known.degraded:
                logger.error("Failed to fetch existing updates for final dedup: %s", known.error)

        with self._phase(report, "persist"):
            await asyncio.to_thread(
                self._persist, batch.updates, analyses, items, known.value, report
            )
            stats.persisted = report.updates_saved

        drained = await outbox.drain()
        if drained.failed:
            report.errors.extend(f"Deferred write failed: {name}" for name in drained.failed)

        report.message = f"Scanned {report.sources_scanned} sources in parallel"

    def _collect(self, kind: str, fetched: SourceFetch, items: List[RawItem], report: ScanReport) -> None:
        items.extend(fetched.items)
        if fetched.health is not None:
            report.source_health.append(fetched.health)
        if fetched.error:
            report.errors.append(fetched.error)
        if kind == "rss":
            report.stats.rss_items += len(fetched.items)
        else:
            report.stats.scraped_items += len(fetched.items)

    async def _classify(
        self, items: List[RawItem], rules: List[RelevanceRule], report: ScanReport
    ) -> ClassificationBatch:
        context = await asyncio.to_thread(classifier.load_company_context, self.db.profiles)
        try:
            return await classifier.classify_batch(self.analyzer, items, context.value, rules)
        except ClassificationError as e:
            logger.error("Classification failed: %s", e)
            report.errors.append(f"Classification failed: {e}")
            return ClassificationBatch(unclassified=len(items))

    def _persist(
        self,
        updates: List[ClassifiedUpdate],
        analyses: List[Optional[EnforcementAnalysis]],
        items: List[RawItem],
        known: dedup.KnownKeys,
        report: ScanReport,
    ) -> None:
        """Write updates in input order, skipping any title or URL already known."""
        today = date.today().isoformat()
        store = self.db.updates

        for update, analysis in zip(updates, analyses):
            title_key = dedup.normalize_title(update.title)
            if title_key in known.titles:
                logger.info("Skipped duplicate: %s", update.title)
                report.errors.append(f"Skipped duplicate: {update.title}")
                continue
            url_key = dedup.normalize_url(update.source_url)
            if url_key and url_key in known.urls:
                logger.info("Skipped duplicate URL: %s", update.source_url)
                report.errors.append(f"Skipped duplicate URL: {update.source_url}")
                continue

            original = _find_original(update, items)
            source_name = original.source if original else update.source
            try:
                saved = store.create(build_record(update, analysis, source_name, today))
            except Exception as e:
                logger.warning("Failed to save %r: %s", update.title, e)
                report.errors.append(f"Failed to save: {update.title} - {e}")
                continue

            known.add(update.title, update.source_url)
            report.saved_updates.append(saved)
