"""End-to-end tests for the scan orchestrator with mocked network and model."""

from unittest.mock import MagicMock, patch

import pytest
from conftest import make_response
from regscan.scanner.classifier import UPDATE_SCHEMA
from regscan.scanner.http import FetchOutcome
from regscan.scanner.models import Source
from regscan.scanner.orchestrator import ScanOrchestrator, ScanRequest
from regscan.scanner.scraper import ScrapeResult

FEED_SOURCE = Source("FTC Press Releases", "https://ftc.example/feed")
SITE_SOURCE = Source("Agency Site", "https://agency.example/news", type="scrape")

FEED = """<?xml version="1.0"?>
<rss version="2.0"><channel><title>FTC</title>
  <item><title>FTC sues app maker over dark patterns</title><link>https://ftc.example/news/1</link>
    <description>Subscription cancellation flows.</description></item>
  <item><title>Grocery merger blocked</title><link>https://ftc.example/news/2</link>
    <description>Two supermarket chains.</description></item>
</channel></rss>"""

DARK_PATTERNS = {
    "title": "FTC sues app maker over dark patterns",
    "source": "FTC",
    "source_url": "https://ftc.example/news/1",
    "publish_date": "2026-03-02",
    "domain": "Consumer Protection",
    "jurisdiction": "United States",
    "risk_score": "High",
    "update_type": "Enforcement",
    "summary": "The FTC alleges deceptive subscription flows.",
    "compliance_actions": ["Review cancellation UX"],
}


def _analyzer(updates=None, enforcement=None):
    analyzer = MagicMock()

    def analyze(prompt, schema):
        if schema is UPDATE_SCHEMA:
            return {"updates": updates if updates is not None else [DARK_PATTERNS], "weekly_summary": "One action"}
        return enforcement or {
            "is_court_decision_or_enforcement": True,
            "involved_parties": ["FTC", "AppCo"],
            "enforcement_type": "complaint",
        }

    analyzer.analyze.side_effect = analyze
    return analyzer


@pytest.fixture
def network():
    """Patch every outbound request made during a scan."""
    feed = FetchOutcome(success=True, response=make_response(200, FEED), attempts_used=1)
    no_page = FetchOutcome(success=False, error="HTTP 404", attempts_used=1)
    with patch(
        "regscan.scanner.orchestrator.static_sources", return_value=[FEED_SOURCE, SITE_SOURCE]
    ), patch("regscan.scanner.sources.rss.fetch_with_retry", return_value=feed) as rss, patch(
        "regscan.scanner.sources.scrape.scrape", return_value=ScrapeResult(retries_used=1)
    ), patch("regscan.scanner.enricher.fetch_with_retry", return_value=no_page):
        yield rss


class TestScanRequest:
    def test_range_clamping(self):
        assert ScanRequest().date_range_days == 14
        assert ScanRequest(date_range_days=30).date_range_days == 30
        assert ScanRequest(date_range_days=0).date_range_days == 14
        assert ScanRequest(date_range_days=90).date_range_days == 14


class TestFullScan:
    @pytest.mark.asyncio
    async def test_scan_persists_filtered_classified_updates(self, tmp_db, network):
        tmp_db.rules.create({"rule_type": "exclude_keyword", "pattern": "grocery", "is_active": True})
        analyzer = _analyzer()

        report = await ScanOrchestrator(tmp_db, analyzer).run(ScanRequest())

        assert report.success
        assert report.updates_saved == 1
        assert report.stats.rss_items == 2
        assert report.stats.filtered_by_rules == 1
        assert report.weekly_summary == "One action"

        saved = tmp_db.updates.filter({})[0]
        assert saved["source"] == "FTC Press Releases"
        assert saved["status"] == "New"
        assert saved["full_analysis"] == (
            "Update Type: Enforcement\n\nThe FTC alleges deceptive subscription flows."
        )
        assert saved["is_court_decision_or_enforcement"] is True
        assert saved["involved_parties"] == ["FTC", "AppCo"]
        assert saved["key_dates"] == []

        # Grocery item never reached the model
        prompt = analyzer.analyze.call_args_list[0].args[0]
        assert "Grocery merger blocked" not in prompt

        rule = tmp_db.rules.filter({"pattern": "grocery"})[0]
        assert rule["times_applied"] == 1

        statuses = {r["source_name"]: r["status"] for r in tmp_db.health.filter({})}
        assert statuses == {"FTC Press Releases": "healthy", "Agency Site": "degraded"}

    @pytest.mark.asyncio
    async def test_second_scan_persists_nothing(self, tmp_db, network):
        orchestrator = ScanOrchestrator(tmp_db, _analyzer(updates=[DARK_PATTERNS]))
        await orchestrator.run()

        report = await orchestrator.run()

        assert report.success
        assert report.updates_saved == 0
        assert tmp_db.updates.count() == 1

    @pytest.mark.asyncio
    async def test_all_duplicates_returns_early(self, tmp_db, network):
        tmp_db.updates.create({"title": "FTC sues app maker over dark patterns", "source_url": ""})
        tmp_db.updates.create({"title": "Something else", "source_url": "https://ftc.example/news/2/"})
        analyzer = _analyzer()

        report = await ScanOrchestrator(tmp_db, analyzer).run()

        assert report.success
        assert report.message == "Found 2 items but all were duplicates of existing updates"
        assert report.stats.duplicates_skipped == 2
        analyzer.analyze.assert_not_called()
        # Health is still recorded on the early return
        assert tmp_db.health.count() == 2

    @pytest.mark.asyncio
    async def test_no_items_message(self, tmp_db):
        empty = FetchOutcome(
            success=True,
            response=make_response(200, '<rss version="2.0"><channel><title>x</title></channel></rss>'),
            attempts_used=1,
        )
        with patch("regscan.scanner.orchestrator.static_sources", return_value=[FEED_SOURCE]), patch(
            "regscan.scanner.sources.rss.fetch_with_retry", return_value=empty
        ):
            report = await ScanOrchestrator(tmp_db, _analyzer()).run()

        assert report.message == "No recent items found in feeds"
        assert report.updates_saved == 0


class TestDuplicateGuards:
    @pytest.mark.asyncio
    async def test_same_story_from_two_feeds_classified_once(self, tmp_db):
        second_source = Source("FTC Competition", "https://ftc.example/competition/feed")
        feeds = {
            FEED_SOURCE.url: "<rss version=\"2.0\"><channel><title>a</title><item><title>FTC Announces New Rule</title>"
            "<link>https://ftc.example/news/rule</link></item></channel></rss>",
            second_source.url: "<rss version=\"2.0\"><channel><title>b</title><item><title>FTC Announces New Rule</title>"
            "<link>https://ftc.example/competition/rule</link></item></channel></rss>",
        }

        def fetch(url, **kwargs):
            return FetchOutcome(success=True, response=make_response(200, feeds[url]), attempts_used=1)

        analyzer = _analyzer(updates=[])
        with patch(
            "regscan.scanner.orchestrator.static_sources", return_value=[FEED_SOURCE, second_source]
        ), patch("regscan.scanner.sources.rss.fetch_with_retry", side_effect=fetch), patch(
            "regscan.scanner.enricher.fetch_with_retry",
            return_value=FetchOutcome(success=False, error="HTTP 404", attempts_used=1),
        ):
            report = await ScanOrchestrator(tmp_db, analyzer).run()

        assert report.stats.rss_items == 2
        assert report.stats.duplicates_skipped == 1
        prompt = analyzer.analyze.call_args_list[0].args[0]
        assert prompt.count("FTC Announces New Rule") == 1
        assert "https://ftc.example/news/rule" in prompt
        assert "https://ftc.example/competition/rule" not in prompt

    @pytest.mark.asyncio
    async def test_duplicates_within_classified_batch(self, tmp_db, network):
        twin = dict(DARK_PATTERNS, source_url="https://elsewhere.example/x")
        report = await ScanOrchestrator(tmp_db, _analyzer(updates=[DARK_PATTERNS, twin])).run()

        assert report.updates_saved == 1
        assert "Skipped duplicate: FTC sues app maker over dark patterns" in report.errors

    @pytest.mark.asyncio
    async def test_record_written_during_classification_is_not_duplicated(self, tmp_db, network):
        analyzer = _analyzer()
        classify = analyzer.analyze.side_effect

        def racing_analyze(prompt, schema):
            if schema is UPDATE_SCHEMA:
                tmp_db.updates.create({"title": "Same story, other scan", "source_url": "https://ftc.example/news/1"})
            return classify(prompt, schema)

        analyzer.analyze.side_effect = racing_analyze

        report = await ScanOrchestrator(tmp_db, analyzer).run()

        assert report.updates_saved == 0
        assert "Skipped duplicate URL: https://ftc.example/news/1" in report.errors
        assert tmp_db.updates.count() == 1


class TestFailures:
    @pytest.mark.asyncio
    async def test_source_exception_does_not_abort(self, tmp_db, network):
        network.side_effect = RuntimeError("connection reset")

        report = await ScanOrchestrator(tmp_db, _analyzer()).run()

        assert report.success
        assert any(e.startswith("RSS fetch failed: connection reset") for e in report.errors)
        assert report.stats.rss_items == 0

    @pytest.mark.asyncio
    async def test_failing_source_reported(self, tmp_db):
        failed = FetchOutcome(success=False, error="HTTP 503", attempts_used=3)
        with patch("regscan.scanner.orchestrator.static_sources", return_value=[FEED_SOURCE]), patch(
            "regscan.scanner.sources.rss.fetch_with_retry", return_value=failed
        ):
            report = await ScanOrchestrator(tmp_db, _analyzer()).run()

        assert "RSS FTC Press Releases: HTTP 503" in report.errors
        health = tmp_db.health.filter({})[0]
        assert health["status"] == "failing"
        assert health["consecutive_failures"] == 1

    @pytest.mark.asyncio
    async def test_invalid_classification_persists_nothing(self, tmp_db, network):
        bad = dict(DARK_PATTERNS, domain="Taxes")
        report = await ScanOrchestrator(tmp_db, _analyzer(updates=[bad])).run()

        assert report.success
        assert report.updates_saved == 0
        assert any(e.startswith("Classification failed") for e in report.errors)
        assert report.stats.unclassified == 2

    @pytest.mark.asyncio
    async def test_unexpected_error_fails_scan(self, tmp_db, network):
        with patch("regscan.scanner.orchestrator.dedup.dedupe", side_effect=RuntimeError("kaboom")):
            report = await ScanOrchestrator(tmp_db, _analyzer()).run()

        assert not report.success
        body = report.to_dict()
        assert body == {"success": False, "error": "kaboom", "execution_time_ms": body["execution_time_ms"]}

    @pytest.mark.asyncio
    async def test_report_shape(self, tmp_db, network):
        report = await ScanOrchestrator(tmp_db, _analyzer()).run(ScanRequest(date_range_days=7))
        body = report.to_dict()

        assert body["date_range_days"] == 7
        assert body["updates_saved"] == 1
        assert body["saved_updates"][0]["source"] == "FTC Press Releases"
        assert set(body["stats"]) >= {"fetched", "duplicates_skipped", "filtered_by_rules", "persisted"}
        assert "fetch_all" in body["phase_timings_ms"]
