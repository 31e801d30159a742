"""Tests for the scan, feedback and source routes."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient
from regscan.scanner.learning import LearningResult
from regscan.scanner.orchestrator import ScanReport
from regscan.web.dependencies import get_db, get_learner, get_orchestrator
from regscan.web.main import app


@pytest.fixture
def orchestrator():
    mock = MagicMock()
    mock.run = AsyncMock(return_value=ScanReport(message="Scanned 2 sources in parallel", date_range_days=30))
    return mock


@pytest.fixture
def learner():
    mock = MagicMock()
    mock.learn.return_value = LearningResult(rules_created=2, patterns=["a", "b"])
    return mock


@pytest.fixture
def client(tmp_db, orchestrator, learner):
    app.dependency_overrides[get_db] = lambda: tmp_db
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    app.dependency_overrides[get_learner] = lambda: learner
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


class TestScanRoute:
    def test_runs_scan_with_body(self, client, orchestrator):
        response = client.post("/scan", json={"dateRangeDays": 30, "selectedSourceIds": ["ftc", "42"]})

        assert response.status_code == 200
        assert response.json()["success"] is True
        request = orchestrator.run.call_args.args[0]
        assert request.date_range_days == 30
        assert request.selected_source_ids == ["ftc", "42"]

    def test_out_of_range_falls_back_to_default(self, client, orchestrator):
        client.post("/scan", json={"dateRangeDays": 365})
        assert orchestrator.run.call_args.args[0].date_range_days == 14

    def test_empty_body(self, client, orchestrator):
        response = client.post("/scan")
        assert response.status_code == 200
        assert orchestrator.run.call_args.args[0].selected_source_ids is None

    def test_invalid_body_rejected(self, client):
        response = client.post("/scan", json={"dateRangeDays": "lots"})
        assert response.status_code == 422

    def test_failed_scan_returns_500(self, client, orchestrator):
        orchestrator.run.return_value = ScanReport(success=False, error="store down", execution_time_ms=12)

        response = client.post("/scan", json={})

        assert response.status_code == 500
        assert response.json() == {"success": False, "error": "store down", "execution_time_ms": 12}


class TestFeedbackRoute:
    def test_learns_from_feedback(self, client, learner):
        response = client.post(
            "/feedback",
            json={
                "title": "Grocery merger blocked",
                "isRelevant": False,
                "reason": "Not tech",
                "updateId": 5,
                "includeKeywords": [],
            },
        )

        assert response.status_code == 200
        assert response.json()["rules_created"] == 2
        feedback = learner.learn.call_args.args[0]
        assert feedback.update_id == 5
        assert feedback.is_relevant is False

    def test_learning_failure_returns_500(self, client, learner):
        learner.learn.side_effect = RuntimeError("model unavailable")
        response = client.post("/feedback", json={"title": "x", "isRelevant": True})
        assert response.status_code == 500
        assert response.json()["error"] == "model unavailable"

    def test_missing_fields_rejected(self, client):
        assert client.post("/feedback", json={"reason": "x"}).status_code == 422


class TestSourceRoutes:
    def test_lists_builtin_and_custom_sources(self, client, tmp_db):
        tmp_db.sources.create({"name": "Custom Feed", "url": "https://c.example/rss", "type": "rss", "is_active": True})

        data = client.get("/sources").json()

        ids = {s["id"] for s in data["sources"]}
        assert "ftc" in ids
        assert "scotusblog" in ids
        custom = [s for s in data["sources"] if not s["builtin"]]
        assert custom[0]["name"] == "Custom Feed"

    def test_health_failing_first(self, client, tmp_db):
        tmp_db.health.create({"source_name": "B", "status": "healthy"})
        tmp_db.health.create({"source_name": "A", "status": "failing", "consecutive_failures": 4})

        data = client.get("/sources/health").json()

        assert [r["source_name"] for r in data["sources"]] == ["A", "B"]
        assert data["sources"][0]["consecutive_failures"] == 4
