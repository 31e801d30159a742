"""Shared test fixtures for the regulatory news scanner test suite."""

from unittest.mock import MagicMock

import pytest
from regscan.config import Config
from regscan.database import Database
from regscan.scanner.models import RawItem


@pytest.fixture
def fresh_config(tmp_path, monkeypatch):
    """Create a Config instance with reset singleton state pointed at a temp directory."""
    Config._instance = None
    monkeypatch.setenv("REGSCAN_BASE_DIR", str(tmp_path))
    cfg = Config()
    yield cfg
    Config._instance = None


@pytest.fixture
def tmp_db(tmp_path):
    """Create a Database instance using a temp-dir SQLite file."""
    return Database(db_path=tmp_path / "test.db")


@pytest.fixture
def make_item():
    """Factory for RawItems with sensible defaults."""

    def _make(title="FTC Announces New Rule", link="https://ftc.gov/news/1", **kwargs):
        defaults = {"description": "", "pub_date": "", "source": "FTC Press Releases"}
        defaults.update(kwargs)
        return RawItem(title=title, link=link, **defaults)

    return _make


def make_response(status=200, text="", headers=None):
    """Build a stand-in for requests.Response."""
    response = MagicMock()
    response.status_code = status
    response.ok = 200 <= status < 400
    response.text = text
    response.headers = headers or {}
    return response
