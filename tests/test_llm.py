"""Tests for the Claude structured-output analyzer."""

from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from regscan.scanner.llm import TOOL_NAME, AnalysisError, ClaudeAnalyzer

SCHEMA = {"type": "object", "properties": {"ok": {"type": "boolean"}}}


def _analyzer(response=None, error=None):
    analyzer = ClaudeAnalyzer(model="test-model", max_tokens=100)
    client = MagicMock()
    if error is not None:
        client.messages.create.side_effect = error
    else:
        client.messages.create.return_value = response
    analyzer._client = client
    return analyzer, client


class TestClaudeAnalyzer:
    def test_returns_tool_input(self):
        response = SimpleNamespace(
            content=[
                SimpleNamespace(type="text", text="thinking"),
                SimpleNamespace(type="tool_use", input={"ok": True}),
            ],
            stop_reason="tool_use",
        )
        analyzer, client = _analyzer(response)

        assert analyzer.analyze("prompt", SCHEMA) == {"ok": True}

        kwargs = client.messages.create.call_args.kwargs
        assert kwargs["model"] == "test-model"
        assert kwargs["tool_choice"] == {"type": "tool", "name": TOOL_NAME}
        assert kwargs["tools"][0]["input_schema"] is SCHEMA

    def test_no_tool_block_raises(self):
        response = SimpleNamespace(content=[SimpleNamespace(type="text", text="no")], stop_reason="max_tokens")
        analyzer, _ = _analyzer(response)

        with pytest.raises(AnalysisError, match="max_tokens"):
            analyzer.analyze("prompt", SCHEMA)

    def test_call_failure_wrapped(self):
        analyzer, _ = _analyzer(error=ConnectionError("reset"))

        with pytest.raises(AnalysisError, match="reset"):
            analyzer.analyze("prompt", SCHEMA)

    def test_missing_api_key(self, monkeypatch):
        monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)

        with pytest.raises(AnalysisError, match="ANTHROPIC_API_KEY"):
            ClaudeAnalyzer().analyze("prompt", SCHEMA)
