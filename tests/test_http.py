"""Tests for the retrying fetcher."""

from datetime import datetime, timezone
from unittest.mock import patch

import requests
from conftest import make_response
from regscan.scanner.http import fetch_with_retry, parse_retry_after


class TestParseRetryAfter:
    def test_seconds(self):
        assert parse_retry_after("2") == 2.0

    def test_negative_seconds_clamped(self):
        assert parse_retry_after("-5") == 0.0

    def test_http_date(self):
        now = datetime(2026, 3, 2, 12, 0, 0, tzinfo=timezone.utc)
        assert parse_retry_after("Mon, 02 Mar 2026 12:00:30 GMT", now=now) == 30.0

    def test_http_date_in_past(self):
        now = datetime(2026, 3, 2, 12, 0, 0, tzinfo=timezone.utc)
        assert parse_retry_after("Mon, 02 Mar 2026 11:00:00 GMT", now=now) == 0.0

    def test_missing_or_garbage(self):
        assert parse_retry_after(None) is None
        assert parse_retry_after("soon") is None


@patch("regscan.scanner.http.time.sleep")
@patch("regscan.scanner.http.requests.get")
class TestFetchWithRetry:
    def test_success_first_attempt(self, mock_get, mock_sleep):
        mock_get.return_value = make_response(200, "<rss/>")

        outcome = fetch_with_retry("https://example.com/feed")

        assert outcome.success
        assert outcome.text == "<rss/>"
        assert outcome.attempts_used == 1
        mock_sleep.assert_not_called()

    def test_rate_limited_then_ok_honours_retry_after(self, mock_get, mock_sleep):
        mock_get.side_effect = [
            make_response(429, headers={"Retry-After": "2"}),
            make_response(200, "ok"),
        ]

        outcome = fetch_with_retry("https://example.com/feed")

        assert outcome.success
        assert outcome.attempts_used == 2
        mock_sleep.assert_called_once_with(2.0)

    def test_rate_limited_without_header_uses_backoff(self, mock_get, mock_sleep):
        mock_get.side_effect = [make_response(429), make_response(429), make_response(200)]

        outcome = fetch_with_retry("https://example.com/feed")

        assert outcome.success
        assert [c.args[0] for c in mock_sleep.call_args_list] == [1, 2]

    def test_rate_limited_on_last_attempt_fails(self, mock_get, mock_sleep):
        mock_get.return_value = make_response(429)

        outcome = fetch_with_retry("https://example.com/feed", max_retries=2)

        assert not outcome.success
        assert outcome.error == "HTTP 429"
        assert mock_get.call_count == 2

    def test_client_error_fails_immediately(self, mock_get, mock_sleep):
        mock_get.return_value = make_response(404)

        outcome = fetch_with_retry("https://example.com/missing")

        assert not outcome.success
        assert outcome.error == "HTTP 404"
        assert outcome.attempts_used == 1
        assert mock_get.call_count == 1
        mock_sleep.assert_not_called()

    def test_server_errors_retry_with_backoff(self, mock_get, mock_sleep):
        mock_get.return_value = make_response(503)

        outcome = fetch_with_retry("https://example.com/feed", max_retries=3)

        assert not outcome.success
        assert outcome.error == "HTTP 503"
        assert outcome.attempts_used == 3
        # No sleep after the final attempt
        assert [c.args[0] for c in mock_sleep.call_args_list] == [1, 2]

    def test_timeout_reports_error(self, mock_get, mock_sleep):
        mock_get.side_effect = requests.exceptions.Timeout()

        outcome = fetch_with_retry("https://example.com/slow", max_retries=2)

        assert not outcome.success
        assert outcome.error == "Timeout fetching https://example.com/slow"
        assert mock_get.call_count == 2

    def test_network_error_then_success(self, mock_get, mock_sleep):
        mock_get.side_effect = [
            requests.exceptions.ConnectionError("refused"),
            make_response(200, "body"),
        ]

        outcome = fetch_with_retry("https://example.com/feed")

        assert outcome.success
        assert outcome.attempts_used == 2

    def test_passes_timeout_and_headers(self, mock_get, mock_sleep):
        mock_get.return_value = make_response(200)

        fetch_with_retry("https://example.com", headers={"User-Agent": "x"}, timeout=5)

        mock_get.assert_called_once_with("https://example.com", headers={"User-Agent": "x"}, timeout=5)
