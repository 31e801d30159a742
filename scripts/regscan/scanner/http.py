"""
HTTP fetching with bounded retries.

Every source and article request goes through ``fetch_with_retry`` so that
timeouts, rate limiting and transient server errors are handled in one place.
The function never raises; callers inspect ``FetchOutcome.success``.
"""

import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Dict, Optional

import requests

from ..config import config

logger = logging.getLogger(__name__)


@dataclass
class FetchOutcome:
    """Result of a fetch: the response on success, else the last error seen."""

    success: bool
    response: Optional[requests.Response] = None
    error: Optional[str] = None
    attempts_used: int = 0

    @property
    def text(self) -> str:
        return self.response.text if self.response is not None else ""


def parse_retry_after(value: Optional[str], now: Optional[datetime] = None) -> Optional[float]:
    """
    Parse a Retry-After header into seconds to wait.

    Args:
        value: Header value, either delay-seconds or an HTTP date.
        now: Reference time for HTTP dates (defaults to the current UTC time).

    Returns:
        Seconds to wait, or None if the header is missing or unparseable.
    """
    if not value:
        return None
    value = value.strip()

    try:
        return float(max(0, int(value)))
    except ValueError:
        pass

    try:
        retry_date = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        return None
    if retry_date is None:
        return None
    if retry_date.tzinfo is None:
        retry_date = retry_date.replace(tzinfo=timezone.utc)

    now = now or datetime.now(timezone.utc)
    return max(0.0, (retry_date - now).total_seconds())


def fetch_with_retry(
    url: str,
    headers: Optional[Dict[str, str]] = None,
    max_retries: Optional[int] = None,
    timeout: Optional[float] = None,
) -> FetchOutcome:
    """
    Perform a GET request with timeout, backoff and Retry-After handling.

    Client errors other than 429 fail immediately. Server errors and network
    failures are retried with exponential backoff (1s, 2s, 4s, ...).

    Args:
        url: URL to fetch.
        headers: Optional request headers.
        max_retries: Maximum number of attempts (default from config).
        timeout: Per-attempt timeout in seconds (default from config).

    Returns:
        FetchOutcome with the response or the last error and attempt count.
    """
    if max_retries is None:
        max_retries = config.get("http.max_retries", 3)
    if timeout is None:
        timeout = config.get("http.timeout", 15)

    last_error: Optional[str] = None

    for attempt in range(max_retries):
        try:
            response = requests.get(url, headers=headers, timeout=timeout)
        except requests.exceptions.Timeout:
            last_error = f"Timeout fetching {url}"
        except requests.exceptions.RequestException as e:
            last_error = f"Request failed for {url}: {e}"
        else:
            if response.ok:
                return FetchOutcome(success=True, response=response, attempts_used=attempt + 1)

            status = response.status_code
            if status == 429 and attempt < max_retries - 1:
                wait = parse_retry_after(response.headers.get("Retry-After"))
                if wait is None:
                    wait = 2**attempt
                logger.info("Rate limited by %s, waiting %.1fs", url, wait)
                time.sleep(wait)
                continue

            if 400 <= status < 500:
                return FetchOutcome(success=False, error=f"HTTP {status}", attempts_used=attempt + 1)

            last_error = f"HTTP {status}"

        logger.debug("Attempt %d/%d for %s failed: %s", attempt + 1, max_retries, url, last_error)
        if attempt < max_retries - 1:
            time.sleep(2**attempt)

    return FetchOutcome(success=False, error=last_error, attempts_used=max_retries)
