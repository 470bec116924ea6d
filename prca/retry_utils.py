"""Backoff and retry for the GitHub REST calls made by the comment service.

A request is attempted up to ``max_retries`` times.  Connection errors,
timeouts and the gateway / throttling statuses in :data:`RETRY_STATUSES`
trigger another attempt; any other response goes straight back to the
caller, which decides whether it is an error.  A 429 carrying a numeric
``Retry-After`` header waits as long as GitHub asks, up to
:data:`MAX_RETRY_AFTER` seconds.
"""

from __future__ import annotations

import random
import time

import requests

from prca.logging_config import setup_logging

logger = setup_logging(__name__)

MAX_RETRIES = 3
BASE_DELAY = 2.0
MAX_JITTER = 1.0
MAX_RETRY_AFTER = 60.0
RETRY_STATUSES = (502, 503, 504, 429)


def exponential_backoff_delay(attempt: int, base: float = BASE_DELAY, max_jitter: float = MAX_JITTER) -> float:
    """Seconds to wait before retry *attempt*: ``base * 2^attempt`` plus jitter.

    With the defaults, attempts 1, 2 and 3 wait roughly 4, 8 and 16 seconds.
    """
    return base * (2 ** attempt) + random.uniform(0, max_jitter)


def _retry_after(resp: requests.Response) -> float | None:
    value = resp.headers.get("Retry-After")
    if not isinstance(value, str) or not value.strip().isdigit():
        return None
    return min(float(value), MAX_RETRY_AFTER)


def _pause(method: str, url: str, attempt: int, max_retries: int, reason: str, delay: float) -> None:
    logger.warning(
        "%s %s failed (%s), attempt %d of %d; retrying in %.1fs",
        method, url, reason, attempt, max_retries, delay,
    )
    time.sleep(delay)


def request_with_retry(
    method: str,
    url: str,
    *,
    max_retries: int = MAX_RETRIES,
    base_delay: float = BASE_DELAY,
    max_jitter: float = MAX_JITTER,
    retry_statuses: tuple[int, ...] = RETRY_STATUSES,
    **kwargs,
) -> requests.Response:
    """Send ``requests.request(method, url, **kwargs)``, retrying transient failures.

    Returns the first response whose status is not retryable, or the last
    response once the attempts run out.  A connection error or timeout on
    the final attempt is re-raised.

    Parameters
    ----------
    max_retries : int
        Total number of attempts; ``1`` disables retrying.
    base_delay, max_jitter : float
        Passed to :func:`exponential_backoff_delay`.
    retry_statuses : tuple[int, ...]
        Statuses that are worth another attempt.
    """
    attempt = 1
    while True:
        try:
            resp = requests.request(method, url, **kwargs)
        except (requests.exceptions.ConnectionError, requests.exceptions.Timeout) as e:
            if attempt >= max_retries:
                raise
            _pause(method, url, attempt, max_retries, f"error: {e}",
                   exponential_backoff_delay(attempt, base_delay, max_jitter))
        else:
            if resp.status_code not in retry_statuses or attempt >= max_retries:
                return resp
            delay = _retry_after(resp) if resp.status_code == 429 else None
            if delay is None:
                delay = exponential_backoff_delay(attempt, base_delay, max_jitter)
            _pause(method, url, attempt, max_retries, f"status {resp.status_code}", delay)
        attempt += 1
