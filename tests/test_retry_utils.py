"""Tests for prca/retry_utils.py: backoff delays and request retries."""

import os
import sys
from unittest.mock import MagicMock, patch

import pytest
import requests

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from prca.retry_utils import exponential_backoff_delay, request_with_retry


class TestExponentialBackoffDelay:
    def test_delay_increases_with_attempt(self):
        assert exponential_backoff_delay(1, base=2.0, max_jitter=0.0) == 4.0
        assert exponential_backoff_delay(2, base=2.0, max_jitter=0.0) == 8.0
        assert exponential_backoff_delay(3, base=2.0, max_jitter=0.0) == 16.0

    def test_jitter_within_bounds(self):
        for _ in range(100):
            d = exponential_backoff_delay(1, base=2.0, max_jitter=1.0)
            assert 4.0 <= d <= 5.0


class TestRequestWithRetry:
    def test_success_on_first_try(self):
        mock_resp = MagicMock()
        mock_resp.status_code = 200
        with patch("prca.retry_utils.requests.request", return_value=mock_resp) as mock_req:
            resp = request_with_retry("GET", "https://example.com", timeout=5)
        assert resp.status_code == 200
        assert mock_req.call_count == 1

    def test_forwards_kwargs(self):
        mock_resp = MagicMock()
        mock_resp.status_code = 201
        with patch("prca.retry_utils.requests.request", return_value=mock_resp) as mock_req:
            request_with_retry("POST", "https://example.com", json={"a": 1}, timeout=5)
        mock_req.assert_called_once_with("POST", "https://example.com", json={"a": 1}, timeout=5)

    def test_retries_on_502(self):
        fail_resp = MagicMock()
        fail_resp.status_code = 502
        ok_resp = MagicMock()
        ok_resp.status_code = 200
        with patch("prca.retry_utils.requests.request", side_effect=[fail_resp, ok_resp]):
            with patch("prca.retry_utils.time.sleep") as mock_sleep:
                resp = request_with_retry(
                    "GET", "https://example.com", max_retries=2,
                    base_delay=0.01, max_jitter=0.0, timeout=5,
                )
        assert resp.status_code == 200
        assert mock_sleep.call_count == 1

    def test_returns_last_response_on_exhausted_retries(self):
        fail_resp = MagicMock()
        fail_resp.status_code = 429
        with patch("prca.retry_utils.requests.request", return_value=fail_resp) as mock_req:
            with patch("prca.retry_utils.time.sleep"):
                resp = request_with_retry(
                    "GET", "https://example.com", max_retries=3,
                    base_delay=0.01, max_jitter=0.0, timeout=5,
                )
        assert resp.status_code == 429
        assert mock_req.call_count == 3

    def test_retries_on_connection_error(self):
        ok_resp = MagicMock()
        ok_resp.status_code = 200
        with patch(
            "prca.retry_utils.requests.request",
            side_effect=[requests.exceptions.ConnectionError("fail"), ok_resp],
        ):
            with patch("prca.retry_utils.time.sleep"):
                resp = request_with_retry(
                    "GET", "https://example.com", max_retries=2,
                    base_delay=0.01, max_jitter=0.0, timeout=5,
                )
        assert resp.status_code == 200

    def test_raises_on_exhausted_timeouts(self):
        with patch(
            "prca.retry_utils.requests.request",
            side_effect=requests.exceptions.Timeout("slow"),
        ):
            with patch("prca.retry_utils.time.sleep"):
                with pytest.raises(requests.exceptions.Timeout):
                    request_with_retry(
                        "GET", "https://example.com", max_retries=2,
                        base_delay=0.01, max_jitter=0.0, timeout=5,
                    )

    def test_no_retry_on_non_retryable_status(self):
        resp_404 = MagicMock()
        resp_404.status_code = 404
        with patch("prca.retry_utils.requests.request", return_value=resp_404) as mock_req:
            resp = request_with_retry("GET", "https://example.com", timeout=5)
        assert resp.status_code == 404
        assert mock_req.call_count == 1

    def test_single_attempt_returns_retryable_status(self):
        resp_502 = MagicMock()
        resp_502.status_code = 502
        with patch("prca.retry_utils.requests.request", return_value=resp_502) as mock_req:
            with patch("prca.retry_utils.time.sleep") as mock_sleep:
                resp = request_with_retry("POST", "https://example.com", max_retries=1, timeout=5)
        assert resp.status_code == 502
        assert mock_req.call_count == 1
        mock_sleep.assert_not_called()

    def test_honours_retry_after_on_429(self):
        throttled = MagicMock()
        throttled.status_code = 429
        throttled.headers = {"Retry-After": "7"}
        ok_resp = MagicMock()
        ok_resp.status_code = 200
        with patch("prca.retry_utils.requests.request", side_effect=[throttled, ok_resp]):
            with patch("prca.retry_utils.time.sleep") as mock_sleep:
                request_with_retry("GET", "https://example.com", max_retries=2, timeout=5)
        mock_sleep.assert_called_once_with(7.0)

    def test_retry_after_is_capped(self):
        throttled = MagicMock()
        throttled.status_code = 429
        throttled.headers = {"Retry-After": "3600"}
        ok_resp = MagicMock()
        ok_resp.status_code = 200
        with patch("prca.retry_utils.requests.request", side_effect=[throttled, ok_resp]):
            with patch("prca.retry_utils.time.sleep") as mock_sleep:
                request_with_retry("GET", "https://example.com", max_retries=2, timeout=5)
        mock_sleep.assert_called_once_with(60.0)
