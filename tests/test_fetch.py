#!/usr/bin/env python3
"""
Test suite for mediathek/fetch.py — retry and backoff
"""

import pytest
import sys
from pathlib import Path
from unittest.mock import MagicMock, patch

import requests

sys.path.insert(0, str(Path(__file__).parent.parent))

from mediathek.errors import TransportError
from mediathek.fetch import calculate_delay, fetch_with_retry, is_retryable


def response(status):
    return MagicMock(status_code=status, ok=200 <= status < 400)


@pytest.fixture
def sleep():
    return MagicMock()


class TestRetryPolicy:

    @pytest.mark.parametrize("status,expected", [
        (500, True), (502, True), (503, True), (429, True),
        (400, False), (404, False), (200, False), (301, False),
    ])
    def test_is_retryable(self, status, expected):
        assert is_retryable(status) is expected

    def test_delay_grows_exponentially(self):
        with patch("mediathek.fetch.random.random", return_value=0.0):
            assert calculate_delay(0, 1.0, 10.0) == 1.0
            assert calculate_delay(1, 1.0, 10.0) == 2.0
            assert calculate_delay(2, 1.0, 10.0) == 4.0

    def test_delay_jitter_bounded(self):
        with patch("mediathek.fetch.random.random", return_value=1.0):
            assert calculate_delay(1, 1.0, 10.0) == pytest.approx(2.6)

    def test_delay_capped(self):
        assert calculate_delay(10, 1.0, 10.0) == 10.0


class TestFetchWithRetry:

    def test_success_first_try(self, sleep):
        session = MagicMock()
        session.request.return_value = response(200)

        result = fetch_with_retry('GET', 'https://example.org', session=session, sleep=sleep)
        assert result.status_code == 200
        session.request.assert_called_once_with('GET', 'https://example.org', timeout=10)
        sleep.assert_not_called()

    def test_client_error_not_retried(self, sleep):
        session = MagicMock()
        session.request.return_value = response(404)

        assert fetch_with_retry('GET', 'https://example.org', session=session, sleep=sleep).status_code == 404
        assert session.request.call_count == 1

    def test_server_error_then_success(self, sleep):
        session = MagicMock()
        session.request.side_effect = [response(503), response(429), response(200)]

        result = fetch_with_retry('GET', 'https://example.org', session=session, sleep=sleep)
        assert result.status_code == 200
        assert sleep.call_count == 2

    def test_exhausted_retries_return_last_response(self, sleep):
        session = MagicMock()
        session.request.return_value = response(500)

        result = fetch_with_retry('GET', 'https://example.org', session=session,
                                  max_retries=2, sleep=sleep)
        assert result.status_code == 500
        assert session.request.call_count == 3
        assert sleep.call_count == 2

    def test_network_errors_raise_transport_error(self, sleep):
        session = MagicMock()
        session.request.side_effect = requests.ConnectionError("refused")

        with pytest.raises(TransportError) as exc_info:
            fetch_with_retry('GET', 'https://example.org', session=session,
                             max_retries=3, sleep=sleep)
        assert isinstance(exc_info.value.__cause__, requests.ConnectionError)
        assert session.request.call_count == 4

    def test_network_error_then_success(self, sleep):
        session = MagicMock()
        session.request.side_effect = [requests.Timeout("slow"), response(200)]

        assert fetch_with_retry('GET', 'https://example.org', session=session, sleep=sleep).status_code == 200

    def test_request_kwargs_passed_through(self, sleep):
        session = MagicMock()
        session.request.return_value = response(200)

        fetch_with_retry('POST', 'https://example.org', session=session, sleep=sleep,
                         data='{}', timeout=3)
        session.request.assert_called_once_with('POST', 'https://example.org', data='{}', timeout=3)
