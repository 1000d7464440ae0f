#!/usr/bin/env python3
"""
HTTP fetch wrapper with retry and exponential backoff

Retries on:
- Network errors (requests raises)
- Server errors (5xx)
- Rate limiting (429)

Does NOT retry on client errors (4xx except 429) or successful responses.
"""

import logging
import random
import time
from typing import Callable, Optional

import requests

from mediathek.constants import (
    DEFAULT_BASE_DELAY, DEFAULT_MAX_DELAY, DEFAULT_MAX_RETRIES,
    RATE_LIMIT_STATUS, REQUEST_TIMEOUT, RETRY_JITTER, RETRYABLE_STATUS_MIN,
)
from mediathek.errors import TransportError

logger = logging.getLogger(__name__)


def is_retryable(status: int) -> bool:
    return status >= RETRYABLE_STATUS_MIN or status == RATE_LIMIT_STATUS


def calculate_delay(attempt: int, base_delay: float, max_delay: float) -> float:
    """Exponential backoff with 0-30% jitter, capped at max_delay"""
    exponential = base_delay * (2 ** attempt)
    jitter = random.random() * RETRY_JITTER * exponential
    return min(exponential + jitter, max_delay)


def fetch_with_retry(method: str, url: str,
                     session: Optional[requests.Session] = None,
                     max_retries: int = DEFAULT_MAX_RETRIES,
                     base_delay: float = DEFAULT_BASE_DELAY,
                     max_delay: float = DEFAULT_MAX_DELAY,
                     sleep: Callable[[float], None] = time.sleep,
                     **request_kwargs) -> requests.Response:
    """
    Perform an HTTP request, retrying transient failures

    Returns the first non-retryable response. When retries run out, returns
    the last retryable response if one was received, otherwise raises
    TransportError chained from the last network error.
    """
    http = session or requests
    request_kwargs.setdefault('timeout', REQUEST_TIMEOUT)

    last_error: Optional[requests.RequestException] = None
    last_response: Optional[requests.Response] = None

    for attempt in range(max_retries + 1):
        try:
            response = http.request(method, url, **request_kwargs)

            if response.ok or not is_retryable(response.status_code):
                return response

            last_response = response
            if attempt < max_retries:
                delay = calculate_delay(attempt, base_delay, max_delay)
                logger.info(
                    f"Request to {url} failed with status {response.status_code}, "
                    f"retrying in {delay:.1f}s (attempt {attempt + 1}/{max_retries})"
                )
                sleep(delay)

        except requests.RequestException as e:
            last_error = e
            if attempt < max_retries:
                delay = calculate_delay(attempt, base_delay, max_delay)
                logger.info(
                    f"Network error for {url}, retrying in {delay:.1f}s "
                    f"(attempt {attempt + 1}/{max_retries}): {e}"
                )
                sleep(delay)

    if last_response is not None:
        return last_response

    raise TransportError(f"{method} {url} failed after {max_retries + 1} attempts") from last_error
