"""HTTP retry utilities for outbound API calls.

Bounded exponential backoff for the notification channel; the caller decides
what to do once the attempts are exhausted.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

logger = logging.getLogger(__name__)

DEFAULT_RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})


def backoff_delay(
    attempt: int,
    *,
    initial_delay: float,
    max_delay: float,
    backoff_factor: float = 2.0,
) -> float:
    """Delay before retry number ``attempt`` (0-based), capped at ``max_delay``."""
    return min(initial_delay * (backoff_factor**attempt), max_delay)


async def http_request_with_retry(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    *,
    max_retries: int = 3,
    initial_delay: float = 1.0,
    max_delay: float = 30.0,
    backoff_factor: float = 2.0,
    retryable_status_codes: frozenset[int] | set[int] | None = None,
    **kwargs: Any,
) -> httpx.Response:
    """Make an HTTP request, retrying transient failures with backoff.

    Rate limits, 5xx responses and network errors are retried up to
    ``max_retries`` times. Other 4xx responses are raised immediately.

    Raises:
        httpx.HTTPStatusError: Non-retryable status, or retries exhausted
        httpx.RequestError: Network failure after all retries
    """
    retryable = retryable_status_codes or DEFAULT_RETRYABLE_STATUS_CODES
    attempts = max_retries + 1

    for attempt in range(attempts):
        is_last = attempt == attempts - 1
        try:
            response = await client.request(method, url, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            status_code = e.response.status_code
            if status_code not in retryable:
                logger.error("HTTP client error (non-retryable): %d %s %s", status_code, method, url)
                raise
            if is_last:
                logger.error(
                    "HTTP request failed after %d attempts: %d %s %s",
                    attempts,
                    status_code,
                    method,
                    url,
                )
                raise
            delay = _retry_after(e.response) or backoff_delay(
                attempt,
                initial_delay=initial_delay,
                max_delay=max_delay,
                backoff_factor=backoff_factor,
            )
            logger.warning(
                "HTTP %d, retrying (%d/%d) in %.2fs: %s %s",
                status_code,
                attempt + 1,
                attempts,
                delay,
                method,
                url,
            )
        except httpx.RequestError as e:
            if is_last:
                logger.error("Network error after %d attempts: %s %s - %s", attempts, method, url, e)
                raise
            delay = backoff_delay(
                attempt,
                initial_delay=initial_delay,
                max_delay=max_delay,
                backoff_factor=backoff_factor,
            )
            logger.warning(
                "Network error, retrying (%d/%d) in %.2fs: %s %s - %s",
                attempt + 1,
                attempts,
                delay,
                method,
                url,
                str(e)[:100],
            )
        else:
            if attempt > 0:
                logger.info("HTTP request succeeded on attempt %d/%d: %s %s", attempt + 1, attempts, method, url)
            return response

        await asyncio.sleep(delay)

    raise RuntimeError("HTTP request failed for unknown reason")


def _retry_after(response: httpx.Response) -> float | None:
    """Honour a numeric Retry-After header on 429 responses."""
    if response.status_code != 429:
        return None
    value = response.headers.get("Retry-After")
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        return None
