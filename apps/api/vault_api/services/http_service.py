"""HTTP helpers with retry/backoff for delivery gateways."""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass, field
from typing import Awaitable, Callable

import httpx

logger = logging.getLogger(__name__)

DEFAULT_RETRY_STATUSES = frozenset({429, 500, 502, 503, 504})


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    base_delay: float = 0.5
    max_delay: float = 4.0
    retry_statuses: frozenset[int] = field(default=DEFAULT_RETRY_STATUSES)

    def backoff(self, attempt: int) -> float:
        """Exponential delay with up to 50% jitter; 0 disables sleeping."""
        delay = min(self.max_delay, self.base_delay * (2**attempt))
        if delay:
            delay += random.uniform(0, delay / 2)
        return delay


async def request_with_retries(
    request_fn: Callable[[], Awaitable[httpx.Response]],
    *,
    policy: RetryPolicy | None = None,
    label: str = "http",
) -> httpx.Response:
    """
    Execute an HTTP request with exponential backoff retries.

    Transport errors are re-raised after the last attempt; a retryable status
    on the last attempt is returned to the caller as-is.
    """
    policy = policy or RetryPolicy()
    response: httpx.Response | None = None

    for attempt in range(policy.max_attempts):
        last_attempt = attempt >= policy.max_attempts - 1
        try:
            response = await request_fn()
        except httpx.RequestError as exc:
            if last_attempt:
                raise
            logger.warning("%s request failed, retrying", label, exc_info=exc)
            delay = policy.backoff(attempt)
            if delay:
                await asyncio.sleep(delay)
            continue

        if response.status_code in policy.retry_statuses and not last_attempt:
            logger.warning("%s request returned %s, retrying", label, response.status_code)
            delay = policy.backoff(attempt)
            if delay:
                await asyncio.sleep(delay)
            continue

        return response

    return response  # type: ignore[return-value]
