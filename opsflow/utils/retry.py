from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import TYPE_CHECKING, Awaitable, Callable, Iterator, Optional

from ..errors import (
    APIError,
    HTTPError,
    NetworkError,
    RequestCancelledError,
    RequestTimeoutError,
)

if TYPE_CHECKING:
    from ..config import ClientConfig

RETRYABLE_STATUSES = frozenset({408, 429, 500, 502, 503, 504})

Sleeper = Callable[[float], Awaitable[None]]


def is_retryable_status(status: int) -> bool:
    """Return ``True`` for HTTP statuses that are likely transient."""
    return status in RETRYABLE_STATUSES


def is_retryable(error: Optional[BaseException]) -> bool:
    """Classify a failed attempt.

    Transport failures and deadline expiry are always retryable; explicit
    cancellation never is. Responses are retryable only for transient
    statuses.
    """
    if isinstance(error, RequestCancelledError):
        return False
    if isinstance(error, (NetworkError, RequestTimeoutError)):
        return True
    if isinstance(error, HTTPError):
        return is_retryable_status(error.status)
    return False


def should_retry(
    attempt: int, max_attempts: int, error: Optional[BaseException]
) -> bool:
    """Decide whether attempt ``attempt`` (0-based) may be followed by another."""
    if attempt >= max_attempts:
        return False
    return is_retryable(error)


def next_delay(current_delay: float, multiplier: float, max_delay: float) -> float:
    """Compute the following backoff delay, capped at ``max_delay``."""
    return min(current_delay * multiplier, max_delay)


async def schedule_retry(delay_ms: float, sleep: Sleeper = asyncio.sleep) -> None:
    """Sleep for ``delay_ms`` milliseconds before retrying."""
    await sleep(delay_ms / 1000)


@dataclass(frozen=True)
class RetryPolicy:
    """Backoff parameters of a request client (milliseconds)."""

    max_retries: int = 3
    retry_delay: float = 1000
    multiplier: float = 2.0
    max_delay: float = 30000

    @classmethod
    def from_config(cls, config: "ClientConfig") -> "RetryPolicy":
        return cls(
            max_retries=config.max_retries,
            retry_delay=config.retry_delay,
            multiplier=config.retry_delay_multiplier,
            max_delay=config.max_retry_delay,
        )

    def should_retry(
        self, attempt: int, error: APIError, retries: Optional[int] = None
    ) -> bool:
        budget = self.max_retries if retries is None else retries
        return should_retry(attempt, budget, error)

    def next_delay(self, current_delay: float) -> float:
        return next_delay(current_delay, self.multiplier, self.max_delay)

    def delays(self, retries: Optional[int] = None) -> Iterator[float]:
        """Yield the wait applied before each retry, in order."""
        budget = self.max_retries if retries is None else retries
        delay = self.retry_delay
        for _ in range(budget):
            yield delay
            delay = self.next_delay(delay)
