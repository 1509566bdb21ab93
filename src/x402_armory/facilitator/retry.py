"""
Retry policy for remote facilitator calls

Exponential backoff with full jitter. Only transient transport failures are
retried; every other error propagates on the first attempt.
"""

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

import httpx

from x402_armory.exceptions import FacilitatorUnavailableError

logger = logging.getLogger(__name__)

T = TypeVar("T")

TRANSIENT_STATUS_CODES = frozenset({429, 502, 503, 504})


@dataclass(frozen=True)
class RetryPolicy:
    """Backoff parameters for remote facilitator calls"""

    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 10.0
    jitter: bool = True

    def delay_for(self, attempt: int) -> float:
        """Delay before retry number *attempt* (1-based)"""
        delay = min(self.max_delay, self.base_delay * (2 ** (attempt - 1)))
        if self.jitter:
            delay = random.uniform(0, delay)
        return delay


NO_RETRY = RetryPolicy(max_attempts=1)


def is_transient_error(error: BaseException) -> bool:
    """Return True for failures worth retrying"""
    if isinstance(error, FacilitatorUnavailableError):
        return True
    if isinstance(error, httpx.HTTPStatusError):
        return error.response.status_code in TRANSIENT_STATUS_CODES
    return isinstance(error, httpx.TransportError)


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    description: str = "facilitator call",
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Run *operation* under *policy*.

    Raises:
        The last error once attempts are exhausted, or the first
        non-transient error immediately
    """
    attempt = 1
    while True:
        try:
            return await operation()
        except Exception as e:
            if not is_transient_error(e) or attempt >= policy.max_attempts:
                raise
            delay = policy.delay_for(attempt)
            logger.warning(
                "%s failed (%s), retrying in %.2fs (attempt %d/%d)",
                description,
                e,
                delay,
                attempt,
                policy.max_attempts,
            )
            await sleep(delay)
            attempt += 1
