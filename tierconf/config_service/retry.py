"""Retry with exponential backoff for idempotent reads.

Only reads go through here; writes are never retried automatically. When
attempts run out, the last error is re-raised as-is so callers can still
branch on its type.
"""

import logging
import random
import time
from dataclasses import dataclass
from typing import Callable, Tuple, Type, TypeVar

from tierconf.errors import StoreUnavailableError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded exponential backoff."""

    max_attempts: int = 3
    base_delay: float = 0.05
    max_delay: float = 1.0
    jitter_max: float = 0.0
    retryable: Tuple[Type[Exception], ...] = (StoreUnavailableError,)

    def delay_for(self, attempt: int) -> float:
        """Delay after the given zero-based failed attempt, capped at max_delay."""
        delay = self.base_delay * (2 ** attempt)
        if self.jitter_max:
            delay += random.uniform(0, self.jitter_max)
        return min(delay, self.max_delay)


def call_with_retry(
    operation: Callable[[], T],
    policy: RetryPolicy,
    describe: str = "operation",
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Run ``operation``, retrying retryable errors per ``policy``."""
    for attempt in range(policy.max_attempts):
        try:
            return operation()
        except policy.retryable as exc:
            if attempt + 1 >= policy.max_attempts:
                logger.error(
                    "All %d attempts exhausted for %s: %s",
                    policy.max_attempts, describe, exc,
                    extra={"attempt": attempt + 1},
                )
                raise
            delay = policy.delay_for(attempt)
            logger.warning(
                "Retry %d/%d for %s after %.2fs: %s",
                attempt + 1, policy.max_attempts - 1, describe, delay, exc,
                extra={"attempt": attempt + 1},
            )
            sleep(delay)
    raise AssertionError("unreachable: max_attempts must be at least 1")
