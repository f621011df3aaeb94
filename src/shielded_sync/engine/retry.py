"""Retry policy with optional attempt ceiling and exponential backoff.

The default policy retries forever with a fixed 3 second delay. Callers
that need the failure to surface pass a bounded policy instead.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, TypeVar

from shielded_sync.errors.sync_errors import RetryExhaustedError

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from shielded_sync.config.settings import RetryConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_DELAY = 3.0  # seconds
DEFAULT_MAX_DELAY = 60.0  # seconds


@dataclass(frozen=True)
class RetryPolicy:
    """How often and how patiently to retry a failing operation.

    Attributes:
        max_attempts: Total attempts including the first; ``None`` is unbounded.
        delay: Wait before the first retry, in seconds.
        backoff: Multiplier applied to the delay after each retry (1.0 = fixed).
        max_delay: Upper bound for the delay.
    """

    max_attempts: int | None = None
    delay: float = DEFAULT_DELAY
    backoff: float = 1.0
    max_delay: float = DEFAULT_MAX_DELAY

    @classmethod
    def from_config(cls, config: RetryConfig) -> RetryPolicy:
        return cls(
            max_attempts=config.max_attempts,
            delay=config.delay,
            backoff=config.backoff,
            max_delay=config.max_delay,
        )

    def next_delay(self, current: float) -> float:
        return min(current * self.backoff, self.max_delay)

    async def run(
        self,
        func: Callable[[], Awaitable[T]],
        *,
        operation: str,
        retryable: tuple[type[BaseException], ...] = (Exception,),
        on_retry: Callable[[int, BaseException], None] | None = None,
    ) -> T:
        """Await *func* until it succeeds or the policy gives up.

        Args:
            func: Zero-argument coroutine factory, called once per attempt.
            operation: Name used in log lines and in the exhaustion error.
            retryable: Exception types that trigger a retry; others propagate.
            on_retry: Called with ``(attempt, error)`` before each wait.

        Raises:
            RetryExhaustedError: If ``max_attempts`` attempts all failed.
        """
        delay = self.delay
        attempt = 0
        while True:
            attempt += 1
            try:
                return await func()
            except retryable as exc:
                if self.max_attempts is not None and attempt >= self.max_attempts:
                    logger.error("%s failed after %d attempts: %s", operation, attempt, exc)
                    raise RetryExhaustedError(operation, attempt) from exc
                logger.warning(
                    "%s attempt %d failed: %s. Retrying in %.1fs...",
                    operation,
                    attempt,
                    exc,
                    delay,
                )
                if on_retry is not None:
                    on_retry(attempt, exc)
                await asyncio.sleep(delay)
                delay = self.next_delay(delay)
