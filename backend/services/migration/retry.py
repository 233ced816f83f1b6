"""
Retry and pacing for platform calls.

RateLimiter spaces out requests from every worker of one account;
RetryPolicy wraps a single call with a hard timeout and exponential backoff.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

from core.config import settings

from .errors import PlatformUnreachableError, RetryExhaustedError, TransientPlatformError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RateLimiter:
    """Allow at most `rate` calls per second; callers queue for the next slot"""

    def __init__(self, rate: float):
        self._interval = 1.0 / rate if rate and rate > 0 else 0.0
        self._lock = asyncio.Lock()
        self._next_slot = 0.0

    async def acquire(self):
        if not self._interval:
            return
        async with self._lock:
            now = asyncio.get_running_loop().time()
            wait = self._next_slot - now
            self._next_slot = max(now, self._next_slot) + self._interval
        if wait > 0:
            await asyncio.sleep(wait)


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded exponential backoff for transient platform faults"""
    max_attempts: int = 4
    base_delay: float = 1.0
    max_delay: float = 30.0
    timeout: float = 30.0

    @classmethod
    def from_settings(cls) -> "RetryPolicy":
        return cls(
            max_attempts=settings.MIGRATION_MAX_ATTEMPTS,
            base_delay=settings.MIGRATION_BACKOFF_BASE,
            max_delay=settings.MIGRATION_BACKOFF_MAX,
            timeout=settings.PLATFORM_REQUEST_TIMEOUT,
        )

    def backoff(self, attempt: int, retry_after: Optional[float] = None) -> float:
        delay = self.base_delay * (2 ** attempt)
        if retry_after is not None:
            delay = max(delay, retry_after)
        return min(delay, self.max_delay)

    async def call(self, operation: Callable[[], Awaitable[T]], description: str = "platform call") -> T:
        """
        Run `operation` until it succeeds or the attempt ceiling is reached.

        Raises:
            PlatformUnreachableError: the connection kept failing on every attempt.
            RetryExhaustedError: any other transient fault outlived the retries.
            Non-transient errors propagate immediately.
        """
        last_error: Optional[TransientPlatformError] = None

        for attempt in range(self.max_attempts):
            try:
                return await asyncio.wait_for(operation(), timeout=self.timeout)
            except asyncio.TimeoutError:
                last_error = TransientPlatformError(f"{description} timed out after {self.timeout:g}s")
            except TransientPlatformError as e:
                last_error = e

            if attempt < self.max_attempts - 1:
                delay = self.backoff(attempt, last_error.retry_after)
                logger.warning(f"{description} failed (attempt {attempt + 1}): {last_error}, retrying in {delay:.1f}s")
                await asyncio.sleep(delay)

        if last_error is not None and last_error.unreachable:
            raise PlatformUnreachableError(
                f"Platform unreachable after {self.max_attempts} attempts: {last_error}"
            ) from last_error
        raise RetryExhaustedError(
            f"{description} failed after {self.max_attempts} attempts: {last_error}",
            attempts=self.max_attempts,
            last_error=last_error,
        ) from last_error
