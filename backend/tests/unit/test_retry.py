"""
Retry Policy Unit Tests
"""

import asyncio

import pytest

from services.migration.errors import (
    PlatformUnreachableError,
    RecordRejectedError,
    RetryExhaustedError,
    TransientPlatformError,
)
from services.migration.retry import RateLimiter, RetryPolicy

pytestmark = pytest.mark.unit


class Flaky:
    """Raise the queued errors, then return a value"""

    def __init__(self, *errors, result="ok"):
        self.errors = list(errors)
        self.result = result
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return self.result


class TestRetryPolicy:
    """Test bounded exponential backoff."""

    @pytest.fixture
    def policy(self):
        return RetryPolicy(max_attempts=3, base_delay=0, max_delay=0, timeout=1.0)

    @pytest.mark.asyncio
    async def test_recovers_from_transient_errors(self, policy):
        operation = Flaky(TransientPlatformError("503"), TransientPlatformError("429", retry_after=0))

        assert await policy.call(operation) == "ok"
        assert operation.calls == 3

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self, policy):
        operation = Flaky(*[TransientPlatformError("503")] * 5)

        with pytest.raises(RetryExhaustedError) as exc_info:
            await policy.call(operation)

        assert exc_info.value.attempts == 3
        assert operation.calls == 3

    @pytest.mark.asyncio
    async def test_connection_failures_become_unreachable(self, policy):
        operation = Flaky(*[TransientPlatformError("refused", unreachable=True)] * 3)

        with pytest.raises(PlatformUnreachableError):
            await policy.call(operation)

    @pytest.mark.asyncio
    async def test_permanent_errors_are_not_retried(self, policy):
        operation = Flaky(RecordRejectedError("invalid email", status_code=422))

        with pytest.raises(RecordRejectedError):
            await policy.call(operation)

        assert operation.calls == 1

    @pytest.mark.asyncio
    async def test_timeout_counts_as_transient(self):
        policy = RetryPolicy(max_attempts=2, base_delay=0, max_delay=0, timeout=0.01)

        async def slow():
            await asyncio.sleep(1)

        with pytest.raises(RetryExhaustedError, match="timed out"):
            await policy.call(slow, "Slow call")

    def test_backoff_is_exponential_and_capped(self):
        policy = RetryPolicy(base_delay=1.0, max_delay=5.0)

        assert [policy.backoff(a) for a in range(4)] == [1.0, 2.0, 4.0, 5.0]

    def test_backoff_honours_retry_after(self):
        policy = RetryPolicy(base_delay=1.0, max_delay=30.0)

        assert policy.backoff(0, retry_after=7) == 7


class TestRateLimiter:
    """Test request pacing."""

    @pytest.mark.asyncio
    async def test_zero_rate_disables_pacing(self):
        limiter = RateLimiter(0)
        loop = asyncio.get_running_loop()
        start = loop.time()

        for _ in range(50):
            await limiter.acquire()

        assert loop.time() - start < 0.5

    @pytest.mark.asyncio
    async def test_spaces_out_calls(self):
        limiter = RateLimiter(100)
        loop = asyncio.get_running_loop()
        start = loop.time()

        await asyncio.gather(*(limiter.acquire() for _ in range(5)))

        # Five slots at 10ms spacing; the first is immediate
        assert loop.time() - start >= 0.035
