"""Tests for async retry with exponential backoff."""

from __future__ import annotations

import asyncio

import pytest

from vibecheck.retry import RetryExhaustedError, async_with_retry, backoff_delay


class TestAsyncWithRetry:
    def test_succeeds_first_try(self):
        async def ok():
            return 42

        assert asyncio.run(async_with_retry(ok, max_retries=3, base_delay=0.001)) == 42

    def test_succeeds_after_failures(self):
        attempts = {"count": 0}

        async def flaky():
            attempts["count"] += 1
            if attempts["count"] < 3:
                raise ValueError("not yet")
            return "ok"

        result = asyncio.run(async_with_retry(flaky, max_retries=3, base_delay=0.001))
        assert result == "ok"
        assert attempts["count"] == 3

    def test_exhausted_raises_with_cause(self):
        async def always_fail():
            raise ValueError("fail")

        with pytest.raises(RetryExhaustedError, match="Failed after 3 attempts") as info:
            asyncio.run(async_with_retry(always_fail, max_retries=2, base_delay=0.001))
        assert isinstance(info.value.__cause__, ValueError)

    def test_non_retryable_raises_immediately(self):
        attempts = {"count": 0}

        async def fail_type_error():
            attempts["count"] += 1
            raise TypeError("bad type")

        with pytest.raises(TypeError):
            asyncio.run(
                async_with_retry(
                    fail_type_error,
                    max_retries=3,
                    base_delay=0.001,
                    retryable=(ValueError,),
                )
            )
        assert attempts["count"] == 1  # No retries

    def test_zero_retries_means_one_attempt(self):
        attempts = {"count": 0}

        async def fail():
            attempts["count"] += 1
            raise ValueError("x")

        with pytest.raises(RetryExhaustedError):
            asyncio.run(async_with_retry(fail, max_retries=0, base_delay=0.001))
        assert attempts["count"] == 1


class TestBackoffDelay:
    def test_doubles_without_jitter(self):
        delays = [backoff_delay(i, base_delay=1.0, max_delay=60.0, jitter=False) for i in range(4)]
        assert delays == [1.0, 2.0, 4.0, 8.0]

    def test_capped(self):
        assert backoff_delay(10, base_delay=1.0, max_delay=5.0, jitter=False) == 5.0

    def test_jitter_stays_in_band(self):
        for _ in range(50):
            delay = backoff_delay(1, base_delay=1.0, max_delay=5.0)
            assert 1.0 <= delay <= 3.0
