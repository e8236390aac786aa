"""Tests for async retry with exponential backoff."""

from __future__ import annotations

import pytest

from labledger.retry import RetryExhaustedError, async_with_retry, backoff_delay


class TestAsyncWithRetry:
    @pytest.mark.asyncio
    async def test_returns_first_success(self):
        calls = []

        async def fn():
            calls.append(1)
            return "ok"

        assert await async_with_retry(fn, max_retries=3, base_delay=0.0) == "ok"
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_retries_until_success(self):
        attempts = iter([ConnectionError("a"), ConnectionError("b"), None])

        async def fn():
            exc = next(attempts)
            if exc is not None:
                raise exc
            return 42

        assert await async_with_retry(fn, max_retries=2, base_delay=0.0, jitter=False) == 42

    @pytest.mark.asyncio
    async def test_exhaustion_chains_last_error(self):
        async def fn():
            raise ConnectionError("down")

        with pytest.raises(RetryExhaustedError, match="after 3 attempts") as excinfo:
            await async_with_retry(fn, max_retries=2, base_delay=0.0)
        assert isinstance(excinfo.value.__cause__, ConnectionError)

    @pytest.mark.asyncio
    async def test_non_retryable_propagates_immediately(self):
        calls = []

        async def fn():
            calls.append(1)
            raise KeyError("nope")

        with pytest.raises(KeyError):
            await async_with_retry(fn, max_retries=5, base_delay=0.0, retryable=(ConnectionError,))
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_zero_retries_calls_once(self):
        calls = []

        async def fn():
            calls.append(1)
            raise ConnectionError("down")

        with pytest.raises(RetryExhaustedError):
            await async_with_retry(fn, max_retries=0)
        assert len(calls) == 1


class TestBackoffDelay:
    def test_doubles_without_jitter(self):
        assert [backoff_delay(n, 0.5, 60.0, jitter=False) for n in range(4)] == [0.5, 1.0, 2.0, 4.0]

    def test_capped(self):
        assert backoff_delay(10, 1.0, 5.0, jitter=False) == 5.0

    def test_jitter_within_bounds(self):
        for _ in range(20):
            assert 0.5 <= backoff_delay(0, 1.0, 60.0, jitter=True) <= 1.5
