"""Unit tests for retry_with_backoff."""

import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from dreamgate.core.exceptions import RetryExhaustedError, SessionExpiredError
from dreamgate.core.utils import retry_with_backoff


def flaky(failures: int, result="ok"):
    """Operation that raises on its first ``failures`` attempts."""
    calls = []

    async def operation(attempt):
        calls.append(attempt)
        if attempt <= failures:
            raise RuntimeError(f"boom {attempt}")
        return result

    return operation, calls


@pytest.fixture
def sleep():
    with patch("dreamgate.core.utils.asyncio.sleep", new_callable=AsyncMock) as m_sleep:
        yield m_sleep


class TestRetryWithBackoff:
    @pytest.mark.asyncio
    async def test_first_attempt_succeeds_without_sleeping(self, sleep):
        operation, calls = flaky(0)
        assert await retry_with_backoff(operation, attempts=3, delay=5) == "ok"
        assert calls == [1]
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_retries_then_succeeds(self, sleep):
        operation, calls = flaky(2)
        assert await retry_with_backoff(operation, attempts=3, delay=5) == "ok"
        assert calls == [1, 2, 3]
        assert sleep.await_count == 2
        sleep.assert_awaited_with(5)

    @pytest.mark.asyncio
    async def test_exhausted_carries_last_error(self, sleep):
        operation, calls = flaky(10)
        with pytest.raises(RetryExhaustedError) as exc_info:
            await retry_with_backoff(operation, attempts=3, delay=1, label="Thing")
        assert calls == [1, 2, 3]
        assert exc_info.value.attempts == 3
        assert exc_info.value.operation == "Thing"
        assert str(exc_info.value.last_error) == "boom 3"

    @pytest.mark.asyncio
    async def test_unsatisfied_result_counts_as_failure(self, sleep):
        results = iter([None, None, "found"])

        async def operation(_attempt):
            return next(results)

        result = await retry_with_backoff(operation, attempts=3, delay=0, succeeded=lambda r: r is not None)
        assert result == "found"

    @pytest.mark.asyncio
    async def test_never_satisfied_has_no_last_error(self, sleep):
        async def operation(_attempt):
            return None

        with pytest.raises(RetryExhaustedError) as exc_info:
            await retry_with_backoff(operation, attempts=2, delay=0, succeeded=lambda r: r is not None)
        assert exc_info.value.last_error is None
        assert "condition never met" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_give_up_on_propagates_immediately(self, sleep):
        calls = []

        async def operation(attempt):
            calls.append(attempt)
            raise SessionExpiredError(evidence="login button")

        with pytest.raises(SessionExpiredError):
            await retry_with_backoff(operation, attempts=5, delay=0, give_up_on=(SessionExpiredError,))
        assert calls == [1]

    @pytest.mark.asyncio
    async def test_cancellation_is_not_retried(self, sleep):
        calls = []

        async def operation(attempt):
            calls.append(attempt)
            raise asyncio.CancelledError()

        with pytest.raises(asyncio.CancelledError):
            await retry_with_backoff(operation, attempts=3, delay=0)
        assert calls == [1]

    @pytest.mark.asyncio
    async def test_delay_first_sleeps_before_every_attempt(self, sleep):
        operation, _ = flaky(1)
        await retry_with_backoff(operation, attempts=3, delay=2, delay_first=True)
        assert sleep.await_count == 2
