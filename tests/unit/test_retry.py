"""Unit tests for the retry executor."""
from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import pytest

from position_aggregator.errors import DataFormatError, FetchCancelledError, TransientSourceError
from position_aggregator.retry import RetryExecutor, RetryPolicy


class RecordingSleep:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture()
def sleep() -> RecordingSleep:
    return RecordingSleep()


class TestRetryPolicy:
    def test_defaults(self) -> None:
        p = RetryPolicy()
        assert (p.max_attempts, p.initial_delay, p.backoff_factor) == (3, 1.0, 2.0)

    def test_rejects_zero_attempts(self) -> None:
        with pytest.raises(ValueError):
            RetryPolicy(max_attempts=0)

    def test_rejects_shrinking_backoff(self) -> None:
        with pytest.raises(ValueError):
            RetryPolicy(backoff_factor=0.5)


class TestRetryExecutor:
    @pytest.mark.asyncio
    async def test_first_success_does_not_sleep(self, sleep: RecordingSleep) -> None:
        op = AsyncMock(return_value="ok")
        executor = RetryExecutor(RetryPolicy(), sleep=sleep)

        assert await executor.execute(op) == "ok"
        assert op.await_count == 1
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_backoff_delays_then_raises_last_error(self, sleep: RecordingSleep) -> None:
        errors = [TransientSourceError(f"fail {i}") for i in range(3)]
        op = AsyncMock(side_effect=errors)
        executor = RetryExecutor(
            RetryPolicy(max_attempts=3, initial_delay=0.1, backoff_factor=2.0), sleep=sleep
        )

        with pytest.raises(TransientSourceError) as exc_info:
            await executor.execute(op)

        assert exc_info.value is errors[-1]
        assert op.await_count == 3
        assert sleep.delays == pytest.approx([0.1, 0.2])

    @pytest.mark.asyncio
    async def test_succeeds_after_transient_failure(self, sleep: RecordingSleep) -> None:
        op = AsyncMock(side_effect=[TransientSourceError("blip"), ["position"]])
        executor = RetryExecutor(RetryPolicy(initial_delay=0.5), sleep=sleep)

        assert await executor.execute(op) == ["position"]
        assert sleep.delays == [0.5]

    @pytest.mark.asyncio
    async def test_should_retry_false_raises_immediately(self, sleep: RecordingSleep) -> None:
        op = AsyncMock(side_effect=DataFormatError("garbage"))
        executor = RetryExecutor(RetryPolicy(max_attempts=5), sleep=sleep)

        with pytest.raises(DataFormatError):
            await executor.execute(
                op, should_retry=lambda e: not isinstance(e, DataFormatError)
            )

        assert op.await_count == 1
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_per_call_policy_override(self, sleep: RecordingSleep) -> None:
        op = AsyncMock(side_effect=TransientSourceError("down"))
        executor = RetryExecutor(RetryPolicy(max_attempts=5), sleep=sleep)

        with pytest.raises(TransientSourceError):
            await executor.execute(op, policy=RetryPolicy(max_attempts=2, initial_delay=0))

        assert op.await_count == 2

    @pytest.mark.asyncio
    async def test_deadline_stops_before_sleeping(self, sleep: RecordingSleep) -> None:
        op = AsyncMock(side_effect=TransientSourceError("down"))
        executor = RetryExecutor(RetryPolicy(initial_delay=10.0), sleep=sleep)
        deadline = asyncio.get_running_loop().time() + 1.0

        with pytest.raises(FetchCancelledError):
            await executor.execute(op, deadline=deadline)

        assert op.await_count == 1
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_cancellation_propagates(self) -> None:
        started = asyncio.Event()

        async def hang() -> None:
            started.set()
            await asyncio.sleep(3600)

        executor = RetryExecutor(RetryPolicy(max_attempts=3, initial_delay=0))
        task = asyncio.create_task(executor.execute(hang))
        await started.wait()
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
