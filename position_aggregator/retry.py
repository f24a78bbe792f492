"""Bounded retry with exponential backoff for async operations."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

from .errors import FetchCancelledError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    initial_delay: float = 1.0
    backoff_factor: float = 2.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.initial_delay < 0:
            raise ValueError("initial_delay must not be negative")
        if self.backoff_factor < 1:
            raise ValueError("backoff_factor must be at least 1")


@dataclass
class RetryState:
    attempt: int
    current_delay: float


def _always_retry(error: BaseException) -> bool:
    return True


class RetryExecutor:
    """Run an async operation until it succeeds or the policy gives up.

    Attempts are strictly sequential. The sleep between attempts is the only
    suspension point besides the operation itself and is cancellable.
    """

    def __init__(
        self,
        policy: RetryPolicy | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._policy = policy or RetryPolicy()
        self._sleep = sleep

    @property
    def policy(self) -> RetryPolicy:
        return self._policy

    async def execute(
        self,
        operation: Callable[[], Awaitable[T]],
        policy: RetryPolicy | None = None,
        should_retry: Callable[[BaseException], bool] | None = None,
        deadline: float | None = None,
    ) -> T:
        """Await ``operation`` with retries.

        Args:
            operation: Zero-argument coroutine factory, called once per attempt.
            policy: Overrides the executor's default policy for this call.
            should_retry: Predicate deciding whether an error is worth another
                attempt. Defaults to retrying everything.
            deadline: Event-loop time bounding the retries. A backoff sleep
                that would end after it is never started: the call gives up
                at once with :class:`FetchCancelledError`, even if some time
                before the deadline remains.

        Raises:
            The last error from ``operation`` once retries are exhausted or
            ``should_retry`` rejects it.
            FetchCancelledError: The next backoff would overrun ``deadline``.
        """
        policy = policy or self._policy
        should_retry = should_retry or _always_retry
        state = RetryState(attempt=1, current_delay=policy.initial_delay)

        while True:
            try:
                return await operation()
            except Exception as e:
                if state.attempt >= policy.max_attempts or not should_retry(e):
                    raise

                if deadline is not None:
                    loop = asyncio.get_running_loop()
                    if loop.time() + state.current_delay > deadline:
                        raise FetchCancelledError(
                            f"Deadline reached before retry attempt {state.attempt + 1}"
                        ) from e

                logger.warning(
                    "Attempt %d/%d failed: %s; retrying in %.2fs",
                    state.attempt,
                    policy.max_attempts,
                    e,
                    state.current_delay,
                )
                await self._sleep(state.current_delay)
                state.current_delay *= policy.backoff_factor
                state.attempt += 1
