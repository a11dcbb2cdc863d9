"""Timeouts built on the clock's cancellable timers.

Provides:
- ``cancellable_timeout`` a handle that resolves after a delay
- ``with_timeout`` to bound any awaitable
- ``TimeoutHandler`` for named, replaceable timeouts
- ``retry_with_timeout`` retry with linear backoff (tenacity)
"""

from __future__ import annotations

import asyncio
import logging
import math
from collections.abc import Awaitable, Callable
from typing import TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_incrementing,
)

from teletext_core.cancellation.task import CancellableTask, wrap
from teletext_core.defaults import DEFAULT_TIMEOUT
from teletext_core.errors import (
    CancellationError,
    InvalidArgumentError,
    OperationTimeoutError,
)
from teletext_core.timing.clock import AsyncioClock, Clock, TimerHandle

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _validate_timeout(timeout: float) -> None:
    if not isinstance(timeout, (int, float)) or math.isnan(timeout) or timeout <= 0:
        raise InvalidArgumentError(f"timeout must be > 0, got {timeout!r}", argument="timeout")


def cancellable_timeout(delay: float, *, clock: Clock | None = None) -> CancellableTask[None]:
    """A handle that resolves after ``delay`` seconds unless cancelled."""
    return (clock or AsyncioClock()).after(delay)


async def with_timeout(
    awaitable: Awaitable[T],
    timeout: float,
    *,
    operation: str = "operation",
    clock: Clock | None = None,
    on_timeout: Callable[[], None] | None = None,
) -> T:
    """Await ``awaitable`` for at most ``timeout`` seconds.

    Raises:
        OperationTimeoutError: If the timer fires first. A coroutine is
            cancelled; any other awaitable is only detached.
    """
    _validate_timeout(timeout)
    clock = clock or AsyncioClock()
    task = wrap(awaitable, name=operation)
    expired = False

    def expire() -> None:
        nonlocal expired
        if task.done():
            return
        expired = True
        if on_timeout is not None:
            try:
                on_timeout()
            except Exception:
                logger.exception("Timeout callback failed for %s", operation)
        task.cancel(f"{operation} timed out")

    timer = clock.call_later(timeout, expire)
    try:
        return await task
    except CancellationError:
        if expired:
            raise OperationTimeoutError(timeout, operation) from None
        raise
    except asyncio.CancelledError:
        task.cancel("caller cancelled")
        raise
    finally:
        timer.cancel()


class TimeoutHandler:
    """Named timeouts plus a default bound for async operations.

    Creating a named timeout replaces any pending one with the same name.

    Args:
        clock: Timer source. Defaults to the running event loop.
        default_timeout: Seconds used when ``with_timeout`` gets no timeout.
    """

    def __init__(
        self,
        *,
        clock: Clock | None = None,
        default_timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        _validate_timeout(default_timeout)
        self._clock = clock or AsyncioClock()
        self._default_timeout = default_timeout
        self._named: dict[str, TimerHandle] = {}

    @property
    def default_timeout(self) -> float:
        return self._default_timeout

    @default_timeout.setter
    def default_timeout(self, value: float) -> None:
        _validate_timeout(value)
        self._default_timeout = value

    async def with_timeout(
        self,
        awaitable: Awaitable[T],
        timeout: float | None = None,
        *,
        operation: str = "operation",
        on_timeout: Callable[[], None] | None = None,
    ) -> T:
        return await with_timeout(
            awaitable,
            timeout if timeout is not None else self._default_timeout,
            operation=operation,
            clock=self._clock,
            on_timeout=on_timeout,
        )

    def create_named_timeout(
        self,
        name: str,
        callback: Callable[[], None],
        timeout: float,
    ) -> TimerHandle:
        """Run ``callback`` after ``timeout`` seconds unless cleared first."""
        if not name:
            raise InvalidArgumentError("timeout name must not be empty", argument="name")
        self.clear_named_timeout(name)

        handle: TimerHandle

        def fire() -> None:
            if self._named.get(name) is handle:
                del self._named[name]
            try:
                callback()
            except Exception:
                logger.exception("Named timeout %s callback failed", name)

        handle = self._clock.call_later(timeout, fire)
        self._named[name] = handle
        return handle

    def clear_named_timeout(self, name: str) -> bool:
        handle = self._named.pop(name, None)
        if handle is None:
            return False
        handle.cancel()
        return True

    def has_active_timeout(self, name: str) -> bool:
        return name in self._named

    def clear_all_timeouts(self) -> int:
        handles = list(self._named.values())
        self._named.clear()
        for handle in handles:
            handle.cancel()
        return len(handles)

    @property
    def active_count(self) -> int:
        return len(self._named)

    def dispose(self) -> None:
        self.clear_all_timeouts()


def _log_retry(retry_state: RetryCallState) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        "Attempt %d failed (%s), retrying",
        retry_state.attempt_number,
        exc,
    )


async def retry_with_timeout(
    operation: Callable[[], Awaitable[T]],
    *,
    max_attempts: int = 3,
    timeout: float = DEFAULT_TIMEOUT,
    delay: float = 1.0,
    clock: Clock | None = None,
) -> T:
    """Retry ``operation`` with a per-attempt timeout.

    Waits ``delay * attempt`` seconds between attempts. Cancellation and
    invalid arguments are never retried. The last error is re-raised.

    Args:
        operation: Zero-argument async callable, called once per attempt.
        max_attempts: Total number of attempts.
        timeout: Seconds allowed per attempt.
        delay: Base backoff in seconds.
        clock: Timer source for timeouts and backoff.
    """
    if max_attempts < 1:
        raise InvalidArgumentError("max_attempts must be >= 1", argument="max_attempts")
    if delay < 0:
        raise InvalidArgumentError("delay must be >= 0", argument="delay")
    _validate_timeout(timeout)
    clock = clock or AsyncioClock()
    attempt = 0

    async def _attempt() -> T:
        nonlocal attempt
        attempt += 1
        return await with_timeout(
            operation(), timeout, operation=f"attempt {attempt}", clock=clock,
        )

    retrying = AsyncRetrying(
        stop=stop_after_attempt(max_attempts),
        wait=wait_incrementing(start=delay, increment=delay),
        retry=retry_if_not_exception_type((CancellationError, InvalidArgumentError)),
        sleep=clock.sleep,
        before_sleep=_log_retry,
        reraise=True,
    )
    return await retrying(_attempt)
