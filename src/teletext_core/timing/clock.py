"""Clock and timer primitives.

Everything time-based in the core goes through a :class:`Clock`:

- ``call_later`` / ``call_every`` schedule fire-and-forget callbacks and
  return a cancellable :class:`TimerHandle`.
- ``sleep`` suspends a coroutine; cancelling the coroutine cancels the
  timer behind it.
- ``after`` is a cancellable "resolves after duration" handle.
- ``every`` is a cancellable async stream of ticks.

:class:`AsyncioClock` runs on the event loop. :class:`ManualClock` keeps
virtual time that only moves when a test advances it.
"""

from __future__ import annotations

import asyncio
import heapq
import itertools
import logging
import math
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Callable, Protocol, runtime_checkable

from teletext_core.cancellation.task import CancellableTask
from teletext_core.errors import InvalidArgumentError

logger = logging.getLogger(__name__)

TimerCallback = Callable[[], None]

# Deadlines within this distance of the target time count as due.
_DEADLINE_EPSILON = 1e-9
# Event loop passes given to woken coroutines after each virtual timer.
_SETTLE_PASSES = 10


def _validate_delay(delay: float) -> None:
    if not isinstance(delay, (int, float)) or math.isnan(delay) or delay < 0:
        raise InvalidArgumentError(f"delay must be >= 0, got {delay!r}", argument="delay")


def _validate_period(period: float) -> None:
    if not isinstance(period, (int, float)) or not math.isfinite(period) or period <= 0:
        raise InvalidArgumentError(f"period must be > 0, got {period!r}", argument="period")


class TimerHandle:
    """Cancellable handle for a scheduled callback."""

    __slots__ = ("_cancelled", "_fired", "_periodic", "_on_cancel")

    def __init__(
        self,
        *,
        periodic: bool = False,
        on_cancel: Callable[[], None] | None = None,
    ) -> None:
        self._cancelled = False
        self._fired = False
        self._periodic = periodic
        self._on_cancel = on_cancel

    def __repr__(self) -> str:
        kind = "periodic" if self._periodic else "one-shot"
        return f"TimerHandle({kind}, active={self.active})"

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def periodic(self) -> bool:
        return self._periodic

    @property
    def active(self) -> bool:
        """Whether the callback may still run."""
        if self._cancelled:
            return False
        return self._periodic or not self._fired

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        on_cancel, self._on_cancel = self._on_cancel, None
        if on_cancel is not None:
            on_cancel()

    def _mark_fired(self) -> None:
        self._fired = True
        if not self._periodic:
            self._on_cancel = None


@runtime_checkable
class Clock(Protocol):
    """Time source and timer scheduler used by the state machines."""

    def now(self) -> float: ...

    def call_later(self, delay: float, callback: TimerCallback) -> TimerHandle: ...

    def call_every(self, period: float, callback: TimerCallback) -> TimerHandle: ...

    async def sleep(self, delay: float) -> None: ...

    def after(self, delay: float) -> CancellableTask[None]: ...

    def every(self, period: float) -> Ticker: ...


class BaseClock(ABC):
    """Derives ``sleep``, ``after`` and ``every`` from the two schedulers."""

    @abstractmethod
    def now(self) -> float: ...

    @abstractmethod
    def call_later(self, delay: float, callback: TimerCallback) -> TimerHandle: ...

    @abstractmethod
    def call_every(self, period: float, callback: TimerCallback) -> TimerHandle: ...

    async def sleep(self, delay: float) -> None:
        """Suspend for ``delay`` seconds of this clock's time."""
        loop = asyncio.get_running_loop()
        waiter: asyncio.Future[None] = loop.create_future()

        def wake() -> None:
            if not waiter.done():
                waiter.set_result(None)

        handle = self.call_later(delay, wake)
        try:
            await waiter
        finally:
            handle.cancel()

    def after(self, delay: float) -> CancellableTask[None]:
        """A handle that resolves after ``delay`` seconds unless cancelled."""
        _validate_delay(delay)
        return CancellableTask(self.sleep(delay), name=f"after:{delay:g}")

    def every(self, period: float) -> Ticker:
        """A cancellable async stream ticking every ``period`` seconds."""
        return Ticker(self, period)


class Ticker:
    """Async iterator over periodic ticks.

    Yields the tick number (1, 2, ...). Ticks that arrive while nobody is
    iterating are queued. Iteration ends once :meth:`cancel` is called.
    """

    def __init__(self, clock: Clock | BaseClock, period: float) -> None:
        _validate_period(period)
        self._pending = 0
        self._count = 0
        self._wakeup = asyncio.Event()
        self._handle = clock.call_every(period, self._on_tick)

    def _on_tick(self) -> None:
        self._pending += 1
        self._wakeup.set()

    @property
    def cancelled(self) -> bool:
        return self._handle.cancelled

    def cancel(self) -> None:
        self._handle.cancel()
        self._wakeup.set()

    def __aiter__(self) -> Ticker:
        return self

    async def __anext__(self) -> int:
        while True:
            if self._handle.cancelled:
                raise StopAsyncIteration
            if self._pending:
                self._pending -= 1
                self._count += 1
                return self._count
            self._wakeup.clear()
            await self._wakeup.wait()


# ============================================================
# Event loop clock
# ============================================================


class _LoopRepeater:
    """Drift-free periodic scheduling on an asyncio loop."""

    def __init__(
        self,
        loop: asyncio.AbstractEventLoop,
        period: float,
        callback: TimerCallback,
    ) -> None:
        self._loop = loop
        self._period = period
        self._callback = callback
        self._origin = loop.time()
        self._count = 0
        self._timer: asyncio.TimerHandle | None = None
        self._stopped = False
        self._schedule()

    def _schedule(self) -> None:
        self._count += 1
        deadline = self._origin + self._count * self._period
        self._timer = self._loop.call_at(deadline, self._fire)

    def _fire(self) -> None:
        if self._stopped:
            return
        # Reschedule first so a cancel from inside the callback sticks.
        self._schedule()
        self._callback()

    def stop(self) -> None:
        self._stopped = True
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None


class AsyncioClock(BaseClock):
    """Clock backed by the running asyncio event loop."""

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        return self._loop if self._loop is not None else asyncio.get_running_loop()

    def now(self) -> float:
        return self._get_loop().time()

    def call_later(self, delay: float, callback: TimerCallback) -> TimerHandle:
        _validate_delay(delay)
        loop = self._get_loop()
        handle = TimerHandle()

        def fire() -> None:
            handle._mark_fired()
            callback()

        timer = loop.call_later(delay, fire)
        handle._on_cancel = timer.cancel
        return handle

    def call_every(self, period: float, callback: TimerCallback) -> TimerHandle:
        _validate_period(period)
        repeater = _LoopRepeater(self._get_loop(), period, callback)
        return TimerHandle(periodic=True, on_cancel=repeater.stop)


# ============================================================
# Virtual clock
# ============================================================


@dataclass(order=True)
class _Scheduled:
    deadline: float
    seq: int
    callback: TimerCallback = field(compare=False)
    handle: TimerHandle = field(compare=False)
    period: float | None = field(default=None, compare=False)
    origin: float = field(default=0.0, compare=False)
    count: int = field(default=1, compare=False)


class ManualClock(BaseClock):
    """Virtual-time clock for deterministic tests.

    Time stands still until :meth:`advance` (synchronous callbacks only) or
    :meth:`advance_async` (also lets coroutines blocked in :meth:`sleep`
    run) moves it forward. Due timers fire in deadline order; timers with
    equal deadlines fire in scheduling order.
    """

    def __init__(self, start: float = 0.0) -> None:
        self._now = float(start)
        self._queue: list[_Scheduled] = []
        self._seq = itertools.count()

    def now(self) -> float:
        return self._now

    def call_later(self, delay: float, callback: TimerCallback) -> TimerHandle:
        _validate_delay(delay)
        handle = TimerHandle()
        self._push(_Scheduled(self._now + delay, next(self._seq), callback, handle))
        return handle

    def call_every(self, period: float, callback: TimerCallback) -> TimerHandle:
        _validate_period(period)
        handle = TimerHandle(periodic=True)
        self._push(_Scheduled(
            self._now + period,
            next(self._seq),
            callback,
            handle,
            period=period,
            origin=self._now,
        ))
        return handle

    @property
    def pending(self) -> int:
        """Number of scheduled timers that can still fire."""
        return sum(1 for entry in self._queue if entry.handle.active)

    def next_deadline(self) -> float | None:
        live = [entry.deadline for entry in self._queue if entry.handle.active]
        return min(live) if live else None

    def advance(self, seconds: float) -> int:
        """Move time forward, firing due callbacks. Returns how many fired."""
        target = self._target(seconds)
        fired = 0
        while self._fire_next(target):
            fired += 1
        self._now = max(self._now, target)
        return fired

    async def advance_async(self, seconds: float) -> int:
        """Like :meth:`advance`, yielding to the event loop after each timer."""
        target = self._target(seconds)
        await self.settle()
        fired = 0
        while self._fire_next(target):
            fired += 1
            await self.settle()
        self._now = max(self._now, target)
        await self.settle()
        return fired

    @staticmethod
    async def settle(passes: int = _SETTLE_PASSES) -> None:
        """Give ready tasks a few event loop iterations."""
        for _ in range(passes):
            await asyncio.sleep(0)

    def _target(self, seconds: float) -> float:
        if not isinstance(seconds, (int, float)) or math.isnan(seconds) or seconds < 0:
            raise InvalidArgumentError(f"cannot advance by {seconds!r}", argument="seconds")
        return self._now + seconds

    def _push(self, entry: _Scheduled) -> None:
        heapq.heappush(self._queue, entry)

    def _fire_next(self, target: float) -> bool:
        while self._queue and self._queue[0].deadline <= target + _DEADLINE_EPSILON:
            entry = heapq.heappop(self._queue)
            if entry.handle.cancelled:
                continue
            self._now = max(self._now, entry.deadline)
            if entry.period is not None:
                self._push(_Scheduled(
                    entry.origin + (entry.count + 1) * entry.period,
                    next(self._seq),
                    entry.callback,
                    entry.handle,
                    period=entry.period,
                    origin=entry.origin,
                    count=entry.count + 1,
                ))
            else:
                entry.handle._mark_fired()
            try:
                entry.callback()
            except Exception:
                logger.exception("Unhandled error in timer callback")
            return True
        return False
