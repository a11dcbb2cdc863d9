"""Tests for clocks and timer handles."""

from __future__ import annotations

import asyncio

import pytest

from teletext_core.errors import CancellationError, InvalidArgumentError
from teletext_core.timing.clock import AsyncioClock, Clock, ManualClock, TimerHandle


# ============================================================
# TimerHandle
# ============================================================


class TestTimerHandle:
    def test_cancel_is_idempotent(self) -> None:
        calls: list[int] = []
        handle = TimerHandle(on_cancel=lambda: calls.append(1))
        handle.cancel()
        handle.cancel()
        assert handle.cancelled
        assert not handle.active
        assert calls == [1]

    def test_one_shot_inactive_after_fire(self) -> None:
        handle = TimerHandle()
        handle._mark_fired()
        assert not handle.active

    def test_periodic_stays_active(self) -> None:
        handle = TimerHandle(periodic=True)
        handle._mark_fired()
        assert handle.active


# ============================================================
# ManualClock
# ============================================================


class TestManualClockScheduling:
    def test_protocol(self, clock: ManualClock) -> None:
        assert isinstance(clock, Clock)

    def test_start_time(self) -> None:
        assert ManualClock(start=10.0).now() == 10.0

    def test_call_later_fires_at_deadline(self, clock: ManualClock) -> None:
        fired: list[float] = []
        clock.call_later(1.0, lambda: fired.append(clock.now()))
        clock.advance(0.99)
        assert fired == []
        clock.advance(0.01)
        assert fired == [pytest.approx(1.0)]
        assert clock.pending == 0

    def test_cancelled_timer_never_fires(self, clock: ManualClock) -> None:
        fired: list[int] = []
        handle = clock.call_later(1.0, lambda: fired.append(1))
        handle.cancel()
        assert clock.advance(5.0) == 0
        assert fired == []

    def test_call_every_counts(self, clock: ManualClock) -> None:
        fired: list[float] = []
        clock.call_every(0.5, lambda: fired.append(clock.now()))
        assert clock.advance(2.0) == 4
        assert fired == pytest.approx([0.5, 1.0, 1.5, 2.0])

    def test_call_every_is_drift_free(self, clock: ManualClock) -> None:
        ticks: list[int] = []
        clock.call_every(1 / 75, lambda: ticks.append(1))
        for _ in range(150):
            clock.advance(1 / 75)
        assert len(ticks) == 150

    def test_cancel_periodic_from_callback(self, clock: ManualClock) -> None:
        ticks: list[int] = []
        handle: TimerHandle

        def tick() -> None:
            ticks.append(1)
            if len(ticks) == 2:
                handle.cancel()

        handle = clock.call_every(0.1, tick)
        clock.advance(1.0)
        assert len(ticks) == 2
        assert clock.pending == 0

    def test_equal_deadlines_fire_in_order(self, clock: ManualClock) -> None:
        order: list[str] = []
        clock.call_later(1.0, lambda: order.append("a"))
        clock.call_later(1.0, lambda: order.append("b"))
        clock.call_later(0.5, lambda: order.append("first"))
        clock.advance(1.0)
        assert order == ["first", "a", "b"]

    def test_callback_error_does_not_stop_others(self, clock: ManualClock) -> None:
        fired: list[str] = []

        def broken() -> None:
            raise RuntimeError("boom")

        clock.call_later(0.1, broken)
        clock.call_later(0.2, lambda: fired.append("ok"))
        clock.advance(1.0)
        assert fired == ["ok"]

    def test_pending_and_next_deadline(self, clock: ManualClock) -> None:
        assert clock.next_deadline() is None
        clock.call_later(2.0, lambda: None)
        clock.call_every(0.5, lambda: None)
        assert clock.pending == 2
        assert clock.next_deadline() == pytest.approx(0.5)


class TestManualClockValidation:
    def test_negative_delay(self, clock: ManualClock) -> None:
        with pytest.raises(InvalidArgumentError):
            clock.call_later(-1, lambda: None)

    def test_zero_period(self, clock: ManualClock) -> None:
        with pytest.raises(InvalidArgumentError):
            clock.call_every(0, lambda: None)

    def test_negative_advance(self, clock: ManualClock) -> None:
        with pytest.raises(InvalidArgumentError):
            clock.advance(-0.1)


class TestManualClockAsync:
    @pytest.mark.asyncio
    async def test_sleep_wakes_on_advance(self, clock: ManualClock) -> None:
        task = asyncio.create_task(clock.sleep(1.0))
        await clock.advance_async(0.5)
        assert not task.done()
        await clock.advance_async(0.5)
        assert task.done()

    @pytest.mark.asyncio
    async def test_cancelled_sleep_cancels_timer(self, clock: ManualClock) -> None:
        task = asyncio.create_task(clock.sleep(1.0))
        await clock.settle()
        assert clock.pending == 1
        task.cancel()
        await clock.settle()
        assert clock.pending == 0

    @pytest.mark.asyncio
    async def test_after_resolves(self, clock: ManualClock) -> None:
        handle = clock.after(1.0)
        await clock.advance_async(1.0)
        assert handle.done()
        assert await handle is None

    @pytest.mark.asyncio
    async def test_after_cancel(self, clock: ManualClock) -> None:
        handle = clock.after(1.0)
        await clock.settle()
        handle.cancel()
        with pytest.raises(CancellationError):
            await handle
        await clock.settle()
        assert clock.pending == 0

    @pytest.mark.asyncio
    async def test_every_yields_tick_numbers(self, clock: ManualClock) -> None:
        ticker = clock.every(0.5)
        clock.advance(1.5)
        ticks = [await anext(ticker) for _ in range(3)]
        assert ticks == [1, 2, 3]
        ticker.cancel()
        assert ticker.cancelled
        assert [tick async for tick in ticker] == []

    @pytest.mark.asyncio
    async def test_every_waits_for_next_tick(self, clock: ManualClock) -> None:
        ticker = clock.every(1.0)
        task = asyncio.ensure_future(anext(ticker))
        await clock.settle()
        assert not task.done()
        await clock.advance_async(1.0)
        assert task.result() == 1
        ticker.cancel()

    def test_every_rejects_bad_period(self, clock: ManualClock) -> None:
        with pytest.raises(InvalidArgumentError):
            clock.every(-1)


# ============================================================
# AsyncioClock
# ============================================================


class TestAsyncioClock:
    @pytest.mark.asyncio
    async def test_sleep(self) -> None:
        clock = AsyncioClock()
        start = clock.now()
        await clock.sleep(0.02)
        assert clock.now() - start >= 0.015

    @pytest.mark.asyncio
    async def test_call_later_and_cancel(self) -> None:
        clock = AsyncioClock()
        fired: list[str] = []
        clock.call_later(0.01, lambda: fired.append("a"))
        clock.call_later(0.01, lambda: fired.append("b")).cancel()
        await asyncio.sleep(0.05)
        assert fired == ["a"]

    @pytest.mark.asyncio
    async def test_call_every(self) -> None:
        clock = AsyncioClock()
        ticks: list[int] = []
        handle = clock.call_every(0.01, lambda: ticks.append(1))
        await asyncio.sleep(0.1)
        handle.cancel()
        count = len(ticks)
        assert count >= 3
        await asyncio.sleep(0.03)
        assert len(ticks) == count
