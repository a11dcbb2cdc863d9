"""Global test fixtures for teletext core."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

import pytest

from teletext_core.timing.clock import ManualClock


@pytest.fixture
def clock() -> ManualClock:
    """Virtual clock starting at t=0."""
    return ManualClock()


@pytest.fixture
def drive(clock: ManualClock) -> Callable[..., Awaitable[Any]]:
    """Advance ``clock`` in small steps until ``awaitable`` settles."""

    async def _drive(awaitable: Awaitable[Any], *, step: float = 0.05, limit: int = 2000) -> Any:
        task = asyncio.ensure_future(awaitable)
        for _ in range(limit):
            if task.done():
                break
            await clock.advance_async(step)
        return await task

    return _drive
