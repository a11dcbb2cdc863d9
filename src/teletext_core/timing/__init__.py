"""Clock, timers and timeouts."""

from teletext_core.timing.clock import (
    AsyncioClock,
    BaseClock,
    Clock,
    ManualClock,
    Ticker,
    TimerHandle,
)
from teletext_core.timing.timeout import (
    TimeoutHandler,
    cancellable_timeout,
    retry_with_timeout,
    with_timeout,
)

__all__ = [
    # clock
    "AsyncioClock",
    "BaseClock",
    "Clock",
    "ManualClock",
    "Ticker",
    "TimerHandle",
    # timeout
    "TimeoutHandler",
    "cancellable_timeout",
    "retry_with_timeout",
    "with_timeout",
]
