"""Teletext core - cancellable timing, reveal and transition state machines."""

__version__ = "0.1.0"

from teletext_core.cancellation import (
    CancellableTask,
    CancellationRegistry,
    CancellationToken,
    all_of,
    race,
    wrap,
)
from teletext_core.errors import (
    CancellationError,
    CoreError,
    InvalidArgumentError,
    OperationError,
    OperationTimeoutError,
)
from teletext_core.timing import AsyncioClock, Clock, ManualClock

__all__ = [
    "__version__",
    # cancellation
    "CancellableTask",
    "CancellationRegistry",
    "CancellationToken",
    "all_of",
    "race",
    "wrap",
    # errors
    "CancellationError",
    "CoreError",
    "InvalidArgumentError",
    "OperationError",
    "OperationTimeoutError",
    # timing
    "AsyncioClock",
    "Clock",
    "ManualClock",
]
