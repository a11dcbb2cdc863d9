"""Cancellation primitives: tokens, cancellable tasks, key-scoped registry."""

from teletext_core.cancellation.registry import (
    CancellationRegistry,
    RegistryEntry,
)
from teletext_core.cancellation.task import (
    CancellableTask,
    all_of,
    race,
    wrap,
)
from teletext_core.cancellation.token import CancellationToken

__all__ = [
    # registry
    "CancellationRegistry",
    "RegistryEntry",
    # task
    "CancellableTask",
    "all_of",
    "race",
    "wrap",
    # token
    "CancellationToken",
]
