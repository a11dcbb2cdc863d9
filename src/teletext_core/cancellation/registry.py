"""Key-scoped cancellation registry.

At most one operation is in flight per key. Submitting under a key that is
already busy cancels and evicts the previous entry before the new one is
installed, all inside the same synchronous call, so two live tokens never
coexist for one key. Entries evict themselves when their operation
settles, whether it succeeded, failed or was cancelled.

Typical use is rapid navigation, where only the most recent page fetch
should win::

    registry = CancellationRegistry()
    first = registry.submit("page:500", fetch_a)
    second = registry.submit("page:500", fetch_b)  # first -> CancellationError
"""

from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, TypeVar

from teletext_core.cancellation.task import CancellableTask
from teletext_core.cancellation.token import CancellationToken
from teletext_core.errors import InvalidArgumentError

if TYPE_CHECKING:
    from teletext_core.timing.clock import Clock

logger = logging.getLogger(__name__)

T = TypeVar("T")

Operation = Callable[[CancellationToken], Awaitable[T]]


@dataclass(slots=True)
class RegistryEntry:
    """A live operation registered under a key."""

    key: str
    token: CancellationToken
    task: CancellableTask[Any]
    started_at: float


class CancellationRegistry:
    """Registry of in-flight operations, one per key.

    Construct one per composition root and pass it by reference; call
    :meth:`dispose` to tear it down between tests.

    Args:
        clock: Time source for ``started_at`` stamps. Defaults to
            ``time.monotonic``.
    """

    def __init__(self, *, clock: Clock | None = None) -> None:
        self._clock = clock
        self._entries: dict[str, RegistryEntry] = {}
        self._cancelled: set[str] = set()

    def _now(self) -> float:
        return self._clock.now() if self._clock is not None else time.monotonic()

    def submit(
        self,
        key: str,
        op: Operation[T],
        *,
        parent: CancellationToken | None = None,
    ) -> CancellableTask[T]:
        """Run ``op(token)`` as the only operation for ``key``.

        Args:
            key: Non-empty identifier of the logical operation.
            op: Async callable receiving the entry's cancellation token.
                It may watch the token to stop early; it is not required to.
            parent: Optional outer token. Cancelling it cancels this entry.

        Returns:
            A handle whose result is ``op``'s value, ``op``'s original
            exception, or CancellationError if superseded or cancelled.
        """
        if not isinstance(key, str) or not key:
            raise InvalidArgumentError("key must be a non-empty string", argument="key")
        if not callable(op):
            raise InvalidArgumentError("op must be callable", argument="op")

        previous = self._entries.pop(key, None)
        if previous is not None:
            logger.debug("Superseding in-flight operation for %s", key)
            previous.task.cancel("superseded")

        token = CancellationToken()
        task: CancellableTask[T] = CancellableTask(_invoke(op, token), token=token, name=key)
        entry = RegistryEntry(key=key, token=token, task=task, started_at=self._now())
        self._entries[key] = entry
        self._cancelled.discard(key)
        task.add_done_callback(lambda _task: self._evict(entry))

        if parent is not None:
            detach = parent.on_cancel(task.cancel)
            task.add_done_callback(lambda _task: detach())

        logger.debug("Submitted operation for %s (%d active)", key, len(self._entries))
        return task

    def cancel(self, key: str, reason: str = "cancelled") -> bool:
        """Cancel the entry for ``key``. Returns False if there was none."""
        entry = self._entries.get(key)
        if entry is None:
            return False
        entry.task.cancel(reason)
        return True

    def cancel_all(self, reason: str = "cancelled") -> int:
        """Cancel every entry. Returns how many were cancelled."""
        entries = list(self._entries.values())
        for entry in entries:
            entry.task.cancel(reason)
        if entries:
            logger.debug("Cancelled %d in-flight operations", len(entries))
        return len(entries)

    def is_active(self, key: str) -> bool:
        return key in self._entries

    @property
    def active_count(self) -> int:
        return len(self._entries)

    def keys(self) -> list[str]:
        return list(self._entries)

    def started_at(self, key: str) -> float | None:
        entry = self._entries.get(key)
        return entry.started_at if entry is not None else None

    def was_cancelled(self, key: str) -> bool:
        """Whether the last operation under ``key`` ended by cancellation."""
        return key in self._cancelled

    def clear_cancelled_tracking(self) -> None:
        self._cancelled.clear()

    def dispose(self) -> None:
        """Cancel everything and forget cancellation history."""
        self.cancel_all("disposed")
        self._cancelled.clear()

    def _evict(self, entry: RegistryEntry) -> None:
        if self._entries.get(entry.key) is entry:
            del self._entries[entry.key]
        if entry.task.is_cancelled:
            self._cancelled.add(entry.key)


async def _invoke(op: Operation[T], token: CancellationToken) -> T:
    return await op(token)
