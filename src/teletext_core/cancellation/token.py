"""Asyncio-based cancellation token."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Callable

from teletext_core.errors import CancellationError

logger = logging.getLogger(__name__)

CancelCallback = Callable[[str], None]


@dataclass
class CancellationToken:
    """A token that can be checked for cancellation.

    Uses asyncio.Event internally. Cancellation is idempotent and
    irreversible: the first reason wins and the token never becomes
    active again.
    """

    _event: asyncio.Event = field(default_factory=asyncio.Event, repr=False)
    _reason: str = ""
    _callbacks: list[CancelCallback] = field(default_factory=list, repr=False)

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str:
        return self._reason

    def cancel(self, reason: str = "cancelled") -> bool:
        """Signal cancellation.

        Returns True if this call cancelled the token, False if it was
        already cancelled.
        """
        if self._event.is_set():
            return False
        self._reason = reason
        self._event.set()

        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            try:
                callback(reason)
            except Exception:
                logger.exception("Cancellation callback failed")
        return True

    def check(self) -> None:
        """Raise CancellationError if cancelled."""
        if self.is_cancelled:
            raise CancellationError(self._reason)

    async def wait(self) -> None:
        """Wait until cancellation is signalled."""
        await self._event.wait()

    def on_cancel(self, callback: CancelCallback) -> Callable[[], None]:
        """Run ``callback(reason)`` when the token is cancelled.

        Runs immediately if the token is already cancelled. Returns a
        function that removes the callback.
        """
        if self.is_cancelled:
            callback(self._reason)
            return lambda: None

        self._callbacks.append(callback)

        def remove() -> None:
            try:
                self._callbacks.remove(callback)
            except ValueError:
                pass

        return remove
