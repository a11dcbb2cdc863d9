"""Cancellable task handles and combinators.

A :class:`CancellableTask` wraps an awaitable so that cancelling it settles
the handle immediately and for good: awaiting the result afterwards raises
:class:`CancellationError`, whatever the underlying work does later.

Combinators:

- :func:`wrap` turns any awaitable into a handle.
- :func:`race` settles with the first member to settle.
- :func:`all_of` collects every member's value, failing fast.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Generator, Iterable
from typing import Any, Generic, TypeVar

from teletext_core.cancellation.token import CancellationToken
from teletext_core.errors import CancellationError, InvalidArgumentError, is_cancellation

logger = logging.getLogger(__name__)

T = TypeVar("T")

DoneCallback = Callable[["CancellableTask[Any]"], None]


class CancellableTask(Generic[T]):
    """Handle over an awaitable with final, deterministic cancellation.

    Coroutines passed in are scheduled as tasks owned by the handle and are
    cancelled (not awaited) when the handle is cancelled. Futures created
    elsewhere are left running; only the handle's outcome is detached
    from them.

    Must be created while an event loop is running.
    """

    def __init__(
        self,
        awaitable: Awaitable[T],
        *,
        token: CancellationToken | None = None,
        name: str = "",
    ) -> None:
        loop = asyncio.get_running_loop()
        self._name = name
        self._token = token if token is not None else CancellationToken()
        self._outcome: asyncio.Future[T] = loop.create_future()
        self._cancelled = False
        self._callbacks: list[DoneCallback] = []
        self._owns_inner = asyncio.iscoroutine(awaitable)
        self._inner: asyncio.Future[T] = asyncio.ensure_future(awaitable)
        self._inner.add_done_callback(self._on_inner_done)

    def __repr__(self) -> str:
        if self._cancelled:
            status = "cancelled"
        elif self._outcome.done():
            status = "done"
        else:
            status = "pending"
        return f"CancellableTask({self._name!r}, {status})"

    def __await__(self) -> Generator[Any, None, T]:
        return self.result().__await__()

    @property
    def name(self) -> str:
        return self._name

    @property
    def token(self) -> CancellationToken:
        return self._token

    @property
    def is_cancelled(self) -> bool:
        """True once :meth:`cancel` won over settlement."""
        return self._cancelled

    @property
    def future(self) -> asyncio.Future[T]:
        """The settled-outcome future. Read it, never resolve it."""
        return self._outcome

    def done(self) -> bool:
        return self._outcome.done()

    async def result(self) -> T:
        """Wait for the outcome.

        Raises CancellationError if the handle was cancelled, or the
        original exception if the wrapped work failed.
        """
        return await asyncio.shield(self._outcome)

    def cancel(self, reason: str = "cancelled") -> None:
        """Cancel the handle. No-op once settled or already cancelled."""
        if self._outcome.done():
            return
        self._cancelled = True
        self._token.cancel(reason)
        self._outcome.set_exception(CancellationError(reason, key=self._name or None))
        # Cancellation is an expected outcome, not an unhandled error.
        self._outcome.exception()
        if self._owns_inner and not self._inner.done():
            self._inner.cancel()
        self._run_callbacks()

    def add_done_callback(self, callback: DoneCallback) -> None:
        """Call ``callback(self)`` synchronously once the handle settles."""
        if self._outcome.done():
            self._invoke(callback)
        else:
            self._callbacks.append(callback)

    # -- internals ----------------------------------------------------------

    def _on_inner_done(self, inner: asyncio.Future[T]) -> None:
        if inner.cancelled():
            if self._outcome.done():
                return
            self._cancelled = True
            self._token.cancel("cancelled")
            self._outcome.set_exception(CancellationError(key=self._name or None))
            self._outcome.exception()
            self._run_callbacks()
            return

        exc = inner.exception()
        if self._outcome.done():
            # Settled late, after cancellation: the earlier outcome stands.
            return
        if exc is None:
            self._outcome.set_result(inner.result())
        else:
            self._outcome.set_exception(exc)
            if is_cancellation(exc):
                self._outcome.exception()
        self._run_callbacks()

    def _run_callbacks(self) -> None:
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            self._invoke(callback)

    def _invoke(self, callback: DoneCallback) -> None:
        try:
            callback(self)
        except Exception:
            logger.exception("Done callback failed for %r", self)


def wrap(awaitable: Awaitable[T], *, name: str = "") -> CancellableTask[T]:
    """Wrap an awaitable in a cancellable handle."""
    return CancellableTask(awaitable, name=name)


def _copy_outcome(source: asyncio.Future[Any], target: asyncio.Future[Any]) -> None:
    exc = source.exception()
    if exc is None:
        target.set_result(source.result())
    else:
        target.set_exception(exc)


def race(handles: Iterable[CancellableTask[T]]) -> CancellableTask[T]:
    """Settle with the first member to settle, value or error.

    Cancelling the race cancels every member. A member that is cancelled on
    its own only drops out of contention; if all members drop out the race
    raises CancellationError.
    """
    members = list(handles)
    if not members:
        raise InvalidArgumentError("race() needs at least one handle", argument="handles")

    loop = asyncio.get_running_loop()
    winner: asyncio.Future[T] = loop.create_future()
    remaining = len(members)

    def on_member_done(member: CancellableTask[Any]) -> None:
        nonlocal remaining
        if winner.done():
            return
        exc = member.future.exception()
        if exc is not None and is_cancellation(exc):
            remaining -= 1
            if remaining == 0:
                winner.set_exception(CancellationError("all racers cancelled", key="race"))
                winner.exception()
            return
        _copy_outcome(member.future, winner)

    for member in members:
        member.add_done_callback(on_member_done)

    aggregate: CancellableTask[T] = CancellableTask(winner, name="race")

    def on_race_done(task: CancellableTask[Any]) -> None:
        if not task.is_cancelled:
            return
        if not winner.done():
            winner.cancel()
        for member in members:
            member.cancel(task.token.reason)

    aggregate.add_done_callback(on_race_done)
    return aggregate


def all_of(handles: Iterable[CancellableTask[Any]]) -> CancellableTask[list[Any]]:
    """Collect every member's value in input order.

    Raises the first member failure. Cancelling the aggregate cancels every
    member and the aggregate raises CancellationError.
    """
    members = list(handles)
    loop = asyncio.get_running_loop()
    gathered: asyncio.Future[list[Any]] = loop.create_future()
    remaining = len(members)
    if not members:
        gathered.set_result([])

    def on_member_done(member: CancellableTask[Any]) -> None:
        nonlocal remaining
        if gathered.done():
            return
        exc = member.future.exception()
        if exc is not None:
            gathered.set_exception(exc)
            if is_cancellation(exc):
                gathered.exception()
            return
        remaining -= 1
        if remaining == 0:
            gathered.set_result([m.future.result() for m in members])

    for member in members:
        member.add_done_callback(on_member_done)

    aggregate: CancellableTask[list[Any]] = CancellableTask(gathered, name="all")

    def on_all_done(task: CancellableTask[Any]) -> None:
        if not task.is_cancelled:
            return
        if not gathered.done():
            gathered.cancel()
        for member in members:
            member.cancel(task.token.reason)

    aggregate.add_done_callback(on_all_done)
    return aggregate
