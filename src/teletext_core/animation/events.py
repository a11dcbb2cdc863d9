"""State subscriptions and injected input signals."""

from __future__ import annotations

from typing import Callable, Generic, TypeVar

T = TypeVar("T")

Listener = Callable[[T], None]


class StateEmitter(Generic[T]):
    """Push-based fan-out of values to subscribers.

    Listener exceptions propagate to the caller of :meth:`emit`; the state
    machines catch them and stop their timers.
    """

    def __init__(self) -> None:
        self._listeners: list[Listener[T]] = []

    def __len__(self) -> int:
        return len(self._listeners)

    def subscribe(self, listener: Listener[T]) -> Callable[[], None]:
        """Register ``listener`` and return a function that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            try:
                self._listeners.remove(listener)
            except ValueError:
                pass

        return unsubscribe

    def emit(self, value: T) -> int:
        listeners = list(self._listeners)
        for listener in listeners:
            listener(value)
        return len(listeners)

    def clear(self) -> None:
        self._listeners.clear()


class InputSignal(StateEmitter[str]):
    """Source of user input events, e.g. key presses that skip a reveal.

    Hosts wire their own input (terminal keys, UI events) to :meth:`press`.
    """

    def press(self, key: str = "") -> int:
        """Deliver one input event. Returns how many listeners saw it."""
        return self.emit(key)
