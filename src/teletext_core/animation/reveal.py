"""Character-reveal ("typing") animation.

A state machine over :class:`TypingMode` driven by up to three periodic
timers on an injected :class:`Clock`:

- the reveal ticker, one character every ``1 / speed`` seconds,
- the thinking ticker, cycling ``Thinking`` .. ``Thinking...``,
- the cursor ticker, toggling cursor visibility every 0.5 s.

Every public operation tears down all running timers before installing
new ones, so two tickers never drive the same state. Errors raised by
subscribers or lifecycle callbacks never escape a tick: they are logged,
kept on ``last_error``, and stop the animation on its last state.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, replace
from enum import StrEnum
from typing import Any, Callable

from teletext_core.animation.events import InputSignal, StateEmitter
from teletext_core.defaults import (
    CURSOR_BLINK_INTERVAL,
    DEFAULT_CURSOR_CHAR,
    DEFAULT_TYPING_SPEED,
    MAX_RECOMMENDED_SPEED,
    MIN_RECOMMENDED_SPEED,
    THINKING_FRAMES,
    THINKING_INTERVAL,
)
from teletext_core.errors import InvalidArgumentError, OperationError
from teletext_core.timing.clock import AsyncioClock, Clock, TimerHandle

logger = logging.getLogger(__name__)


class TypingMode(StrEnum):
    """Mode of the reveal animation."""

    IDLE = "idle"
    THINKING = "thinking"
    TYPING = "typing"
    COMPLETE = "complete"


# Modes in which the cursor blinks and is drawn.
_CURSOR_MODES = frozenset({TypingMode.THINKING, TypingMode.TYPING})


@dataclass(frozen=True, slots=True)
class TypingState:
    """Snapshot of the animation, pushed to subscribers on every change."""

    mode: TypingMode = TypingMode.IDLE
    full_text: str = ""
    revealed_length: int = 0
    revealed_text: str = ""
    cursor_visible: bool = True
    progress: int = 0

    @property
    def is_typing(self) -> bool:
        return self.mode is TypingMode.TYPING

    @property
    def is_thinking(self) -> bool:
        return self.mode is TypingMode.THINKING

    @property
    def is_active(self) -> bool:
        return self.mode in _CURSOR_MODES


@dataclass(slots=True)
class RevealOptions:
    """Per-instance animation settings and lifecycle callbacks."""

    speed: float = DEFAULT_TYPING_SPEED  # characters per second
    show_cursor: bool = True
    cursor_char: str = DEFAULT_CURSOR_CHAR
    allow_skip: bool = True
    on_complete: Callable[[], Any] | None = None
    on_skip: Callable[[], Any] | None = None

    @property
    def interval(self) -> float:
        """Seconds between revealed characters."""
        return 1.0 / self.speed

    def validate(self) -> None:
        speed = self.speed
        if (
            isinstance(speed, bool)
            or not isinstance(speed, (int, float))
            or not math.isfinite(speed)
            or speed <= 0
        ):
            raise InvalidArgumentError(
                f"speed must be a positive number, got {speed!r}", argument="speed",
            )
        if not MIN_RECOMMENDED_SPEED <= speed <= MAX_RECOMMENDED_SPEED:
            logger.warning(
                "Typing speed %s outside recommended range %g-%g chars/s",
                speed, MIN_RECOMMENDED_SPEED, MAX_RECOMMENDED_SPEED,
            )
        if self.show_cursor and not self.cursor_char:
            raise InvalidArgumentError("cursor_char must not be empty", argument="cursor_char")


def compute_progress(revealed_length: int, total: int) -> int:
    """Percentage revealed, rounding halves up; 100 for empty text."""
    if total <= 0:
        return 100
    return math.floor(100 * revealed_length / total + 0.5)


def render_display_text(
    state: TypingState,
    *,
    show_cursor: bool = True,
    cursor_char: str = DEFAULT_CURSOR_CHAR,
) -> str:
    """Revealed text plus the cursor glyph when it should be drawn."""
    if show_cursor and state.cursor_visible and state.mode in _CURSOR_MODES:
        return state.revealed_text + cursor_char
    return state.revealed_text


class RevealAnimation:
    """Timer-driven reveal of text, one character per tick.

    Args:
        options: Speed, cursor and skip settings plus callbacks.
        clock: Timer source. Defaults to the running event loop.
        skip_signal: Input source; any event skips an in-progress reveal
            when ``options.allow_skip`` is set.
    """

    def __init__(
        self,
        options: RevealOptions | None = None,
        *,
        clock: Clock | None = None,
        skip_signal: InputSignal | None = None,
    ) -> None:
        self._options = options if options is not None else RevealOptions()
        self._options.validate()
        self._clock = clock or AsyncioClock()
        self._skip_signal = skip_signal
        self._state = TypingState()
        self._emitter: StateEmitter[TypingState] = StateEmitter()
        self._reveal_timer: TimerHandle | None = None
        self._thinking_timer: TimerHandle | None = None
        self._cursor_timer: TimerHandle | None = None
        self._thinking_frame = 0
        self._detach_skip: Callable[[], None] | None = None
        self.last_error: OperationError | None = None

    # -- introspection ------------------------------------------------------

    @property
    def options(self) -> RevealOptions:
        return self._options

    @property
    def state(self) -> TypingState:
        return self._state

    @property
    def is_active(self) -> bool:
        return self._state.is_active

    @property
    def active_timers(self) -> int:
        """Number of live timers owned by this instance."""
        timers = (self._reveal_timer, self._thinking_timer, self._cursor_timer)
        return sum(1 for t in timers if t is not None and t.active)

    @property
    def display_text(self) -> str:
        return self.get_display_text()

    def get_display_text(self) -> str:
        return render_display_text(
            self._state,
            show_cursor=self._options.show_cursor,
            cursor_char=self._options.cursor_char,
        )

    def subscribe(self, listener: Callable[[TypingState], None]) -> Callable[[], None]:
        """Receive every new state. Returns an unsubscribe function."""
        return self._emitter.subscribe(listener)

    # -- operations ---------------------------------------------------------

    def start(self, text: str) -> None:
        """Begin revealing ``text`` from the first character."""
        if not isinstance(text, str):
            raise InvalidArgumentError("text must be a string", argument="text")
        self._teardown()

        if not text:
            self._set(
                mode=TypingMode.COMPLETE,
                full_text="",
                revealed_length=0,
                revealed_text="",
                cursor_visible=True,
                progress=100,
            )
            if self._publish():
                self._fire(self._options.on_complete, "on_complete")
            return

        self._set(
            mode=TypingMode.TYPING,
            full_text=text,
            revealed_length=0,
            revealed_text="",
            cursor_visible=True,
            progress=0,
        )
        self._reveal_timer = self._clock.call_every(
            self._options.interval, self._guarded(self._reveal_tick, "reveal tick"),
        )
        self._start_cursor()
        if self._options.allow_skip and self._skip_signal is not None:
            self._detach_skip = self._skip_signal.subscribe(self._on_skip_input)
        logger.debug("Reveal started: %d chars at %g chars/s", len(text), self._options.speed)
        self._publish()

    def start_thinking(self) -> None:
        """Show the animated ``Thinking...`` placeholder."""
        self._teardown()
        self._thinking_frame = 0
        self._set(
            mode=TypingMode.THINKING,
            full_text="",
            revealed_length=0,
            revealed_text=THINKING_FRAMES[0],
            cursor_visible=True,
            progress=0,
        )
        self._thinking_timer = self._clock.call_every(
            THINKING_INTERVAL, self._guarded(self._thinking_tick, "thinking tick"),
        )
        self._start_cursor()
        self._publish()

    def stop_thinking(self) -> None:
        if self._state.mode is not TypingMode.THINKING:
            return
        self._teardown()
        self._set(mode=TypingMode.IDLE)
        self._publish()

    def skip(self) -> None:
        """Reveal everything at once. Only acts while typing."""
        if self._state.mode is not TypingMode.TYPING:
            return
        self._teardown()
        full_text = self._state.full_text
        self._set(
            mode=TypingMode.COMPLETE,
            revealed_length=len(full_text),
            revealed_text=full_text,
            progress=100,
        )
        logger.debug("Reveal skipped")
        if self._publish() and self._fire(self._options.on_skip, "on_skip"):
            self._fire(self._options.on_complete, "on_complete")

    def stop(self) -> None:
        """Cancel every timer without firing lifecycle callbacks."""
        self._teardown()
        if self._state.mode in _CURSOR_MODES:
            self._set(mode=TypingMode.IDLE)
            self._publish()

    def destroy(self) -> None:
        self.stop()
        self._emitter.clear()

    # -- ticks --------------------------------------------------------------

    def _reveal_tick(self) -> None:
        state = self._state
        if state.mode is not TypingMode.TYPING:
            return
        total = len(state.full_text)
        length = min(state.revealed_length + 1, total)
        self._set(
            revealed_length=length,
            revealed_text=state.full_text[:length],
            progress=compute_progress(length, total),
        )
        if length < total:
            self._publish()
            return

        self._teardown()
        self._set(mode=TypingMode.COMPLETE, progress=100)
        logger.debug("Reveal complete")
        if self._publish():
            self._fire(self._options.on_complete, "on_complete")

    def _thinking_tick(self) -> None:
        if self._state.mode is not TypingMode.THINKING:
            return
        self._thinking_frame = (self._thinking_frame + 1) % len(THINKING_FRAMES)
        self._set(revealed_text=THINKING_FRAMES[self._thinking_frame])
        self._publish()

    def _cursor_tick(self) -> None:
        if self._state.mode not in _CURSOR_MODES:
            return
        self._set(cursor_visible=not self._state.cursor_visible)
        self._publish()

    def _start_cursor(self) -> None:
        if not self._options.show_cursor:
            return
        self._cursor_timer = self._clock.call_every(
            CURSOR_BLINK_INTERVAL, self._guarded(self._cursor_tick, "cursor tick"),
        )

    def _on_skip_input(self, _key: str) -> None:
        self.skip()

    # -- plumbing -----------------------------------------------------------

    def _set(self, **changes: Any) -> None:
        self._state = replace(self._state, **changes)

    def _publish(self) -> bool:
        try:
            self._emitter.emit(self._state)
        except Exception as exc:
            self._fail(exc, "state listener")
            return False
        return True

    def _fire(self, callback: Callable[[], Any] | None, source: str) -> bool:
        if callback is None:
            return True
        try:
            callback()
        except Exception as exc:
            self._fail(exc, source)
            return False
        return True

    def _guarded(self, tick: Callable[[], None], source: str) -> Callable[[], None]:
        def run() -> None:
            try:
                tick()
            except Exception as exc:
                self._fail(exc, source)

        return run

    def _fail(self, exc: Exception, source: str) -> None:
        logger.error("Reveal animation stopped after error in %s", source, exc_info=exc)
        self.last_error = OperationError(exc, source=source)
        self._teardown()
        if self._state.mode not in _CURSOR_MODES:
            return
        self._set(mode=TypingMode.IDLE)
        try:
            self._emitter.emit(self._state)
        except Exception:
            # Already stopped; a second listener error changes nothing.
            logger.debug("State listener failed again on the stopped reveal", exc_info=True)

    def _teardown(self) -> None:
        for timer in (self._reveal_timer, self._thinking_timer, self._cursor_timer):
            if timer is not None:
                timer.cancel()
        self._reveal_timer = None
        self._thinking_timer = None
        self._cursor_timer = None
        if self._detach_skip is not None:
            self._detach_skip()
            self._detach_skip = None
