"""Staged, cancellable theme transitions.

Phases always run in this order::

    IDLE -> FADE_OUT -> SWITCHING -> FADE_IN -> [BANNER] -> IDLE

The duration is split evenly between FADE_OUT and FADE_IN. The theme is
applied at SWITCHING and awaited, so fade-in never starts before the new
theme has landed. A new ``execute()`` supersedes the running one: its
timers are cancelled, its ``on_complete`` never fires, and its handle
raises CancellationError. An apply that has already started still runs
to completion, and the next apply waits for it, so themes land in
``execute()`` order.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import math
from collections.abc import Mapping
from dataclasses import dataclass, replace
from enum import StrEnum
from typing import Any, Callable

from teletext_core.animation.events import StateEmitter
from teletext_core.cancellation.task import CancellableTask
from teletext_core.defaults import (
    BANNER_FADE_SECONDS,
    BANNER_VISIBLE_SECONDS,
    DEFAULT_TRANSITION_DURATION,
    FADE_IN_CLASS,
    FADE_OUT_CLASS,
    HAUNTING_FADE_OUT_CLASS,
    HAUNTING_THEMES,
    THEME_BANNER_TEXT,
    THEME_TRANSITION_DURATIONS,
    banner_text_for,
    default_transition_duration,
)
from teletext_core.errors import InvalidArgumentError, OperationError
from teletext_core.timing.clock import AsyncioClock, Clock

logger = logging.getLogger(__name__)

# Sync or async; an awaitable result is awaited.
ApplyFn = Callable[[], Any]


class TransitionPhase(StrEnum):
    """Stage of a theme transition."""

    IDLE = "idle"
    FADE_OUT = "fade-out"
    SWITCHING = "switching"
    FADE_IN = "fade-in"
    BANNER = "banner"


@dataclass(frozen=True, slots=True)
class TransitionState:
    """Snapshot of the transition, pushed to subscribers on every change."""

    phase: TransitionPhase = TransitionPhase.IDLE
    banner_visible: bool = False
    banner_text: str = ""
    target_key: str = ""
    from_key: str = ""

    @property
    def is_transitioning(self) -> bool:
        return self.phase is not TransitionPhase.IDLE


@dataclass(slots=True)
class TransitionOptions:
    """Per-call transition settings.

    ``duration`` of None means "look it up for the target theme".
    """

    duration: float | None = None
    show_banner: bool = True
    on_start: Callable[[], Any] | None = None
    on_complete: Callable[[], Any] | None = None


def transition_class(phase: TransitionPhase, *, haunting: bool = False) -> str:
    """Display class for ``phase``; empty outside the fades."""
    if phase is TransitionPhase.FADE_OUT:
        return HAUNTING_FADE_OUT_CLASS if haunting else FADE_OUT_CLASS
    if phase is TransitionPhase.FADE_IN:
        return FADE_IN_CLASS
    return ""


def _check_seconds(value: float, argument: str) -> float:
    if (
        isinstance(value, bool)
        or not isinstance(value, (int, float))
        or not math.isfinite(value)
        or value < 0
    ):
        raise InvalidArgumentError(f"{argument} must be >= 0 seconds, got {value!r}", argument=argument)
    return float(value)


async def _call_apply(apply_fn: ApplyFn, after: asyncio.Future[None] | None = None) -> None:
    if after is not None and not after.done():
        await asyncio.wait([after])
    result = apply_fn()
    if inspect.isawaitable(result):
        await result


class PhaseTransition:
    """Sequencer for animated theme switches.

    Args:
        clock: Timer source. Defaults to the running event loop.
        default_duration: Duration for themes missing from ``theme_durations``.
        theme_durations: ``theme_key -> duration`` overrides.
        banner_texts: ``theme_key -> banner`` overrides.
        haunting_themes: Themes that fade out with the haunting class.
        banner_visible_seconds: How long the banner stays up.
        banner_fade_seconds: Pause after the banner hides before IDLE.
    """

    def __init__(
        self,
        *,
        clock: Clock | None = None,
        default_duration: float = DEFAULT_TRANSITION_DURATION,
        theme_durations: Mapping[str, float] = THEME_TRANSITION_DURATIONS,
        banner_texts: Mapping[str, str] = THEME_BANNER_TEXT,
        haunting_themes: frozenset[str] = HAUNTING_THEMES,
        banner_visible_seconds: float = BANNER_VISIBLE_SECONDS,
        banner_fade_seconds: float = BANNER_FADE_SECONDS,
    ) -> None:
        self._clock = clock or AsyncioClock()
        self._default_duration = _check_seconds(default_duration, "default_duration")
        self._theme_durations = {
            key: _check_seconds(value, f"theme_durations[{key!r}]")
            for key, value in theme_durations.items()
        }
        self._banner_texts = dict(banner_texts)
        self._haunting_themes = frozenset(haunting_themes)
        self._banner_visible = _check_seconds(banner_visible_seconds, "banner_visible_seconds")
        self._banner_fade = _check_seconds(banner_fade_seconds, "banner_fade_seconds")
        self._state = TransitionState()
        self._emitter: StateEmitter[TransitionState] = StateEmitter()
        self._run: CancellableTask[None] | None = None
        self._pending_apply: asyncio.Future[None] | None = None
        self._generation = 0
        self.last_error: OperationError | None = None

    @property
    def state(self) -> TransitionState:
        return self._state

    @property
    def is_transitioning(self) -> bool:
        return self._state.is_transitioning

    def subscribe(self, listener: Callable[[TransitionState], None]) -> Callable[[], None]:
        """Receive every new state. Returns an unsubscribe function."""
        return self._emitter.subscribe(listener)

    def duration_for(self, theme_key: str) -> float:
        return default_transition_duration(
            theme_key, durations=self._theme_durations, fallback=self._default_duration,
        )

    def get_transition_class(self) -> str:
        return transition_class(
            self._state.phase,
            haunting=self._state.target_key in self._haunting_themes,
        )

    def execute(
        self,
        from_key: str,
        to_key: str,
        display_name: str,
        apply_fn: ApplyFn,
        options: TransitionOptions | None = None,
    ) -> CancellableTask[None]:
        """Start a transition to ``to_key``, superseding any running one.

        Args:
            from_key: Theme being left.
            to_key: Theme being entered.
            display_name: Human name used in the banner.
            apply_fn: Applies the theme; sync or async. Awaited at SWITCHING.
            options: Duration, banner and lifecycle callbacks.

        Returns:
            Handle that resolves once the transition is back to IDLE.
        """
        opts = options if options is not None else TransitionOptions()
        if not isinstance(to_key, str) or not to_key:
            raise InvalidArgumentError("to_key must be a non-empty string", argument="to_key")
        if not callable(apply_fn):
            raise InvalidArgumentError("apply_fn must be callable", argument="apply_fn")
        if opts.duration is None:
            duration = self.duration_for(to_key)
        else:
            duration = _check_seconds(opts.duration, "duration")

        self._invalidate("superseded")
        generation = self._generation
        self._state = TransitionState(
            phase=TransitionPhase.FADE_OUT,
            target_key=to_key,
            from_key=from_key,
        )
        logger.debug("Transition %s -> %s over %gs", from_key, to_key, duration)

        run: CancellableTask[None] = CancellableTask(
            self._run_phases(generation, to_key, display_name, apply_fn, duration, opts),
            name=f"transition:{to_key}",
        )
        self._run = run
        if self._publish():
            self._fire(opts.on_start, "on_start")
        return run

    def cancel_transition(self) -> None:
        """Abort any transition and return to IDLE without ``on_complete``."""
        self._invalidate("cancelled")
        previous = self._state
        self._state = TransitionState()
        if previous != self._state:
            logger.debug("Transition to %s cancelled", previous.target_key)
            self._publish()

    def dispose(self) -> None:
        self.cancel_transition()
        self._emitter.clear()

    # -- run ----------------------------------------------------------------

    async def _run_phases(
        self,
        generation: int,
        to_key: str,
        display_name: str,
        apply_fn: ApplyFn,
        duration: float,
        opts: TransitionOptions,
    ) -> None:
        half = duration / 2
        try:
            await self._clock.sleep(half)
            if not self._advance(generation, phase=TransitionPhase.SWITCHING):
                return
            await asyncio.shield(self._start_apply(generation, to_key, apply_fn))
        except Exception as exc:
            if generation == self._generation:
                logger.error("Theme apply for %s failed", to_key, exc_info=exc)
                self.last_error = OperationError(exc, source="apply_fn")
                self._generation += 1
                self._run = None
                self._state = TransitionState()
                self._publish()
            raise

        self._advance(generation, phase=TransitionPhase.FADE_IN)
        await self._clock.sleep(half)

        if opts.show_banner:
            self._advance(
                generation,
                phase=TransitionPhase.BANNER,
                banner_visible=True,
                banner_text=banner_text_for(to_key, display_name, overrides=self._banner_texts),
            )
            await self._clock.sleep(self._banner_visible)
            self._advance(generation, banner_visible=False)
            await self._clock.sleep(self._banner_fade)

        if generation != self._generation:
            return
        self._run = None
        self._state = TransitionState()
        logger.debug("Transition to %s complete", to_key)
        if self._publish():
            self._fire(opts.on_complete, "on_complete")

    # -- plumbing -----------------------------------------------------------

    def _start_apply(self, generation: int, to_key: str, apply_fn: ApplyFn) -> asyncio.Future[None]:
        """Schedule ``apply_fn`` behind any apply still in flight.

        A started apply runs to completion even if its transition is
        superseded, so theme changes land in ``execute()`` order.
        """
        task = asyncio.ensure_future(_call_apply(apply_fn, self._pending_apply))
        self._pending_apply = task

        def on_done(done: asyncio.Future[None]) -> None:
            if self._pending_apply is done:
                self._pending_apply = None
            if done.cancelled():
                return
            exc = done.exception()
            if exc is None or generation == self._generation:
                # The live run reports its own failure.
                return
            logger.error("Theme apply for superseded transition to %s failed", to_key, exc_info=exc)
            self.last_error = OperationError(exc, source="apply_fn")

        task.add_done_callback(on_done)
        return task

    def _advance(self, generation: int, **changes: Any) -> bool:
        if generation != self._generation:
            return False
        self._state = replace(self._state, **changes)
        return self._publish()

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

    def _fail(self, exc: Exception, source: str) -> None:
        logger.error("Theme transition stopped after error in %s", source, exc_info=exc)
        self.last_error = OperationError(exc, source=source)
        self._invalidate("failed")
        self._state = TransitionState()
        try:
            self._emitter.emit(self._state)
        except Exception:
            logger.debug("State listener failed again on the stopped transition", exc_info=True)

    def _invalidate(self, reason: str) -> None:
        """Orphan the running transition and cancel its timers."""
        self._generation += 1
        run, self._run = self._run, None
        if run is not None:
            run.cancel(reason)
