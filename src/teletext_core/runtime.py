"""Composition root.

Builds explicitly wired instances from a :class:`CoreConfig`. Hosts keep
one :class:`CoreRuntime` and pass its parts by reference; ``dispose()``
tears everything down.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable

from teletext_core.animation.events import InputSignal
from teletext_core.animation.reveal import RevealAnimation, RevealOptions
from teletext_core.animation.transition import PhaseTransition, TransitionOptions
from teletext_core.cancellation.registry import CancellationRegistry
from teletext_core.config import CoreConfig
from teletext_core.timing.clock import AsyncioClock, Clock
from teletext_core.timing.timeout import TimeoutHandler

logger = logging.getLogger(__name__)


@dataclass
class CoreRuntime:
    config: CoreConfig
    clock: Clock
    registry: CancellationRegistry
    transition: PhaseTransition
    timeouts: TimeoutHandler
    skip_signal: InputSignal
    _reveals: list[RevealAnimation] = field(default_factory=list, repr=False)

    def create_reveal(
        self,
        *,
        on_complete: Callable[[], Any] | None = None,
        on_skip: Callable[[], Any] | None = None,
        **overrides: Any,
    ) -> RevealAnimation:
        """A reveal animation using configured defaults.

        Keyword overrides (``speed``, ``show_cursor``, ``cursor_char``,
        ``allow_skip``) replace the configured values for this instance.
        """
        cfg = self.config.reveal
        settings: dict[str, Any] = {
            "speed": cfg.speed,
            "show_cursor": cfg.show_cursor,
            "cursor_char": cfg.cursor_char,
            "allow_skip": cfg.allow_skip,
        }
        settings.update({k: v for k, v in overrides.items() if v is not None})
        options = RevealOptions(on_complete=on_complete, on_skip=on_skip, **settings)
        animation = RevealAnimation(options, clock=self.clock, skip_signal=self.skip_signal)
        self._reveals.append(animation)
        return animation

    def transition_options(
        self,
        *,
        duration: float | None = None,
        show_banner: bool | None = None,
        on_start: Callable[[], Any] | None = None,
        on_complete: Callable[[], Any] | None = None,
    ) -> TransitionOptions:
        """Per-call transition options with the configured banner default."""
        return TransitionOptions(
            duration=duration,
            show_banner=self.config.transition.show_banner if show_banner is None else show_banner,
            on_start=on_start,
            on_complete=on_complete,
        )

    def dispose(self) -> None:
        """Cancel all in-flight work and timers."""
        cancelled = self.registry.cancel_all("disposed")
        self.registry.dispose()
        for animation in self._reveals:
            animation.destroy()
        self._reveals.clear()
        self.transition.dispose()
        self.timeouts.dispose()
        self.skip_signal.clear()
        logger.debug("Runtime disposed (%d operations cancelled)", cancelled)


def create_runtime(
    config: CoreConfig | None = None,
    *,
    clock: Clock | None = None,
    skip_signal: InputSignal | None = None,
) -> CoreRuntime:
    """Wire a runtime from ``config`` (defaults if omitted)."""
    config = config or CoreConfig()
    clock = clock or AsyncioClock()
    transition_cfg = config.transition
    return CoreRuntime(
        config=config,
        clock=clock,
        registry=CancellationRegistry(clock=clock),
        transition=PhaseTransition(
            clock=clock,
            default_duration=transition_cfg.default_duration,
            theme_durations=transition_cfg.theme_durations,
            banner_visible_seconds=transition_cfg.banner_visible_seconds,
            banner_fade_seconds=transition_cfg.banner_fade_seconds,
        ),
        timeouts=TimeoutHandler(clock=clock, default_timeout=config.timeouts.default),
        skip_signal=skip_signal or InputSignal(),
    )
