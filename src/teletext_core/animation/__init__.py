"""Reveal and theme transition state machines."""

from teletext_core.animation.events import InputSignal, StateEmitter
from teletext_core.animation.reveal import (
    RevealAnimation,
    RevealOptions,
    TypingMode,
    TypingState,
    compute_progress,
    render_display_text,
)
from teletext_core.animation.transition import (
    PhaseTransition,
    TransitionOptions,
    TransitionPhase,
    TransitionState,
    transition_class,
)

__all__ = [
    # events
    "InputSignal",
    "StateEmitter",
    # reveal
    "RevealAnimation",
    "RevealOptions",
    "TypingMode",
    "TypingState",
    "compute_progress",
    "render_display_text",
    # transition
    "PhaseTransition",
    "TransitionOptions",
    "TransitionPhase",
    "TransitionState",
    "transition_class",
]
