"""System defaults and presets.

Timing constants for the reveal animation and the theme transition, the
theme lookup tables that keep the transition engine theme-agnostic, and
timeout presets. All durations are in seconds.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Mapping


# =============================================================================
# REVEAL ANIMATION
# =============================================================================

DEFAULT_TYPING_SPEED = 75.0  # characters per second
MIN_RECOMMENDED_SPEED = 50.0
MAX_RECOMMENDED_SPEED = 100.0
DEFAULT_CURSOR_CHAR = "█"  # full block
CURSOR_BLINK_INTERVAL = 0.5
THINKING_INTERVAL = 0.5
THINKING_LABEL = "Thinking"
THINKING_FRAMES: tuple[str, ...] = tuple(THINKING_LABEL + "." * n for n in range(4))


# =============================================================================
# THEME TRANSITION
# =============================================================================

DEFAULT_TRANSITION_DURATION = 0.5
BANNER_VISIBLE_SECONDS = 2.0
BANNER_FADE_SECONDS = 0.5

HAUNTING_THEME = "haunting"

# Themes whose transitions run longer than the default.
THEME_TRANSITION_DURATIONS: Mapping[str, float] = MappingProxyType({
    HAUNTING_THEME: 1.0,
})

# Themes with a bespoke banner instead of "<NAME> MODE ACTIVATED".
THEME_BANNER_TEXT: Mapping[str, str] = MappingProxyType({
    HAUNTING_THEME: "\U0001f383 HAUNTING MODE ACTIVATED \U0001f383",
})

# Themes that use the haunting fade-out class.
HAUNTING_THEMES: frozenset[str] = frozenset({HAUNTING_THEME})

FADE_OUT_CLASS = "theme-transition-fade-out"
HAUNTING_FADE_OUT_CLASS = "haunting-theme-transition"
FADE_IN_CLASS = "theme-transition-fade-in"


# =============================================================================
# TIMEOUTS
# =============================================================================

DEFAULT_TIMEOUT = 30.0

TIMEOUT_PRESETS: Mapping[str, float] = MappingProxyType({
    "fast": 5.0,
    "normal": 30.0,
    "slow": 60.0,
    "ai_generation": 45.0,
    "page_load": 10.0,
})


def default_transition_duration(
    theme_key: str,
    *,
    durations: Mapping[str, float] = THEME_TRANSITION_DURATIONS,
    fallback: float = DEFAULT_TRANSITION_DURATION,
) -> float:
    """Look up the default transition duration for ``theme_key``."""
    return durations.get(theme_key, fallback)


def banner_text_for(
    theme_key: str,
    display_name: str,
    *,
    overrides: Mapping[str, str] = THEME_BANNER_TEXT,
) -> str:
    """Banner shown once a transition to ``theme_key`` has landed."""
    if theme_key in overrides:
        return overrides[theme_key]
    return f"{display_name.upper()} MODE ACTIVATED"
