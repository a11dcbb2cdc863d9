"""Layered configuration loading.

Priority (lowest to highest):
  1. Built-in ``DEFAULTS``
  2. JSON file (explicit path, or ``$TELETEXT_CORE_CONFIG``)
  3. Explicit overrides

The result is a :class:`CoreConfig` consumed by the composition root;
nothing in the core reads configuration implicitly.
"""

from __future__ import annotations

import json
import logging
import math
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from teletext_core.defaults import (
    BANNER_FADE_SECONDS,
    BANNER_VISIBLE_SECONDS,
    DEFAULT_CURSOR_CHAR,
    DEFAULT_TIMEOUT,
    DEFAULT_TRANSITION_DURATION,
    DEFAULT_TYPING_SPEED,
    THEME_TRANSITION_DURATIONS,
    TIMEOUT_PRESETS,
)
from teletext_core.errors import InvalidArgumentError

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "TELETEXT_CORE_CONFIG"

DEFAULTS: dict[str, Any] = {
    "reveal": {
        "speed": DEFAULT_TYPING_SPEED,
        "show_cursor": True,
        "cursor_char": DEFAULT_CURSOR_CHAR,
        "allow_skip": True,
    },
    "transition": {
        "default_duration": DEFAULT_TRANSITION_DURATION,
        "theme_durations": dict(THEME_TRANSITION_DURATIONS),
        "show_banner": True,
        "banner_visible_seconds": BANNER_VISIBLE_SECONDS,
        "banner_fade_seconds": BANNER_FADE_SECONDS,
    },
    "timeouts": {
        "default": DEFAULT_TIMEOUT,
        "presets": dict(TIMEOUT_PRESETS),
    },
}


def _deep_merge(base: dict[str, Any], overlay: dict[str, Any]) -> dict[str, Any]:
    """Deep-merge overlay into base (overlay wins on conflicts)."""
    result = dict(base)
    for key, value in overlay.items():
        if (
            key in result
            and isinstance(result[key], dict)
            and isinstance(value, dict)
        ):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _load_json(path: Path) -> dict[str, Any]:
    """Load a JSON object from ``path``, returning {} on any error."""
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError, ValueError) as exc:
        logger.warning("Ignoring unreadable config %s: %s", path, exc)
        return {}
    if not isinstance(data, dict):
        logger.warning("Ignoring config %s: top level is not an object", path)
        return {}
    return data


def _seconds(section: dict[str, Any], key: str, *, positive: bool = False) -> float:
    value = section.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        raise InvalidArgumentError(f"{key} must be a number, got {value!r}", argument=key)
    if value < 0 or (positive and value == 0):
        bound = "> 0" if positive else ">= 0"
        raise InvalidArgumentError(f"{key} must be {bound}, got {value!r}", argument=key)
    return float(value)


@dataclass(slots=True)
class RevealConfig:
    speed: float = DEFAULT_TYPING_SPEED
    show_cursor: bool = True
    cursor_char: str = DEFAULT_CURSOR_CHAR
    allow_skip: bool = True


@dataclass(slots=True)
class TransitionConfig:
    default_duration: float = DEFAULT_TRANSITION_DURATION
    theme_durations: dict[str, float] = field(
        default_factory=lambda: dict(THEME_TRANSITION_DURATIONS),
    )
    show_banner: bool = True
    banner_visible_seconds: float = BANNER_VISIBLE_SECONDS
    banner_fade_seconds: float = BANNER_FADE_SECONDS


@dataclass(slots=True)
class TimeoutConfig:
    default: float = DEFAULT_TIMEOUT
    presets: dict[str, float] = field(default_factory=lambda: dict(TIMEOUT_PRESETS))

    def preset(self, name: str) -> float:
        """Seconds for a named preset, or the default if unknown."""
        return self.presets.get(name, self.default)


@dataclass(slots=True)
class CoreConfig:
    """Fully resolved configuration."""

    reveal: RevealConfig = field(default_factory=RevealConfig)
    transition: TransitionConfig = field(default_factory=TransitionConfig)
    timeouts: TimeoutConfig = field(default_factory=TimeoutConfig)
    sources: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any], *, sources: list[str] | None = None) -> CoreConfig:
        """Build and validate a config from a merged dict."""
        merged = _deep_merge(DEFAULTS, data)
        reveal = merged["reveal"]
        transition = merged["transition"]
        timeouts = merged["timeouts"]

        cursor_char = str(reveal.get("cursor_char", DEFAULT_CURSOR_CHAR))
        if not cursor_char:
            raise InvalidArgumentError("cursor_char must not be empty", argument="cursor_char")

        theme_durations = transition.get("theme_durations") or {}
        if not isinstance(theme_durations, dict):
            raise InvalidArgumentError("theme_durations must be an object", argument="theme_durations")
        presets = timeouts.get("presets") or {}
        if not isinstance(presets, dict):
            raise InvalidArgumentError("presets must be an object", argument="presets")

        return cls(
            reveal=RevealConfig(
                speed=_seconds(reveal, "speed", positive=True),
                show_cursor=bool(reveal.get("show_cursor", True)),
                cursor_char=cursor_char,
                allow_skip=bool(reveal.get("allow_skip", True)),
            ),
            transition=TransitionConfig(
                default_duration=_seconds(transition, "default_duration"),
                theme_durations={
                    str(k): _seconds(theme_durations, k) for k in theme_durations
                },
                show_banner=bool(transition.get("show_banner", True)),
                banner_visible_seconds=_seconds(transition, "banner_visible_seconds"),
                banner_fade_seconds=_seconds(transition, "banner_fade_seconds"),
            ),
            timeouts=TimeoutConfig(
                default=_seconds(timeouts, "default", positive=True),
                presets={str(k): _seconds(presets, k, positive=True) for k in presets},
            ),
            sources=list(sources or []),
        )


def load_config(
    path: Path | str | None = None,
    *,
    overrides: dict[str, Any] | None = None,
    env: dict[str, str] | None = None,
) -> CoreConfig:
    """Load and merge all configuration layers.

    Args:
        path: JSON config file. Falls back to ``$TELETEXT_CORE_CONFIG``.
        overrides: Highest-priority values, e.g. from CLI flags.
        env: Environment mapping, ``os.environ`` if omitted.
    """
    environ = os.environ if env is None else env
    sources = ["built-in"]
    data: dict[str, Any] = {}

    config_path = path if path is not None else environ.get(CONFIG_ENV_VAR)
    if config_path:
        resolved = Path(config_path).expanduser()
        file_data = _load_json(resolved)
        if file_data:
            data = _deep_merge(data, file_data)
            sources.append(str(resolved))

    if overrides:
        data = _deep_merge(data, overrides)
        sources.append("overrides")

    config = CoreConfig.from_dict(data, sources=sources)
    logger.debug("Config loaded from %s", ", ".join(sources))
    return config
