"""Tests for layered configuration."""

from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest

from teletext_core.config import (
    CONFIG_ENV_VAR,
    DEFAULTS,
    CoreConfig,
    RevealConfig,
    TimeoutConfig,
    _deep_merge,
    load_config,
)
from teletext_core.errors import InvalidArgumentError


def _write(path: Path, data: object) -> Path:
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


class TestCoreConfig:
    def test_defaults(self) -> None:
        c = CoreConfig()
        assert c.reveal.speed == 75.0
        assert c.reveal.show_cursor is True
        assert c.reveal.cursor_char == "█"
        assert c.transition.default_duration == 0.5
        assert c.transition.theme_durations == {"haunting": 1.0}
        assert c.transition.banner_visible_seconds == 2.0
        assert c.timeouts.default == 30.0

    def test_slots(self) -> None:
        c = RevealConfig()
        with pytest.raises(AttributeError):
            c.nonexistent = "value"  # type: ignore[attr-defined]

    def test_from_empty_dict_matches_defaults(self) -> None:
        c = CoreConfig.from_dict({})
        assert c.reveal == RevealConfig()
        assert c.timeouts.presets["page_load"] == 10.0

    @pytest.mark.parametrize(
        "data",
        [
            {"reveal": {"speed": 0}},
            {"reveal": {"speed": True}},
            {"reveal": {"speed": "fast"}},
            {"reveal": {"cursor_char": ""}},
            {"transition": {"default_duration": -1}},
            {"transition": {"theme_durations": {"ocean": -0.5}}},
            {"transition": {"theme_durations": ["ocean"]}},
            {"timeouts": {"default": 0}},
            {"timeouts": {"presets": {"fast": -5}}},
        ],
    )
    def test_invalid_values(self, data: dict) -> None:
        with pytest.raises(InvalidArgumentError):
            CoreConfig.from_dict(data)

    def test_timeout_preset(self) -> None:
        timeouts = TimeoutConfig()
        assert timeouts.preset("fast") == 5.0
        assert timeouts.preset("unknown") == 30.0


class TestDeepMerge:
    def test_nested(self) -> None:
        merged = _deep_merge({"a": {"x": 1, "y": 2}, "b": 1}, {"a": {"y": 3}})
        assert merged == {"a": {"x": 1, "y": 3}, "b": 1}

    def test_does_not_mutate_base(self) -> None:
        _deep_merge(DEFAULTS, {"reveal": {"speed": 90}})
        assert DEFAULTS["reveal"]["speed"] == 75.0


class TestLoadConfig:
    def test_builtin_only(self) -> None:
        c = load_config(env={})
        assert c.sources == ["built-in"]
        assert c.reveal.speed == 75.0

    def test_file_layer(self, tmp_path: Path) -> None:
        path = _write(tmp_path / "core.json", {
            "reveal": {"speed": 60},
            "transition": {"theme_durations": {"ocean": 0.8}},
        })
        c = load_config(path, env={})
        assert c.reveal.speed == 60.0
        assert c.reveal.show_cursor is True
        assert c.transition.theme_durations == {"haunting": 1.0, "ocean": 0.8}
        assert c.sources == ["built-in", str(path)]

    def test_env_var_path(self, tmp_path: Path) -> None:
        path = _write(tmp_path / "env.json", {"timeouts": {"default": 12}})
        c = load_config(env={CONFIG_ENV_VAR: str(path)})
        assert c.timeouts.default == 12.0

    def test_explicit_path_beats_env(self, tmp_path: Path) -> None:
        explicit = _write(tmp_path / "a.json", {"reveal": {"speed": 55}})
        from_env = _write(tmp_path / "b.json", {"reveal": {"speed": 95}})
        c = load_config(explicit, env={CONFIG_ENV_VAR: str(from_env)})
        assert c.reveal.speed == 55.0

    def test_overrides_win(self, tmp_path: Path) -> None:
        path = _write(tmp_path / "core.json", {"reveal": {"speed": 60, "allow_skip": False}})
        c = load_config(path, overrides={"reveal": {"speed": 90}}, env={})
        assert c.reveal.speed == 90.0
        assert c.reveal.allow_skip is False
        assert c.sources[-1] == "overrides"

    def test_malformed_file_falls_back(self, tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
        path = tmp_path / "broken.json"
        path.write_text("{not json", encoding="utf-8")
        with caplog.at_level(logging.WARNING, logger="teletext_core.config"):
            c = load_config(path, env={})
        assert c.reveal.speed == 75.0
        assert c.sources == ["built-in"]
        assert "Ignoring unreadable config" in caplog.text

    def test_missing_file_falls_back(self, tmp_path: Path) -> None:
        c = load_config(tmp_path / "missing.json", env={})
        assert c.sources == ["built-in"]

    def test_non_object_file_falls_back(self, tmp_path: Path) -> None:
        path = _write(tmp_path / "list.json", [1, 2, 3])
        c = load_config(path, env={})
        assert c.sources == ["built-in"]

    def test_invalid_value_in_file_raises(self, tmp_path: Path) -> None:
        path = _write(tmp_path / "bad.json", {"reveal": {"speed": -3}})
        with pytest.raises(InvalidArgumentError):
            load_config(path, env={})
