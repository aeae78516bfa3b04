"""Tests for environment-driven configuration."""

from __future__ import annotations

import pytest

from eventual import (
    ConfigError,
    EventualConfig,
    ManualScheduler,
    SchedulerError,
    configure,
    get_config,
    load_config,
    reset_config,
)


class TestLoadConfig:
    def test_defaults(self) -> None:
        config = load_config({})
        assert config == EventualConfig()
        assert config.debug is False
        assert config.track_unhandled_rejections is True
        assert config.max_turns == 100_000
        assert config.scheduler == "manual"

    def test_parses_environment(self) -> None:
        config = load_config(
            {
                "EVENTUAL_DEBUG": "yes",
                "EVENTUAL_TRACK_UNHANDLED": "0",
                "EVENTUAL_MAX_TURNS": "10",
                "EVENTUAL_SCHEDULER": " AsyncIO ",
            }
        )
        assert config.debug is True
        assert config.track_unhandled_rejections is False
        assert config.max_turns == 10
        assert config.scheduler == "asyncio"

    @pytest.mark.parametrize(
        "environ",
        [
            {"EVENTUAL_DEBUG": "maybe"},
            {"EVENTUAL_MAX_TURNS": "abc"},
            {"EVENTUAL_MAX_TURNS": "0"},
            {"EVENTUAL_SCHEDULER": "threads"},
        ],
    )
    def test_invalid_values(self, environ: dict[str, str]) -> None:
        with pytest.raises(ConfigError):
            load_config(environ)

    def test_config_error_is_a_value_error(self) -> None:
        with pytest.raises(ValueError) as excinfo:
            load_config({"EVENTUAL_MAX_TURNS": "-3"})
        assert excinfo.value.key == "max_turns"


class TestConfigure:
    def test_overrides_fields(self) -> None:
        config = configure(max_turns=3, debug=True)
        assert config.max_turns == 3
        assert config.debug is True
        assert get_config() is config

    def test_max_turns_limits_run_until_idle(self) -> None:
        configure(max_turns=2)
        manual = ManualScheduler()
        for _ in range(3):
            manual.enqueue(lambda: None)
        with pytest.raises(SchedulerError):
            manual.run_until_idle()

    def test_unknown_field(self) -> None:
        with pytest.raises(TypeError, match="colour"):
            configure(colour="blue")

    def test_validates_new_values(self) -> None:
        with pytest.raises(ConfigError):
            configure(scheduler="threads")

    def test_reset_reloads_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        configure(max_turns=3)
        monkeypatch.setenv("EVENTUAL_MAX_TURNS", "42")
        assert reset_config().max_turns == 42
        assert get_config().max_turns == 42
