"""
Runtime configuration for eventual.

Defaults come from the environment when the configuration is first read:

- ``EVENTUAL_DEBUG``: ``1``/``true``/``yes`` enables library logging and
  warnings about resolvers settled more than once.
- ``EVENTUAL_TRACK_UNHANDLED``: track rejections nobody observed (default on).
- ``EVENTUAL_MAX_TURNS``: turn budget for ``ManualScheduler.run_until_idle``.
- ``EVENTUAL_SCHEDULER``: ``manual`` (default) or ``asyncio``, the kind of
  scheduler created when none was installed.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, fields, replace
from typing import Any, Literal

from loguru import logger

from eventual.errors import ConfigError

SchedulerKind = Literal["manual", "asyncio"]

_VALID_SCHEDULERS: tuple[SchedulerKind, ...] = ("manual", "asyncio")
_TRUE = ("1", "true", "yes", "on")
_FALSE = ("0", "false", "no", "off", "")


@dataclass(frozen=True)
class EventualConfig:
    debug: bool = False
    track_unhandled_rejections: bool = True
    max_turns: int = 100_000
    scheduler: SchedulerKind = "manual"

    def __post_init__(self) -> None:
        if not isinstance(self.debug, bool):
            raise ConfigError("debug", self.debug, "bool")
        if not isinstance(self.track_unhandled_rejections, bool):
            raise ConfigError(
                "track_unhandled_rejections", self.track_unhandled_rejections, "bool"
            )
        if not isinstance(self.max_turns, int) or self.max_turns < 1:
            raise ConfigError("max_turns", self.max_turns, "positive int")
        if self.scheduler not in _VALID_SCHEDULERS:
            raise ConfigError("scheduler", self.scheduler, "'manual' or 'asyncio'")


def _parse_bool(key: str, raw: str) -> bool:
    lowered = raw.strip().lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    raise ConfigError(key, raw, "a boolean flag")


def load_config(environ: Mapping[str, str] | None = None) -> EventualConfig:
    """Build a configuration from environment variables."""
    env = os.environ if environ is None else environ
    values: dict[str, Any] = {}

    if "EVENTUAL_DEBUG" in env:
        values["debug"] = _parse_bool("EVENTUAL_DEBUG", env["EVENTUAL_DEBUG"])
    if "EVENTUAL_TRACK_UNHANDLED" in env:
        values["track_unhandled_rejections"] = _parse_bool(
            "EVENTUAL_TRACK_UNHANDLED", env["EVENTUAL_TRACK_UNHANDLED"]
        )
    if "EVENTUAL_MAX_TURNS" in env:
        raw = env["EVENTUAL_MAX_TURNS"]
        try:
            values["max_turns"] = int(raw)
        except ValueError:
            raise ConfigError("EVENTUAL_MAX_TURNS", raw, "positive int") from None
    if "EVENTUAL_SCHEDULER" in env:
        values["scheduler"] = env["EVENTUAL_SCHEDULER"].strip().lower()

    return EventualConfig(**values)


_config: EventualConfig | None = None


def _apply_logging(config: EventualConfig) -> None:
    if config.debug:
        logger.enable("eventual")
    else:
        logger.disable("eventual")


def get_config() -> EventualConfig:
    global _config
    if _config is None:
        _config = load_config()
        _apply_logging(_config)
    return _config


def configure(**changes: Any) -> EventualConfig:
    """Override configuration fields. Unknown field names raise ``TypeError``."""
    global _config
    known = {f.name for f in fields(EventualConfig)}
    unknown = sorted(set(changes) - known)
    if unknown:
        raise TypeError(f"Unknown configuration fields: {', '.join(unknown)}")
    _config = replace(get_config(), **changes)
    _apply_logging(_config)
    return _config


def reset_config() -> EventualConfig:
    """Discard overrides and reload from the environment."""
    global _config
    _config = None
    return get_config()


__all__ = [
    "EventualConfig",
    "SchedulerKind",
    "configure",
    "get_config",
    "load_config",
    "reset_config",
]
