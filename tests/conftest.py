"""
Pytest configuration for eventual tests.

Every test runs against a fresh ManualScheduler, a configuration loaded from
a clean environment, and an empty unhandled-rejection registry.
"""

from collections.abc import Iterator
from typing import Any

import pytest

from eventual import (
    ManualScheduler,
    Outcome,
    reset_config,
    reset_unhandled_rejections,
    using_scheduler,
)

_ENV_KEYS = (
    "EVENTUAL_DEBUG",
    "EVENTUAL_TRACK_UNHANDLED",
    "EVENTUAL_MAX_TURNS",
    "EVENTUAL_SCHEDULER",
)


@pytest.fixture(autouse=True)
def scheduler(monkeypatch: pytest.MonkeyPatch) -> Iterator[ManualScheduler]:
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    reset_config()
    reset_unhandled_rejections()
    manual = ManualScheduler()
    with using_scheduler(manual):
        yield manual
    reset_unhandled_rejections()
    reset_config()


@pytest.fixture
def settle(scheduler: ManualScheduler):
    """Drain the scheduler and report the outcome of a promise."""

    def _settle(promise: Any) -> Outcome[Any]:
        scheduler.run_until_idle()
        return promise.inspect()

    return _settle
