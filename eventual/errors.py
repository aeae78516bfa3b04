from __future__ import annotations

from typing import Any


class EventualError(Exception):
    """Base class for errors raised by eventual itself."""


class RejectionError(EventualError):
    """Raised in place of a rejection reason that is not an exception.

    The core unwraps it when it catches one at a callback boundary, so the
    reason travels on unchanged.
    """

    def __init__(self, reason: Any) -> None:
        self.reason = reason
        super().__init__(f"Promise rejected: {reason!r}")


class UnsupportedOperatorError(EventualError):
    """Rejection reason for a message the target promise does not answer."""

    def __init__(self, operator: str) -> None:
        self.operator = operator
        super().__init__(f"Promise does not support operation: {operator}")


class QueueClosedError(EventualError):
    """Default close reason of a Queue, also raised by ``put`` after close."""


class SchedulerError(EventualError):
    """Raised when a scheduler is misused or exceeds its turn budget."""


class ConfigError(EventualError, ValueError):
    """Raised for an invalid configuration value."""

    def __init__(self, key: str, value: Any, expected: str) -> None:
        self.key = key
        self.value = value
        super().__init__(f"Invalid value for {key}: {value!r} (expected {expected})")


__all__ = [
    "ConfigError",
    "EventualError",
    "QueueClosedError",
    "RejectionError",
    "SchedulerError",
    "UnsupportedOperatorError",
]
