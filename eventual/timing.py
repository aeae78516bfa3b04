"""Time-bounded composition.

There is no cancellation: when a timeout wins the race, the work it was
racing keeps running and its eventual result is dropped.
"""

from __future__ import annotations

from functools import partial
from typing import Any

from eventual.core import Promise, defer, reject, when
from eventual.scheduler import get_scheduler


def delay(seconds: float, value: Any = None) -> Promise[Any]:
    """Promise that fulfils with ``value`` after ``seconds``."""
    if seconds < 0:
        raise ValueError("delay must be >= 0")
    deferred = defer()
    get_scheduler().call_later(seconds, partial(deferred.resolve, value))
    return deferred.promise


def race(*values: Any) -> Promise[Any]:
    """Settle like whichever of ``values`` settles first.

    With no values the result never settles.
    """
    deferred = defer()
    for value in values:
        when(value, deferred.resolve, deferred.reject)
    return deferred.promise


def timeout(value: Any, seconds: float, reason: Any = None) -> Promise[Any]:
    """Reject with ``reason`` (``TimeoutError`` by default) unless ``value`` settles in time."""
    if reason is None:
        reason = TimeoutError(f"timed out after {seconds}s")
    expiry = when(delay(seconds), lambda _: reject(reason))
    return race(value, expiry)


__all__ = ["delay", "race", "timeout"]
