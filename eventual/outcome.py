"""
Settlement states reported by ``Promise.inspect()``.

A promise is always in exactly one of three states. Forwarding is not a state
of its own: a promise that was resolved with another promise reports whatever
that promise reports.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Final, Generic, NoReturn, TypeVar, cast

from eventual.errors import RejectionError

# =========================================================
# Type Vars
# =========================================================
T = TypeVar("T")
T_co = TypeVar("T_co", covariant=True)
U = TypeVar("U")


class Outcome(Generic[T_co]):
    """Sum type for the current state of a promise."""

    __slots__ = ()

    def is_pending(self) -> bool:
        """Return ``True`` while the promise has not settled."""

        return isinstance(self, Pending)

    def is_fulfilled(self) -> bool:
        """Return ``True`` when the promise settled with a value."""

        return isinstance(self, Fulfilled)

    def is_rejected(self) -> bool:
        """Return ``True`` when the promise settled with a reason."""

        return isinstance(self, Rejected)

    def unwrap(self) -> T_co:
        """Return the value, or raise the rejection reason.

        A reason that is not an exception is raised as ``RejectionError``.
        Unwrapping a pending outcome is a programming error.
        """

        if isinstance(self, Fulfilled):
            return self.value
        if isinstance(self, Rejected):
            raise as_exception(self.reason)
        raise RuntimeError("Called unwrap on a pending outcome")

    def unwrap_or(self, default: U) -> T_co | U:
        """Return the value, or ``default`` if pending or rejected."""

        if isinstance(self, Fulfilled):
            return self.value
        return default

    def map(self, f: Callable[[T_co], U]) -> Outcome[U]:
        """Apply ``f`` to a fulfilled value; other states pass through."""

        if isinstance(self, Fulfilled):
            return Fulfilled(f(self.value))
        return cast(Outcome[U], self)

    def __bool__(self) -> bool:
        """Truthiness matches :meth:`is_fulfilled`."""

        return self.is_fulfilled()


@dataclass(frozen=True)
class Fulfilled(Outcome[T], Generic[T]):
    """Settled with a value."""

    value: T


@dataclass(frozen=True)
class Rejected(Outcome[NoReturn]):
    """Settled with a reason. The reason need not be an exception."""

    reason: Any


class Pending(Outcome[NoReturn]):
    """Singleton for a promise that has not settled yet."""

    __slots__ = ()
    _instance: Pending | None = None

    def __new__(cls) -> Pending:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "Pending()"


PENDING: Final[Outcome[NoReturn]] = Pending()


def as_exception(reason: Any) -> Exception:
    """Return ``reason`` if it can be raised, else wrap it in ``RejectionError``."""

    if isinstance(reason, Exception):
        return reason
    return RejectionError(reason)


__all__ = [
    "PENDING",
    "Fulfilled",
    "Outcome",
    "Pending",
    "Rejected",
    "as_exception",
]
