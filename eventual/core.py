"""Promises, resolvers and message dispatch.

A promise answers named messages ("operators"). Observation is the ``when``
operator; ``get``, ``put``, ``del``, ``post`` and ``apply`` address the value
a promise stands for. Every message is delivered in a later turn of the
installed scheduler, never inside the call that sent it.

Example::

    deferred = defer()
    doubled = when(deferred.promise, lambda x: x * 2)
    deferred.resolve(21)
    # once the scheduler has run: doubled.inspect() == Fulfilled(42)
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Mapping, MutableMapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from functools import partial
from typing import Any, Generic, NoReturn, TypeVar

from frozendict import frozendict
from loguru import logger

from eventual.config import get_config
from eventual.errors import RejectionError, UnsupportedOperatorError
from eventual.outcome import PENDING, Fulfilled, Outcome, Rejected, as_exception
from eventual.scheduler import get_scheduler

T = TypeVar("T")

log = logger.bind(component="eventual.core")


class Operator(str, Enum):
    """Built-in messages understood by promises for ordinary values."""

    WHEN = "when"
    GET = "get"
    PUT = "put"
    DELETE = "del"
    POST = "post"
    APPLY = "apply"


Handler = Callable[..., Any]
Fallback = Callable[..., Any]
Inspector = Callable[[], Outcome[Any]]
Resolve = Callable[[Any], None]


def _operator_name(operator: Operator | str) -> str:
    # Operator members hash by member name, so descriptor keys must be plain str.
    if isinstance(operator, Operator):
        return operator.value
    if not isinstance(operator, str):
        raise TypeError(f"operator must be str, got {type(operator).__name__}")
    return operator


def _reason_of(exc: Exception) -> Any:
    if isinstance(exc, RejectionError):
        return exc.reason
    return exc


def _unsupported(operator: str, *args: Any) -> Promise[NoReturn]:
    return reject(UnsupportedOperatorError(operator))


def _pending() -> Outcome[Any]:
    return PENDING


class Promise(Generic[T]):
    """Read-only handle to a value, or failure, that becomes available later.

    Promises are built by :func:`defer`, :func:`ref`, :func:`reject` and
    :func:`make_promise`; the constructor is the extension point behind
    ``make_promise`` and takes the same arguments.
    """

    __slots__ = ("_descriptor", "_fallback", "_inspect")

    def __init__(
        self,
        descriptor: Mapping[Operator | str, Handler],
        fallback: Fallback | None = None,
        inspect: Inspector | None = None,
    ) -> None:
        if not isinstance(descriptor, Mapping):
            raise TypeError(f"descriptor must be a mapping, got {type(descriptor).__name__}")
        for operator, handler in descriptor.items():
            if not callable(handler):
                raise TypeError(f"handler for {operator!r} is not callable")
        self._descriptor: frozendict[str, Handler] = frozendict(
            {_operator_name(operator): handler for operator, handler in descriptor.items()}
        )
        self._fallback = fallback if fallback is not None else _unsupported
        self._inspect = inspect if inspect is not None else _pending

    def inspect(self) -> Outcome[T]:
        """Report the current state without waiting."""
        outcome = self._inspect()
        if not isinstance(outcome, Outcome):
            raise TypeError(f"inspect must return an Outcome, got {type(outcome).__name__}")
        return outcome

    def then(
        self,
        on_fulfilled: Callable[[T], Any] | None = None,
        on_rejected: Callable[[Any], Any] | None = None,
    ) -> Promise[Any]:
        return when(self, on_fulfilled, on_rejected)

    def catch(self, on_rejected: Callable[[Any], Any]) -> Promise[Any]:
        return when(self, None, on_rejected)

    def send(self, operator: Operator | str, *args: Any) -> Promise[Any]:
        return send(self, operator, *args)

    def __await__(self):
        from eventual.run import wait

        return wait(self).__await__()

    def __repr__(self) -> str:
        return f"<Promise {self.inspect()!r}>"

    def _dispatch(self, operator: str, args: tuple[Any, ...], resolve: Resolve) -> None:
        handler = self._descriptor.get(operator)
        try:
            if handler is not None:
                result = handler(*args)
            else:
                result = self._fallback(operator, *args)
        except Exception as exc:
            result = reject(_reason_of(exc))
        resolve(result)


Message = tuple[str, tuple[Any, ...], Resolve]


class _Forwarding:
    """Settlement state of a deferred. Only its Resolver can write it."""

    __slots__ = ("_lock", "messages", "target")

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.messages: list[Message] = []
        self.target: Promise[Any] | None = None

    def hold(self, message: Message) -> Promise[Any] | None:
        """Queue ``message`` and return None, or return the target if already set."""
        with self._lock:
            if self.target is None:
                self.messages.append(message)
                return None
            return self.target

    def settle(self, target: Promise[Any]) -> list[Message] | None:
        """Set the target once; returns the queued messages, or None if already set."""
        with self._lock:
            if self.target is not None:
                return None
            self.target = target
            messages, self.messages = self.messages, []
            return messages


class _DeferredPromise(Promise[T]):
    """Promise side of a Deferred: queues messages until it has a target.

    It reads its forwarding state through two functions and holds no
    reference that would let it settle itself.
    """

    __slots__ = ("_hold", "_target_of")

    def __init__(
        self,
        target_of: Callable[[], Promise[Any] | None],
        hold: Callable[[Message], Promise[Any] | None],
    ) -> None:
        super().__init__({})
        self._target_of = target_of
        self._hold = hold

    def _end(self) -> Promise[Any]:
        # Walk forwarding links iteratively so long chains cannot exhaust the stack.
        promise: Promise[Any] = self
        while isinstance(promise, _DeferredPromise):
            target = promise._target_of()
            if target is None:
                break
            promise = target
        return promise

    def inspect(self) -> Outcome[T]:
        end = self._end()
        if isinstance(end, _DeferredPromise):
            return PENDING
        return end.inspect()

    def _receive(self, message: Message) -> Promise[Any] | None:
        """Queue ``message`` at the end of the forwarding chain.

        Returns the settled promise the chain ends at instead, if there is one.
        """
        promise: Promise[Any] = self
        while isinstance(promise, _DeferredPromise):
            target = promise._hold(message)
            if target is None:
                return None
            promise = target
        return promise

    def _dispatch(self, operator: str, args: tuple[Any, ...], resolve: Resolve) -> None:
        end = self._receive((operator, args, resolve))
        if end is not None:
            end._dispatch(operator, args, resolve)


def _deliver(target: Promise[Any], operator: str, args: tuple[Any, ...], resolve: Resolve) -> None:
    # Pending deferreds queue the message now, so delivery follows settlement order.
    if isinstance(target, _DeferredPromise):
        end = target._receive((operator, args, resolve))
        if end is None:
            return
        target = end
    get_scheduler().enqueue(partial(target._dispatch, operator, args, resolve))


class Resolver(Generic[T]):
    """Write-once capability to settle one promise. The first call wins.

    Safe to call from any thread; observers still run in scheduler turns.
    """

    __slots__ = ("_promise", "_state")

    def __init__(self, promise: _DeferredPromise[T], state: _Forwarding) -> None:
        self._promise = promise
        self._state = state

    @property
    def done(self) -> bool:
        """Whether ``resolve`` or ``reject`` has already been called."""
        return self._state.target is not None

    def resolve(self, value: Any = None) -> None:
        if self.done:
            self._ignored(value)
            return
        target = ref(value)
        if isinstance(target, _DeferredPromise) and target._end() is self._promise:
            target = reject(TypeError("a promise cannot be resolved with itself"))
        messages = self._state.settle(target)
        if messages is None:
            self._ignored(value)
            return
        for operator, args, resolve in messages:
            _deliver(target, operator, args, resolve)

    def reject(self, reason: Any) -> None:
        if self.done:
            self._ignored(reason)
            return
        rejection = reject(reason)
        self.resolve(rejection)
        if self._state.target is not rejection:
            # Another thread settled first.
            _untrack(rejection)

    def _ignored(self, value: Any) -> None:
        if get_config().debug:
            log.warning("ignoring repeated settlement of {!r} with {!r}", self._promise, value)


@dataclass(frozen=True)
class Deferred(Generic[T]):
    """A promise paired with the resolver that settles it.

    Hand ``promise`` to observers and ``resolver`` to the single producer.
    """

    promise: Promise[T]
    resolver: Resolver[T] = field(repr=False)

    def resolve(self, value: Any = None) -> None:
        self.resolver.resolve(value)

    def reject(self, reason: Any) -> None:
        self.resolver.reject(reason)


def defer() -> Deferred[Any]:
    state = _Forwarding()

    def _target_of() -> Promise[Any] | None:
        return state.target

    def _hold(message: Message) -> Promise[Any] | None:
        return state.hold(message)

    promise: _DeferredPromise[Any] = _DeferredPromise(_target_of, _hold)
    return Deferred(promise, Resolver(promise, state))


# =========================================================
# Canonical operators on plain values
# =========================================================
def _get_member(target: Any, name: Any) -> Any:
    if isinstance(target, Mapping):
        return target[name]
    return getattr(target, name)


def _put_member(target: Any, name: Any, value: Any) -> None:
    if isinstance(target, MutableMapping):
        target[name] = value
    else:
        setattr(target, name, value)


def _delete_member(target: Any, name: Any) -> None:
    if isinstance(target, MutableMapping):
        del target[name]
    else:
        delattr(target, name)


def _post(target: Any, name: Any, *args: Any) -> Any:
    method = target if name is None else getattr(target, name)
    return method(*args)


def _apply(target: Any, *args: Any) -> Any:
    return target(*args)


def ref(value: T | Promise[T]) -> Promise[T]:
    """Return ``value`` if it is a promise, else a promise fulfilled with it."""
    if isinstance(value, Promise):
        return value

    outcome = Fulfilled(value)

    def _when(on_rejected: Callable[[Any], Any] | None = None) -> T:
        return value

    return Promise(
        {
            Operator.WHEN: _when,
            Operator.GET: partial(_get_member, value),
            Operator.PUT: partial(_put_member, value),
            Operator.DELETE: partial(_delete_member, value),
            Operator.POST: partial(_post, value),
            Operator.APPLY: partial(_apply, value),
        },
        inspect=lambda: outcome,
    )


# =========================================================
# Rejections and unhandled rejection tracking
# =========================================================
_unhandled: dict[int, tuple[Promise[Any], Any]] = {}


def _track(rejection: Promise[Any], reason: Any) -> None:
    if not get_config().track_unhandled_rejections:
        return
    # The entry keeps the promise alive, so its id cannot be reused meanwhile.
    _unhandled[id(rejection)] = (rejection, reason)
    log.debug("tracking unhandled rejection {!r}", reason)


def _untrack(rejection: Promise[Any]) -> None:
    _unhandled.pop(id(rejection), None)


def _mark_handled(value: Any) -> None:
    # A rejection a host collected counts as observed.
    if isinstance(value, _DeferredPromise):
        value = value._end()
    _untrack(value)


def unhandled_rejections() -> list[Any]:
    """Reasons of rejected promises nothing has observed yet, oldest first.

    Observing with ``when`` or collecting the outcome with ``run`` counts as
    handling; ``inspect`` and ``is_rejected`` do not.
    """
    return [reason for _, reason in _unhandled.values()]


def reset_unhandled_rejections() -> None:
    _unhandled.clear()


def reject(reason: Any) -> Promise[NoReturn]:
    """Return a promise rejected with ``reason``.

    It answers ``when`` by calling the rejection callback, and every other
    operator with itself, so the reason keeps propagating.
    """
    outcome = Rejected(reason)

    def _when(on_rejected: Callable[[Any], Any] | None = None) -> Any:
        _untrack(rejection)
        if on_rejected is None:
            return rejection
        return on_rejected(reason)

    def _fallback(operator: str, *args: Any) -> Promise[NoReturn]:
        return rejection

    rejection: Promise[NoReturn] = Promise({Operator.WHEN: _when}, _fallback, lambda: outcome)
    _track(rejection, reason)
    return rejection


def error(reason: Any) -> NoReturn:
    """Raise ``reason`` from inside a callback to reject its result promise."""
    raise as_exception(reason)


# =========================================================
# Introspection
# =========================================================
def is_promise(value: Any) -> bool:
    return isinstance(value, Promise)


def is_resolved(value: Any) -> bool:
    """True for fulfilled promises and for any value that is not a promise."""
    if not isinstance(value, Promise):
        return True
    return value.inspect().is_fulfilled()


def is_rejected(value: Any) -> bool:
    return isinstance(value, Promise) and value.inspect().is_rejected()


# =========================================================
# Dispatch
# =========================================================
def make_promise(
    descriptor: Mapping[Operator | str, Handler],
    fallback: Fallback | None = None,
    inspect: Inspector | None = None,
) -> Promise[Any]:
    """Build a promise answering the operators in ``descriptor``.

    Args:
        descriptor: Operator name to handler. A handler receives the message
            arguments and returns the answer, or a promise for it. The
            built-in operators are called as ``when(on_rejected=None)``,
            ``get(name)``, ``put(name, value)``, ``del(name)``,
            ``post(name, *args)`` and ``apply(*args)``. A ``when`` handler
            returns the fulfilled value, or reports a failure by returning
            ``on_rejected(reason)``; the fulfilment callback is applied by
            :func:`when` itself, so ``send(p, "when", on_rejected)`` is the
            raw form of observation.
        fallback: Called as ``fallback(operator, *args)`` for operators missing
            from ``descriptor``. Defaults to a rejection with
            ``UnsupportedOperatorError``.
        inspect: Returns the promise's current ``Outcome``. Defaults to
            reporting ``PENDING``.
    """
    return Promise(descriptor, fallback, inspect)


def send(value: Any, operator: Operator | str, *args: Any) -> Promise[Any]:
    """Deliver ``operator(*args)`` to ``value`` in a later turn."""
    name = _operator_name(operator)
    target = ref(value)
    deferred = defer()
    _deliver(target, name, args, deferred.resolve)
    return deferred.promise


def when(
    value: Any,
    on_fulfilled: Callable[[Any], Any] | None = None,
    on_rejected: Callable[[Any], Any] | None = None,
) -> Promise[Any]:
    """Observe ``value`` and return a promise for what the callbacks return.

    At most one callback runs, at most once, and always in a later turn.
    Without ``on_rejected`` a rejection is passed on unchanged; an exception
    raised by either callback rejects the returned promise.
    """
    deferred = defer()
    done = False

    def _fulfilled(result: Any) -> Any:
        if on_fulfilled is None:
            return result
        try:
            return on_fulfilled(result)
        except Exception as exc:
            return reject(_reason_of(exc))

    def _rejected(reason: Any) -> Any:
        if on_rejected is None:
            return reject(reason)
        try:
            return on_rejected(reason)
        except Exception as exc:
            return reject(_reason_of(exc))

    def _on_value(result: Any) -> None:
        nonlocal done
        if done:
            return
        done = True
        if isinstance(result, Promise):
            # A custom "when" handler answered with another promise.
            deferred.resolve(when(result, on_fulfilled, on_rejected))
        else:
            deferred.resolve(_fulfilled(result))

    def _on_reason(reason: Any) -> None:
        nonlocal done
        if done:
            return
        done = True
        deferred.resolve(_rejected(reason))

    target = ref(value)
    _deliver(target, Operator.WHEN.value, (_on_reason,), _on_value)
    return deferred.promise


def get(value: Any, name: Any) -> Promise[Any]:
    return send(value, Operator.GET, name)


def put(value: Any, name: Any, member: Any) -> Promise[None]:
    return send(value, Operator.PUT, name, member)


def delete(value: Any, name: Any) -> Promise[None]:
    return send(value, Operator.DELETE, name)


def post(value: Any, name: Any, args: Sequence[Any] = ()) -> Promise[Any]:
    """Call method ``name`` of the eventual value with ``args``.

    ``name=None`` calls the value itself.
    """
    return send(value, Operator.POST, name, *args)


def invoke(value: Any, name: Any, *args: Any) -> Promise[Any]:
    return send(value, Operator.POST, name, *args)


def fcall(value: Any, *args: Any) -> Promise[Any]:
    return send(value, Operator.APPLY, *args)


__all__ = [
    "Deferred",
    "Fallback",
    "Handler",
    "Inspector",
    "Operator",
    "Promise",
    "Resolver",
    "defer",
    "delete",
    "error",
    "fcall",
    "get",
    "invoke",
    "is_promise",
    "is_rejected",
    "is_resolved",
    "make_promise",
    "post",
    "put",
    "ref",
    "reject",
    "reset_unhandled_rejections",
    "send",
    "unhandled_rejections",
    "when",
]
