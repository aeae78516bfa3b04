"""Folding sequences of values and promises."""

from __future__ import annotations

import inspect
from collections.abc import Callable, Iterable
from functools import partial
from typing import Any

from eventual.core import Promise, ref, reject, when

Reducer = Callable[[Any, Any], Any]


class _Missing:
    def __repr__(self) -> str:
        return "<missing>"


_MISSING: Any = _Missing()


def _empty_error(name: str) -> TypeError:
    return TypeError(f"{name}() of empty sequence with no basis")


def _combine(accumulated: Any, element: Any, reducer: Reducer) -> Promise[Any]:
    return when(accumulated, lambda acc: when(element, lambda item: reducer(acc, item)))


def _fold(values: list[Any], reducer: Reducer, basis: Any, name: str) -> Promise[Any]:
    if basis is _MISSING:
        if not values:
            return reject(_empty_error(name))
        basis, values = values[0], values[1:]
    accumulated = ref(basis)
    for element in values:
        accumulated = _combine(accumulated, element, reducer)
    return accumulated


def reduce_left(
    items: Iterable[Any] | Promise[Iterable[Any]],
    reducer: Reducer,
    basis: Any = _MISSING,
) -> Promise[Any]:
    """Fold ``items`` strictly left to right.

    ``reducer(accumulator, element)`` runs only after both the previous
    accumulation and the element have settled, and may return a promise. The
    first rejection stops the fold. Without ``basis`` the first element is used.
    """
    return when(items, lambda values: _fold(list(values), reducer, basis, "reduce_left"))


def reduce_right(
    items: Iterable[Any] | Promise[Iterable[Any]],
    reducer: Reducer,
    basis: Any = _MISSING,
) -> Promise[Any]:
    """Like :func:`reduce_left`, starting from the last element."""
    return when(
        items, lambda values: _fold(list(values)[::-1], reducer, basis, "reduce_right")
    )


def _tree(values: list[Any], reducer: Reducer, basis: Any) -> Promise[Any]:
    level = values if basis is _MISSING else [basis, *values]
    if not level:
        return reject(_empty_error("reduce"))
    while len(level) > 1:
        paired = [
            _combine(level[index], level[index + 1], reducer)
            for index in range(0, len(level) - 1, 2)
        ]
        if len(level) % 2:
            paired.append(level[-1])
        level = paired
    return ref(level[0])


def reduce(
    items: Iterable[Any] | Promise[Iterable[Any]],
    reducer: Reducer,
    basis: Any = _MISSING,
) -> Promise[Any]:
    """Fold ``items`` without a fixed traversal order.

    Neighbouring results are combined pairwise, ``(0, 1), (2, 3), ...``, each
    pair as soon as both sides settle, then the combined results are paired
    again. ``reducer`` must be associative. ``basis``, when given, is the
    leftmost operand.
    """
    return when(items, lambda values: _tree(list(values), reducer, basis))


def _spreads(fn: Callable[..., Any]) -> bool:
    try:
        parameters = inspect.signature(fn).parameters.values()
    except (TypeError, ValueError):
        return False
    positional = 0
    for parameter in parameters:
        if parameter.kind is inspect.Parameter.VAR_POSITIONAL:
            return True
        if parameter.kind in (
            inspect.Parameter.POSITIONAL_ONLY,
            inspect.Parameter.POSITIONAL_OR_KEYWORD,
        ):
            positional += 1
    return positional > 1


def _call_step(fn: Callable[..., Any], value: Any) -> Any:
    if isinstance(value, (list, tuple)) and _spreads(fn):
        return fn(*value)
    return fn(value)


def step(*fns: Callable[..., Any]) -> Promise[Any]:
    """Run ``fns`` one after another, feeding each the previous result.

    The first function is called without arguments. Before each later call
    the previous result is resolved deeply; a list or tuple result is spread
    over the parameters of a function that takes more than one.
    """
    from eventual.structure import deep

    if not fns:
        return ref(None)
    first, *rest = fns
    result = when(None, lambda _: first())
    for fn in rest:
        result = when(deep(result), partial(_call_step, fn))
    return result


__all__ = [
    "Reducer",
    "reduce",
    "reduce_left",
    "reduce_right",
    "step",
]
