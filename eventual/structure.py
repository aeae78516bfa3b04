"""Resolving promises held inside lists, tuples and mappings.

Containers are ``list``, ``tuple`` (named tuples included) and any
``Mapping``; mappings come back as plain ``dict``. Members are visited in
index or key order and the first rejection in that order wins. Cyclic
containers are not supported.
"""

from __future__ import annotations

from collections.abc import Mapping
from functools import partial
from typing import Any

from eventual.core import Promise, when
from eventual.reduce import reduce_left


def _is_container(value: Any) -> bool:
    return isinstance(value, (list, tuple, Mapping))


def _append(collected: list[Any], member: Any) -> list[Any]:
    collected.append(member)
    return collected


def _rebuild(container: Any, keys: list[Any], members: list[Any]) -> Any:
    if isinstance(container, Mapping):
        return dict(zip(keys, members))
    if isinstance(container, tuple):
        if hasattr(container, "_fields"):
            return type(container)(*members)
        return tuple(members)
    return members


def _resolve_members(container: Any, recurse: bool) -> Any:
    if not _is_container(container):
        return container
    if isinstance(container, Mapping):
        keys = list(container.keys())
        items = [container[key] for key in keys]
    else:
        keys = []
        items = list(container)
    if recurse:
        items = [
            deep(item) if isinstance(item, Promise) or _is_container(item) else item
            for item in items
        ]
    resolved = reduce_left(items, _append, [])
    return when(resolved, partial(_rebuild, container, keys))


def shallow(value: Any) -> Promise[Any]:
    """Promise for ``value`` with its direct member promises replaced by their values."""
    return when(value, partial(_resolve_members, recurse=False))


def deep(value: Any) -> Promise[Any]:
    """Like :func:`shallow`, applied recursively to nested containers."""
    return when(value, partial(_resolve_members, recurse=True))


__all__ = ["deep", "shallow"]
