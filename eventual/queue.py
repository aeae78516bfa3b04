"""Unbounded FIFO queue handing out promises for its values."""

from __future__ import annotations

from collections import deque
from typing import Any, Generic, TypeVar

from loguru import logger

from eventual.core import Deferred, Promise, defer, ref, reject
from eventual.errors import QueueClosedError

T = TypeVar("T")

log = logger.bind(component="eventual.queue")


class Queue(Generic[T]):
    """Queue decoupling producers from consumers.

    ``get`` never blocks: it returns a promise for the next value. Values put
    before ``close`` are still handed out after it; only gets that find the
    buffer empty once the queue is closed are rejected.

    Example::

        queue = Queue()
        first = queue.get()
        queue.put("a")
        queue.close()
        # first fulfils with "a"; queue.closed fulfils once the buffer is empty
    """

    def __init__(self) -> None:
        self._buffer: deque[Any] = deque()
        self._getters: deque[Deferred[T]] = deque()
        self._is_closed = False
        self._close_reason: Any = None
        self._drained: Deferred[None] = defer()

    @property
    def closed(self) -> Promise[None]:
        """Fulfils once the queue is closed and every buffered value was taken."""
        return self._drained.promise

    @property
    def is_closed(self) -> bool:
        return self._is_closed

    def __len__(self) -> int:
        return len(self._buffer)

    def put(self, value: T | Promise[T]) -> None:
        if self._is_closed:
            raise QueueClosedError("cannot put into a closed queue")
        if self._getters:
            self._getters.popleft().resolve(value)
        else:
            self._buffer.append(value)

    def get(self) -> Promise[T]:
        if self._buffer:
            value = self._buffer.popleft()
            if self._is_closed and not self._buffer:
                self._drained.resolve(None)
            return ref(value)
        if self._is_closed:
            return reject(self._close_reason)
        deferred: Deferred[T] = defer()
        self._getters.append(deferred)
        return deferred.promise

    def close(self, reason: Any = None) -> Promise[None]:
        """Stop accepting values. Outstanding and future empty-buffer gets reject with ``reason``."""
        if self._is_closed:
            return self.closed
        if reason is None:
            reason = QueueClosedError("cannot get from a closed queue")
        self._is_closed = True
        self._close_reason = reason
        log.debug(
            "queue closed with {} buffered, {} waiting: {!r}",
            len(self._buffer),
            len(self._getters),
            reason,
        )
        while self._getters:
            self._getters.popleft().reject(reason)
        if not self._buffer:
            self._drained.resolve(None)
        return self.closed


__all__ = ["Queue"]
