"""Turn schedulers.

Every piece of eventual that needs "run this later" goes through a
``Scheduler``. Two implementations ship:

- ManualScheduler: pumped explicitly, with a virtual clock. Deterministic,
  which makes it the scheduler for tests and simulations.
- AsyncioScheduler: hands turns to an asyncio event loop.
"""

from __future__ import annotations

import asyncio
import heapq
from abc import ABC, abstractmethod
from collections import deque
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from itertools import count
from typing import Any

from loguru import logger

from eventual.config import get_config
from eventual.errors import SchedulerError

Callback = Callable[[], Any]

log = logger.bind(component="eventual.scheduler")


class Scheduler(ABC):
    """Runs callbacks in future turns, in the order they were enqueued."""

    @abstractmethod
    def enqueue(self, callback: Callback) -> None:
        """Run ``callback`` in a future turn, after the current call stack unwinds."""

    @abstractmethod
    def call_later(self, delay: float, callback: Callback) -> None:
        """Run ``callback`` once ``delay`` seconds have elapsed."""


@dataclass(order=True)
class _Timer:
    due: float
    seq: int
    callback: Callback = field(compare=False)


class ManualScheduler(Scheduler):
    """Scheduler driven by explicit calls, with simulated time.

    Nothing runs until one of the pump methods is called. Timers never fire
    on their own: ``advance`` and ``run_all`` move the virtual clock.
    """

    def __init__(self, start_time: float = 0.0) -> None:
        self._turns: deque[Callback] = deque()
        self._timers: list[_Timer] = []
        self._seq = count()
        self._now = start_time

    @property
    def now(self) -> float:
        return self._now

    @property
    def pending(self) -> int:
        """Number of turns waiting to run."""
        return len(self._turns)

    @property
    def pending_timers(self) -> int:
        return len(self._timers)

    def enqueue(self, callback: Callback) -> None:
        self._turns.append(callback)

    def call_later(self, delay: float, callback: Callback) -> None:
        due = self._now + max(0.0, delay)
        heapq.heappush(self._timers, _Timer(due, next(self._seq), callback))

    def run_once(self) -> bool:
        """Run the oldest queued turn. Returns ``False`` when none was queued."""
        if not self._turns:
            return False
        callback = self._turns.popleft()
        callback()
        return True

    def run_until_idle(self, max_turns: int | None = None) -> int:
        """Run turns until the queue is empty, including turns they enqueue.

        Returns the number of turns run. Raises ``SchedulerError`` once more
        than ``max_turns`` turns ran, which usually means an unbounded loop.
        """
        budget = get_config().max_turns if max_turns is None else max_turns
        ran = 0
        while self._turns:
            if ran >= budget:
                log.error("turn budget of {} exhausted, {} turns still queued", budget, len(self._turns))
                raise SchedulerError(f"exceeded {budget} turns without going idle")
            self.run_once()
            ran += 1
        return ran

    def advance(self, seconds: float) -> int:
        """Move the clock forward, firing due timers in time order."""
        if seconds < 0:
            raise ValueError("cannot move the clock backwards")
        target = self._now + seconds
        ran = self.run_until_idle()
        while self._timers and self._timers[0].due <= target:
            ran += self._fire_next_timer()
        self._now = target
        return ran

    def run_next_timer(self) -> bool:
        """Jump the clock to the earliest timer, fire it and drain the turns it queued.

        Returns ``False`` when no timer was pending.
        """
        if not self._timers:
            return False
        self._fire_next_timer()
        return True

    def run_all(self) -> int:
        """Run turns and timers until nothing is left, jumping the clock as needed."""
        ran = self.run_until_idle()
        while self._timers:
            ran += self._fire_next_timer()
        return ran

    def _fire_next_timer(self) -> int:
        timer = heapq.heappop(self._timers)
        self._now = max(self._now, timer.due)
        timer.callback()
        return 1 + self.run_until_idle()


class AsyncioScheduler(Scheduler):
    """Scheduler backed by an asyncio event loop.

    Without an explicit loop it binds to the loop running at construction, or
    else to the first loop it is used from. Turns may be enqueued from any
    thread once it is bound; they always run on the loop's thread.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        if loop is None:
            loop = _running_loop()
        self._loop = loop

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = _running_loop()
        if self._loop is None:
            raise SchedulerError("AsyncioScheduler has no loop and no event loop is running")
        return self._loop

    def enqueue(self, callback: Callback) -> None:
        loop = self.loop
        if _running_loop() is loop:
            loop.call_soon(callback)
        else:
            loop.call_soon_threadsafe(callback)

    def call_later(self, delay: float, callback: Callback) -> None:
        loop = self.loop
        delay = max(0.0, delay)
        if _running_loop() is loop:
            loop.call_later(delay, callback)
        else:
            loop.call_soon_threadsafe(loop.call_later, delay, callback)


def _running_loop() -> asyncio.AbstractEventLoop | None:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None


_current: Scheduler | None = None


def _default_scheduler() -> Scheduler:
    match get_config().scheduler:
        case "asyncio":
            return AsyncioScheduler()
        case _:
            return ManualScheduler()


def get_scheduler() -> Scheduler:
    """Return the installed scheduler, creating the configured default if needed."""
    global _current
    if _current is None:
        _current = _default_scheduler()
    return _current


def set_scheduler(scheduler: Scheduler | None) -> Scheduler | None:
    """Install ``scheduler`` and return the previous one.

    ``None`` uninstalls it; the next lookup creates a fresh default.
    """
    global _current
    if scheduler is not None and not isinstance(scheduler, Scheduler):
        raise TypeError(f"scheduler must be Scheduler, got {type(scheduler).__name__}")
    previous = _current
    _current = scheduler
    return previous


@contextmanager
def using_scheduler(scheduler: Scheduler) -> Iterator[Scheduler]:
    previous = set_scheduler(scheduler)
    try:
        yield scheduler
    finally:
        set_scheduler(previous)


__all__ = [
    "AsyncioScheduler",
    "Callback",
    "ManualScheduler",
    "Scheduler",
    "get_scheduler",
    "set_scheduler",
    "using_scheduler",
]
