"""Driving promises to completion from a host.

``run`` pumps a ManualScheduler (synchronous code, tests, simulations);
``wait`` suspends an asyncio coroutine until a promise settles.
"""

from __future__ import annotations

import asyncio
from typing import Any

from eventual.core import _mark_handled, ref, when
from eventual.errors import SchedulerError
from eventual.outcome import Outcome, as_exception
from eventual.scheduler import ManualScheduler, Scheduler, get_scheduler, using_scheduler


def run(value: Any, scheduler: Scheduler | None = None) -> Outcome[Any]:
    """Pump ``scheduler`` until ``value`` settles or no work is left.

    Timers fire in order of their due time, moving the virtual clock forward
    only while the value is still pending. Returns the value's outcome, which
    is ``PENDING`` if the work ran out first. A rejected outcome returned here
    no longer counts as unhandled.
    """
    sched = get_scheduler() if scheduler is None else scheduler
    if not isinstance(sched, ManualScheduler):
        raise SchedulerError(
            f"run() needs a ManualScheduler, got {type(sched).__name__}; await the promise instead"
        )
    promise = ref(value)
    with using_scheduler(sched):
        sched.run_until_idle()
        while promise.inspect().is_pending() and sched.run_next_timer():
            pass
    outcome = promise.inspect()
    if outcome.is_rejected():
        _mark_handled(promise)
    return outcome


async def wait(value: Any) -> Any:
    """Return the value ``value`` settles with, or raise its rejection reason.

    The installed scheduler must run its turns on the current event loop,
    i.e. an ``AsyncioScheduler``.
    """
    if isinstance(get_scheduler(), ManualScheduler):
        raise SchedulerError("wait() needs a scheduler driven by the running event loop")
    loop = asyncio.get_running_loop()
    future: asyncio.Future[Any] = loop.create_future()

    def _settle(result: Any) -> None:
        if not future.done():
            future.set_result(result)

    def _fail(reason: Any) -> None:
        if not future.done():
            future.set_exception(as_exception(reason))

    when(value, _settle, _fail)
    return await future


__all__ = ["run", "wait"]
