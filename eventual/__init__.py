"""
eventual: promises for single-threaded, turn-based programs.

A promise stands for a value that will be available, or fail, later.
Observers attach with ``when``; their callbacks always run in a later turn of
the installed scheduler, never inside the call that registered or settled
them.

Quick start::

    from eventual import defer, run, when

    deferred = defer()
    answer = when(deferred.promise, lambda x: x + 1)
    deferred.resolve(41)
    run(answer)  # Fulfilled(value=42)
"""

from loguru import logger

from eventual.config import (
    EventualConfig,
    configure,
    get_config,
    load_config,
    reset_config,
)
from eventual.core import (
    Deferred,
    Operator,
    Promise,
    Resolver,
    defer,
    delete,
    error,
    fcall,
    get,
    invoke,
    is_promise,
    is_rejected,
    is_resolved,
    make_promise,
    post,
    put,
    ref,
    reject,
    reset_unhandled_rejections,
    send,
    unhandled_rejections,
    when,
)
from eventual.errors import (
    ConfigError,
    EventualError,
    QueueClosedError,
    RejectionError,
    SchedulerError,
    UnsupportedOperatorError,
)
from eventual.outcome import PENDING, Fulfilled, Outcome, Pending, Rejected
from eventual.queue import Queue
from eventual.reduce import reduce, reduce_left, reduce_right, step
from eventual.run import run, wait
from eventual.scheduler import (
    AsyncioScheduler,
    ManualScheduler,
    Scheduler,
    get_scheduler,
    set_scheduler,
    using_scheduler,
)
from eventual.structure import deep, shallow
from eventual.timing import delay, race, timeout

# Silent unless the application opts in (EVENTUAL_DEBUG=1 or configure(debug=True)).
logger.disable("eventual")

__version__ = "0.1.0"

__all__ = [
    "PENDING",
    "AsyncioScheduler",
    "ConfigError",
    "Deferred",
    "EventualConfig",
    "EventualError",
    "Fulfilled",
    "ManualScheduler",
    "Operator",
    "Outcome",
    "Pending",
    "Promise",
    "Queue",
    "QueueClosedError",
    "Rejected",
    "RejectionError",
    "Resolver",
    "Scheduler",
    "SchedulerError",
    "UnsupportedOperatorError",
    "configure",
    "deep",
    "defer",
    "delay",
    "delete",
    "error",
    "fcall",
    "get",
    "get_config",
    "get_scheduler",
    "invoke",
    "is_promise",
    "is_rejected",
    "is_resolved",
    "load_config",
    "make_promise",
    "post",
    "put",
    "race",
    "reduce",
    "reduce_left",
    "reduce_right",
    "ref",
    "reject",
    "reset_config",
    "reset_unhandled_rejections",
    "run",
    "send",
    "set_scheduler",
    "shallow",
    "step",
    "timeout",
    "unhandled_rejections",
    "using_scheduler",
    "wait",
]
