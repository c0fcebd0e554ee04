"""
Module: scheduler.py
Description: Timer abstraction used by the batch queue and retry ledger.

Components never touch the event loop directly; they ask a Scheduler for
the current time and for one-shot timers, which keeps them testable with
a manual clock.
"""

import asyncio
import inspect
import time
from typing import Any, Callable, Optional, Protocol, Set

from telemetry_relay.utils.logger import get_logger

logger = get_logger(__name__)


class TimerHandle(Protocol):
    def cancel(self) -> None:
        ...


class Scheduler(Protocol):
    """Clock plus one-shot timers. Times and delays are in milliseconds."""

    def now(self) -> float:
        ...

    def call_later(self, delay_ms: float, callback: Callable[[], Any]) -> TimerHandle:
        ...


class AsyncioScheduler:
    """
    Scheduler backed by the running asyncio event loop.

    Callbacks may return an awaitable; it is run as a task that the
    scheduler keeps a reference to until it finishes.
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop
        self._tasks: Set[asyncio.Future] = set()

    def now(self) -> float:
        return time.monotonic() * 1000.0

    def call_later(self, delay_ms: float, callback: Callable[[], Any]) -> asyncio.TimerHandle:
        loop = self._loop or asyncio.get_running_loop()
        return loop.call_later(max(delay_ms, 0.0) / 1000.0, self._run, callback)

    async def drain(self) -> None:
        """Wait for callbacks that are still running."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _run(self, callback: Callable[[], Any]) -> None:
        try:
            result = callback()
        except Exception as e:
            logger.error("Timer callback failed", error=str(e), error_type=type(e).__name__)
            return

        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            self._tasks.add(task)
            task.add_done_callback(self._on_done)

    def _on_done(self, task: asyncio.Future) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            error = task.exception()
            logger.error("Timer task failed", error=str(error), error_type=type(error).__name__)
