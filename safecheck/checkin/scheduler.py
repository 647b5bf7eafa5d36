# =============================================================================
# DISCLAIMER: This software is NOT a medical device and is NOT intended for
# medical monitoring, diagnosis, or treatment. This is a proof of concept for
# educational purposes only. Do not rely on this system for health decisions.
# =============================================================================
"""Cooperative timers for the check-in session.

The state machine never sleeps on its own; every delay and every
sampling tick goes through a Scheduler so timers can be cancelled as a
unit and time can be driven by hand in tests.

Callbacks may be plain functions or return awaitables. AsyncioScheduler
spawns awaitables as tasks and does not wait for them, so a slow tick
never delays the next timer firing; ManualScheduler awaits them in
order, which keeps tests deterministic.
"""

import asyncio
import inspect
import logging
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Set

logger = logging.getLogger(__name__)

Callback = Callable[[], Any]


class TimerHandle:
    """Cancellable handle for a one-shot or repeating timer."""

    def __init__(self, repeating: bool = False):
        self.repeating = repeating
        self._cancelled = False
        self._on_cancel: Optional[Callable[[], None]] = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        """Stop the timer. Safe to call more than once."""
        if self._cancelled:
            return
        self._cancelled = True
        if self._on_cancel is not None:
            self._on_cancel()
            self._on_cancel = None


class Scheduler:
    """Timer interface used by the check-in components."""

    def call_later(self, delay: float, callback: Callback) -> TimerHandle:
        raise NotImplementedError

    def call_repeating(
        self,
        interval: float,
        callback: Callback,
        initial_delay: Optional[float] = None,
    ) -> TimerHandle:
        raise NotImplementedError

    @property
    def pending_count(self) -> int:
        """Number of live (not fired, not cancelled) timers."""
        raise NotImplementedError


class AsyncioScheduler(Scheduler):
    """Scheduler backed by the running asyncio event loop."""

    def __init__(self):
        self._handles: Set[TimerHandle] = set()
        self._tasks: Set[asyncio.Task] = set()

    @property
    def pending_count(self) -> int:
        return len(self._handles)

    def _run_callback(self, callback: Callback) -> None:
        try:
            result = callback()
        except Exception as e:
            logger.error(f"Timer callback error: {e}")
            return

        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            self._tasks.add(task)
            task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Timer task error: {task.exception()}")

    def call_later(self, delay: float, callback: Callback) -> TimerHandle:
        loop = asyncio.get_running_loop()
        handle = TimerHandle()

        def fire():
            self._handles.discard(handle)
            if not handle.cancelled:
                handle._on_cancel = None
                self._run_callback(callback)

        loop_handle = loop.call_later(delay, fire)

        def on_cancel():
            loop_handle.cancel()
            self._handles.discard(handle)

        handle._on_cancel = on_cancel
        self._handles.add(handle)
        return handle

    def call_repeating(
        self,
        interval: float,
        callback: Callback,
        initial_delay: Optional[float] = None,
    ) -> TimerHandle:
        loop = asyncio.get_running_loop()
        handle = TimerHandle(repeating=True)
        current: List[asyncio.TimerHandle] = []

        def fire():
            if handle.cancelled:
                return
            current[0] = loop.call_later(interval, fire)
            self._run_callback(callback)

        current.append(loop.call_later(
            interval if initial_delay is None else initial_delay, fire
        ))

        def on_cancel():
            current[0].cancel()
            self._handles.discard(handle)

        handle._on_cancel = on_cancel
        self._handles.add(handle)
        return handle

    async def drain(self) -> None:
        """Wait for callback tasks that are still running."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


@dataclass
class _ManualTimer:
    due: float
    seq: int
    handle: TimerHandle
    callback: Callback
    interval: Optional[float] = None


class ManualScheduler(Scheduler):
    """Scheduler driven by an explicit virtual clock.

    Usage:
        scheduler = ManualScheduler()
        scheduler.call_later(0.5, release)
        await scheduler.advance(1.0)  # release has run
    """

    def __init__(self, start: float = 0.0):
        self._now = start
        self._seq = 0
        self._timers: List[_ManualTimer] = []
        self.fired = 0

    @property
    def now(self) -> float:
        """Current virtual time in seconds."""
        return self._now

    @property
    def pending_count(self) -> int:
        return len(self._timers)

    def _add(self, delay: float, callback: Callback, interval: Optional[float]) -> TimerHandle:
        handle = TimerHandle(repeating=interval is not None)
        self._seq += 1
        timer = _ManualTimer(
            due=self._now + delay,
            seq=self._seq,
            handle=handle,
            callback=callback,
            interval=interval,
        )
        self._timers.append(timer)

        def on_cancel():
            if timer in self._timers:
                self._timers.remove(timer)

        handle._on_cancel = on_cancel
        return handle

    def call_later(self, delay: float, callback: Callback) -> TimerHandle:
        return self._add(delay, callback, None)

    def call_repeating(
        self,
        interval: float,
        callback: Callback,
        initial_delay: Optional[float] = None,
    ) -> TimerHandle:
        delay = interval if initial_delay is None else initial_delay
        return self._add(delay, callback, interval)

    async def advance(self, seconds: float) -> None:
        """Move the clock forward, firing every timer that comes due.

        Timers fire in due-time order; awaitable results are awaited
        before the next timer fires.
        """
        target = self._now + seconds
        while True:
            due = [t for t in self._timers if t.due <= target]
            if not due:
                break
            timer = min(due, key=lambda t: (t.due, t.seq))
            self._now = max(self._now, timer.due)

            if timer.interval is not None:
                timer.due += timer.interval
            else:
                self._timers.remove(timer)
                timer.handle._on_cancel = None

            self.fired += 1
            result = timer.callback()
            if inspect.isawaitable(result):
                await result
        self._now = target
