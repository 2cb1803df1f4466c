"""Cooperative periodic scheduling.

Two interchangeable schedulers:
- ManualScheduler: virtual time, advanced explicitly (tests, headless runs)
- AsyncioScheduler: wall-clock time on an asyncio event loop

Callbacks always run one at a time and to completion.
"""

from __future__ import annotations

import asyncio
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, List

from loguru import logger

_EPS = 1e-9
# how often run_for re-collects handles of tasks registered mid-run
_WATCH_INTERVAL = 0.05


@dataclass
class PeriodicTask:
    name: str
    period: float
    callback: Callable[[], None]
    start: float = 0.0
    runs: int = 0
    seq: int = 0
    active: bool = True

    @property
    def next_due(self) -> float:
        # computed from the start time, so float periods do not drift
        return self.start + (self.runs + 1) * self.period


class Scheduler(ABC):
    """Registers periodic callbacks and reports the current time."""

    def __init__(self) -> None:
        self._tasks: List[PeriodicTask] = []

    @abstractmethod
    def now(self) -> float:
        """Current time in seconds (monotonic)."""

    def every(self, period: float, callback: Callable[[], None], name: str = "") -> PeriodicTask:
        if period <= 0:
            raise ValueError(f"period must be positive, got {period}")
        task = PeriodicTask(
            name=name or getattr(callback, "__name__", "task"),
            period=float(period),
            callback=callback,
            start=self.now(),
            seq=len(self._tasks),
        )
        self._tasks.append(task)
        self._on_register(task)
        return task

    def cancel(self, task: PeriodicTask) -> None:
        task.active = False

    def cancel_all(self) -> None:
        for task in self._tasks:
            task.active = False

    @property
    def tasks(self) -> list[PeriodicTask]:
        return [t for t in self._tasks if t.active]

    def _on_register(self, task: PeriodicTask) -> None:
        pass


class ManualScheduler(Scheduler):
    """Virtual-time scheduler; nothing happens until `advance`/`step`."""

    def __init__(self, start: float = 0.0) -> None:
        self._now = float(start)
        super().__init__()

    def now(self) -> float:
        return self._now

    def _next(self, until: float) -> PeriodicTask | None:
        due = [t for t in self._tasks if t.active and t.next_due <= until + _EPS]
        if not due:
            return None
        return min(due, key=lambda t: (t.next_due, t.seq))

    def _run(self, task: PeriodicTask) -> None:
        self._now = max(self._now, task.next_due)
        task.runs += 1
        task.callback()

    def step(self) -> PeriodicTask | None:
        """Run the single next due task, jumping time forward to it."""
        active = [t for t in self._tasks if t.active]
        if not active:
            return None
        task = min(active, key=lambda t: (t.next_due, t.seq))
        self._run(task)
        return task

    def advance(self, seconds: float) -> int:
        """Run every task due within the next `seconds`. Returns the run count."""
        if seconds < 0:
            raise ValueError("cannot move time backwards")
        target = self._now + float(seconds)
        count = 0
        while True:
            task = self._next(target)
            if task is None:
                break
            self._run(task)
            count += 1
        self._now = target
        return count


class AsyncioScheduler(Scheduler):
    """Runs each periodic task as an asyncio task sleeping between calls."""

    def __init__(self) -> None:
        super().__init__()
        self._handles: list[asyncio.Task] = []
        self._running = False

    def now(self) -> float:
        return time.monotonic()

    def _on_register(self, task: PeriodicTask) -> None:
        if self._running:
            self._handles.append(asyncio.ensure_future(self._loop(task)))

    async def _loop(self, task: PeriodicTask) -> None:
        # re-anchor so the first call lands one period after the loop starts
        task.start = self.now() - task.runs * task.period
        while task.active:
            # sleep to the absolute due time; callback run time does not accumulate
            await asyncio.sleep(max(0.0, task.next_due - self.now()))
            if not task.active:
                break
            task.runs += 1
            task.callback()

    def _raise_failed(self) -> None:
        for handle in self._handles:
            if not handle.done() or handle.cancelled():
                continue
            exc = handle.exception()
            if exc is not None:
                logger.opt(exception=exc).error("scheduler task failed; stopping")
                raise exc

    async def run_for(self, seconds: float) -> None:
        """Run all active tasks until `seconds` elapse or one of them fails.

        Tasks registered while running are picked up and watched too.
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + float(seconds)
        self._running = True
        self._handles = [asyncio.ensure_future(self._loop(t)) for t in self._tasks if t.active]
        try:
            while True:
                self._raise_failed()
                remaining = deadline - loop.time()
                if remaining <= 0:
                    break
                pending = {h for h in self._handles if not h.done()}
                wait = min(remaining, _WATCH_INTERVAL)
                if pending:
                    await asyncio.wait(pending, timeout=wait, return_when=asyncio.FIRST_EXCEPTION)
                else:
                    await asyncio.sleep(wait)
        finally:
            self._running = False
            for handle in self._handles:
                handle.cancel()
            await asyncio.gather(*self._handles, return_exceptions=True)
            self._handles = []
