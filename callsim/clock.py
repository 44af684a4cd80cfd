"""Cancellable delayed callbacks on a single logical timeline.

Every timer in a call (line delivery, caption clearing, the connect delay,
the duration tick, the dismiss delay) goes through a ``Clock``:

  - ``LoopClock`` schedules on the running asyncio event loop.
  - ``ManualClock`` keeps simulated time that only moves when a test
    calls ``advance()``, so timing behaviour can be asserted exactly.

Handles returned by ``call_later`` follow the ``asyncio.TimerHandle``
shape: ``cancel()`` and ``cancelled()``.
"""

from __future__ import annotations

import asyncio
import heapq
import itertools
from abc import ABC, abstractmethod
from typing import Callable, Protocol


class TimerHandle(Protocol):
    def cancel(self) -> None: ...

    def cancelled(self) -> bool: ...


class Clock(ABC):
    """Source of time and delayed callbacks for one call."""

    @abstractmethod
    def now(self) -> float:
        """Current time in seconds on this clock's timeline."""

    @abstractmethod
    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        """Run ``callback`` once after ``delay`` seconds.

        The returned handle can be cancelled; a cancelled callback never runs.
        """


class LoopClock(Clock):
    """Clock backed by an asyncio event loop."""

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop or asyncio.get_running_loop()

    def now(self) -> float:
        return self._loop.time()

    def call_later(self, delay: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        return self._loop.call_later(max(0.0, delay), callback)


class ScheduledCall:
    """A pending callback on a ``ManualClock``."""

    __slots__ = ("when", "callback", "_cancelled")

    def __init__(self, when: float, callback: Callable[[], None]) -> None:
        self.when = when
        self.callback = callback
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    def cancelled(self) -> bool:
        return self._cancelled

    def __repr__(self) -> str:
        state = "cancelled" if self._cancelled else "pending"
        return f"<ScheduledCall when={self.when:.3f} {state}>"


class ManualClock(Clock):
    """Simulated clock for tests.

    Time starts at ``start`` and moves only through ``advance()``.  Due
    callbacks run in deadline order, ties in the order they were
    scheduled.  A callback that schedules another callback inside the
    current window sees it run during the same ``advance()`` call.
    """

    def __init__(self, start: float = 0.0) -> None:
        self._now = start
        self._queue: list[tuple[float, int, ScheduledCall]] = []
        self._seq = itertools.count()

    def now(self) -> float:
        return self._now

    def call_later(self, delay: float, callback: Callable[[], None]) -> ScheduledCall:
        call = ScheduledCall(self._now + max(0.0, delay), callback)
        heapq.heappush(self._queue, (call.when, next(self._seq), call))
        return call

    def advance(self, seconds: float) -> int:
        """Move time forward, running every callback that falls due.

        Returns the number of callbacks that ran.
        """
        if seconds < 0:
            raise ValueError("cannot move a clock backwards")

        target = self._now + seconds
        ran = 0
        while self._queue and self._queue[0][0] <= target:
            when, _, call = heapq.heappop(self._queue)
            if call.cancelled():
                continue
            self._now = when
            call.callback()
            ran += 1
        self._now = target
        return ran

    @property
    def pending(self) -> int:
        """Number of scheduled callbacks that have not been cancelled."""
        return sum(1 for _, _, call in self._queue if not call.cancelled())

    def next_deadline(self) -> float | None:
        """Time of the earliest live callback, or None when nothing is pending."""
        live = [when for when, _, call in self._queue if not call.cancelled()]
        return min(live) if live else None
