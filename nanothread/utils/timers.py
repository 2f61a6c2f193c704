"""Cancellable delayed tasks on an injectable clock.

Cooldown expiry and interjection debounce are both "run this later unless
something cancels it first". ``DelayedTask`` models that directly, and the
``Clock`` it runs on can be swapped for ``ManualClock`` so tests advance
simulated time instead of sleeping.
"""

import asyncio
import heapq
import inspect
import itertools
import time
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Optional, Union

from loguru import logger

Callback = Callable[[], Union[None, Awaitable[Any]]]


class TimerHandle(ABC):
    """Handle returned by ``Clock.call_later``."""

    @abstractmethod
    def cancel(self) -> None:
        pass


class Clock(ABC):
    """Source of time and scheduled callbacks."""

    @abstractmethod
    def now(self) -> float:
        """Current time in seconds."""
        pass

    @abstractmethod
    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        """Run ``callback`` once after ``delay`` seconds."""
        pass


class _AsyncioHandle(TimerHandle):
    def __init__(self, handle: asyncio.TimerHandle):
        self._handle = handle

    def cancel(self) -> None:
        self._handle.cancel()


class AsyncioClock(Clock):
    """Clock backed by the running asyncio event loop."""

    def now(self) -> float:
        return time.monotonic()

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        loop = asyncio.get_running_loop()
        return _AsyncioHandle(loop.call_later(delay, callback))


class _ManualHandle(TimerHandle):
    def __init__(self):
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualClock(Clock):
    """
    Clock that only moves when told to.

    Example:
        >>> clock = ManualClock()
        >>> fired = []
        >>> _ = clock.call_later(5, lambda: fired.append(True))
        >>> clock.advance(5)
        >>> fired
        [True]
    """

    def __init__(self, start: float = 0.0):
        self._now = start
        self._queue: list[tuple[float, int, Callable[[], None], _ManualHandle]] = []
        self._seq = itertools.count()

    def now(self) -> float:
        return self._now

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        handle = _ManualHandle()
        heapq.heappush(self._queue, (self._now + delay, next(self._seq), callback, handle))
        return handle

    def advance(self, seconds: float) -> None:
        """Move time forward, firing every callback that comes due, in order."""
        target = self._now + seconds
        while self._queue and self._queue[0][0] <= target:
            due, _, callback, handle = heapq.heappop(self._queue)
            self._now = due
            if not handle.cancelled:
                callback()
        self._now = target

    @property
    def scheduled(self) -> int:
        """Number of callbacks still waiting (cancelled ones excluded)."""
        return sum(1 for *_, handle in self._queue if not handle.cancelled)


class DelayedTask:
    """
    A callback that runs once after a delay unless cancelled.

    The callback may be a plain function or return an awaitable; awaitables
    are scheduled on the running event loop and kept in ``last_run``.
    """

    def __init__(
        self,
        delay: float,
        callback: Callback,
        clock: Optional[Clock] = None,
        name: str = "",
    ):
        self.delay = delay
        self.callback = callback
        self.clock = clock or AsyncioClock()
        self.name = name
        self._handle: Optional[TimerHandle] = None
        self.last_run: Optional[asyncio.Future] = None

    @property
    def pending(self) -> bool:
        """True while the task is scheduled and has neither fired nor been cancelled."""
        return self._handle is not None

    def start(self) -> bool:
        """Schedule the task. Returns False if it was already pending."""
        if self._handle is not None:
            return False
        self._handle = self.clock.call_later(self.delay, self._fire)
        return True

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def restart(self) -> None:
        """Cancel any pending run and schedule a fresh one."""
        self.cancel()
        self.start()

    def _fire(self) -> None:
        self._handle = None
        try:
            result = self.callback()
        except Exception as e:
            logger.error(f"Delayed task {self.name or self.callback!r} failed: {e}")
            return
        if inspect.isawaitable(result):
            self.last_run = asyncio.ensure_future(result)
