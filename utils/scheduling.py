import asyncio
import heapq
import itertools
import time
from typing import Any, Awaitable, Callable, List, Optional


class AsyncioScheduler:
    """Timers backed by the running asyncio event loop."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        return self._loop or asyncio.get_running_loop()

    def now(self) -> float:
        return time.monotonic()

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> asyncio.TimerHandle:
        return self.loop.call_later(max(0.0, float(delay)), callback, *args)

    def spawn(self, awaitable: Awaitable[Any]) -> "asyncio.Future[Any]":
        return asyncio.ensure_future(awaitable)


class ManualTimer:
    def __init__(self, when: float, seq: int, callback: Callable[..., Any], args: tuple):
        self.when = when
        self.seq = seq
        self.callback = callback
        self.args = args
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True

    def __lt__(self, other: "ManualTimer") -> bool:
        return (self.when, self.seq) < (other.when, other.seq)


class ManualScheduler:
    """Logical clock for tests: timers only fire when ``advance`` moves time past them."""

    def __init__(self, start: float = 0.0):
        self._now = float(start)
        self._timers: List[ManualTimer] = []
        self._seq = itertools.count()

    def now(self) -> float:
        return self._now

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> ManualTimer:
        timer = ManualTimer(self._now + max(0.0, float(delay)), next(self._seq), callback, args)
        heapq.heappush(self._timers, timer)
        return timer

    def spawn(self, awaitable: Awaitable[Any]) -> "asyncio.Future[Any]":
        return asyncio.ensure_future(awaitable)

    @property
    def pending(self) -> int:
        return sum(1 for t in self._timers if not t.cancelled)

    def advance(self, seconds: float) -> int:
        """Move the clock forward and run due timers in order; returns how many fired."""

        target = self._now + max(0.0, float(seconds))
        fired = 0
        while self._timers and self._timers[0].when <= target:
            timer = heapq.heappop(self._timers)
            if timer.cancelled:
                continue
            self._now = timer.when
            timer.callback(*timer.args)
            fired += 1
        self._now = target
        return fired
