"""
FSP Simulator Scheduler

One controller loop fires timed actions from a priority queue of
`(fire_at, seq, task)` entries. Drivers re-arm themselves by scheduling
their next firing; each fired action runs as its own asyncio task, so a
long-running voting round never delays the next one.

Time comes from an injectable Clock: SystemClock for live runs,
VirtualClock for tests, which only moves when `advance` is called.
"""

import asyncio
import heapq
import itertools
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Optional, Set, Tuple

from .constants import TIMER_SLACK
from .exceptions import WaitTimeoutError
from .logger import get_logger

logger = get_logger(__name__)

Action = Callable[[], Awaitable[None]]


# =============================================================================
# CLOCKS
# =============================================================================

class Clock(ABC):
    """Source of the current time and of deadline sleeps."""

    @abstractmethod
    def now(self) -> float:
        """Current unix timestamp in seconds."""

    @abstractmethod
    async def sleep_until(self, deadline: float) -> None:
        """Suspend the caller until `now() >= deadline`."""

    async def sleep(self, seconds: float) -> None:
        await self.sleep_until(self.now() + seconds)


class SystemClock(Clock):
    """Wall clock."""

    def now(self) -> float:
        return time.time()

    async def sleep_until(self, deadline: float) -> None:
        # asyncio may wake marginally early; never return before the deadline
        remaining = deadline - time.time()
        while remaining > 0:
            await asyncio.sleep(remaining + TIMER_SLACK)
            remaining = deadline - time.time()


class VirtualClock(Clock):
    """
    Manually advanced clock.

    Sleepers are parked on futures and released in deadline order by
    `advance`/`advance_to`. Between releases the event loop is given a
    number of turns so woken tasks can run up to their next sleep.
    """

    SETTLE_TURNS = 50

    def __init__(self, start: float = 0.0):
        self._now = float(start)
        self._sleepers: List[Tuple[float, int, asyncio.Future]] = []
        self._seq = itertools.count()

    def now(self) -> float:
        return self._now

    async def sleep_until(self, deadline: float) -> None:
        if deadline <= self._now:
            await asyncio.sleep(0)
            return
        future = asyncio.get_running_loop().create_future()
        heapq.heappush(self._sleepers, (deadline, next(self._seq), future))
        await future

    @property
    def pending_sleepers(self) -> int:
        return sum(1 for _, _, future in self._sleepers if not future.done())

    async def settle(self) -> None:
        """Let ready tasks run without moving time."""
        for _ in range(self.SETTLE_TURNS):
            await asyncio.sleep(0)

    async def advance(self, seconds: float) -> None:
        await self.advance_to(self._now + seconds)

    async def advance_to(self, target: float) -> None:
        """Move time to `target`, waking every sleeper whose deadline passes."""
        await self.settle()
        while self._sleepers and self._sleepers[0][0] <= target:
            deadline, _, future = heapq.heappop(self._sleepers)
            if future.done():
                continue
            self._now = max(self._now, deadline)
            future.set_result(None)
            await self.settle()
        self._now = max(self._now, target)
        await self.settle()


async def poll_until(
    clock: Clock,
    predicate: Callable[[], bool],
    interval: float,
    timeout: Optional[float],
    description: str,
) -> None:
    """
    Re-check `predicate` every `interval` seconds until it holds.

    Raises:
        WaitTimeoutError: `timeout` seconds passed without the predicate holding
    """
    deadline = None if timeout is None else clock.now() + timeout
    while not predicate():
        now = clock.now()
        if deadline is not None and now >= deadline:
            raise WaitTimeoutError(description, timeout)
        wake_at = now + interval
        if deadline is not None:
            wake_at = min(wake_at, deadline)
        await clock.sleep_until(wake_at)


# =============================================================================
# SCHEDULER
# =============================================================================

@dataclass(order=True)
class ScheduledTask:
    fire_at: float
    seq: int
    name: str = field(compare=False)
    action: Action = field(compare=False, repr=False)


class Scheduler:
    """
    Fire-once timers over a shared Clock.

    An action that raises is treated as a halt of whatever it drives: the
    error is logged at CRITICAL and kept in `failures`; other timers keep
    firing.
    """

    def __init__(self, clock: Clock):
        self.clock = clock
        self.failures: List[Tuple[str, BaseException]] = []

        self._queue: List[ScheduledTask] = []
        self._seq = itertools.count()
        self._wakeup = asyncio.Event()
        self._active: Set[asyncio.Task] = set()
        self._controller: Optional[asyncio.Task] = None
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def pending(self) -> List[ScheduledTask]:
        return sorted(self._queue)

    @property
    def active_count(self) -> int:
        return len(self._active)

    def schedule_at(self, fire_at: float, name: str, action: Action) -> ScheduledTask:
        task = ScheduledTask(fire_at=fire_at, seq=next(self._seq), name=name, action=action)
        heapq.heappush(self._queue, task)
        self._wakeup.set()
        logger.debug(f"Scheduled {name} at {fire_at:.3f}")
        return task

    def schedule_after(self, delay: float, name: str, action: Action) -> ScheduledTask:
        return self.schedule_at(self.clock.now() + delay, name, action)

    async def start(self):
        if self._running:
            logger.warning("Scheduler already running")
            return
        self._running = True
        self._controller = asyncio.create_task(self._run())

    async def stop(self):
        self._running = False

        if self._controller:
            self._controller.cancel()
            try:
                await self._controller
            except asyncio.CancelledError:
                pass
            self._controller = None

        tasks = list(self._active)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._queue.clear()

    async def _run(self):
        while self._running:
            if not self._queue:
                self._wakeup.clear()
                await self._wakeup.wait()
                continue

            head = self._queue[0]
            if head.fire_at > self.clock.now():
                self._wakeup.clear()
                await self._wait_for(head.fire_at)
                continue

            heapq.heappop(self._queue)
            self._launch(head)

    async def _wait_for(self, fire_at: float):
        """Sleep until `fire_at`, or until a new entry is scheduled."""
        sleeper = asyncio.create_task(self.clock.sleep_until(fire_at))
        waker = asyncio.create_task(self._wakeup.wait())
        try:
            await asyncio.wait({sleeper, waker}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (sleeper, waker):
                if not task.done():
                    task.cancel()

    def _launch(self, entry: ScheduledTask):
        task = asyncio.create_task(self._execute(entry), name=entry.name)
        self._active.add(task)
        task.add_done_callback(self._active.discard)

    async def _execute(self, entry: ScheduledTask):
        try:
            await entry.action()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.critical(f"{entry.name} HALTED: {type(e).__name__}: {e}")
            self.failures.append((entry.name, e))
