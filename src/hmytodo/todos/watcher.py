"""Deadline watcher: decides when the engine sweeps overdue todos.

Two modes:
- "timer": keeps a min-heap of ACTIVE deadlines and sleeps until the nearest
  one, waking early whenever the heap is rebuilt.
- "poll": sweeps every poll_interval seconds regardless of deadlines.
"""

import asyncio
import heapq
import logging
from collections.abc import Awaitable, Callable, Iterable
from datetime import datetime, timedelta
from typing import Literal

from hmytodo.clock import Clock, utc_now
from hmytodo.todos.types import Todo

logger = logging.getLogger(__name__)

SweepMode = Literal["timer", "poll"]
SweepCallback = Callable[[], Awaitable[int]]

# Upper bound on a single timer sleep so wall-clock jumps are noticed.
MAX_TIMER_DELAY = 3600.0


class DeadlineHeap:
    """Min-heap of (deadline, todo_id) for ACTIVE todos."""

    def __init__(self) -> None:
        self._heap: list[tuple[datetime, str]] = []

    def __len__(self) -> int:
        return len(self._heap)

    def rebuild(self, todos: Iterable[Todo]) -> None:
        self._heap = [(t.deadline, t.id) for t in todos if t.is_active]
        heapq.heapify(self._heap)

    def push(self, todo: Todo) -> None:
        if todo.is_active:
            heapq.heappush(self._heap, (todo.deadline, todo.id))

    def peek(self) -> datetime | None:
        return self._heap[0][0] if self._heap else None

    def pop_due(self, now: datetime) -> list[str]:
        due: list[str] = []
        while self._heap and self._heap[0][0] <= now:
            due.append(heapq.heappop(self._heap)[1])
        return due


class DeadlineWatcher:
    """Runs the sweep callback when deadlines pass.

    Example:
        watcher = DeadlineWatcher(engine.sweep, mode="timer")
        watcher.reschedule(todos)
        await watcher.start()
    """

    def __init__(
        self,
        sweep: SweepCallback,
        *,
        mode: SweepMode = "timer",
        poll_interval: float = 60.0,
        clock: Clock = utc_now,
    ):
        self._sweep = sweep
        self._mode = mode
        self._poll_interval = poll_interval
        self._clock = clock
        self._heap = DeadlineHeap()
        self._changed = asyncio.Event()
        self._running = False
        self._task: asyncio.Task | None = None
        self._backoff_until: datetime | None = None
        self._sweep_count = 0

    @property
    def mode(self) -> SweepMode:
        return self._mode

    @property
    def running(self) -> bool:
        return self._running

    @property
    def sweep_count(self) -> int:
        return self._sweep_count

    def next_deadline(self) -> datetime | None:
        return self._heap.peek()

    def reschedule(self, todos: Iterable[Todo]) -> None:
        """Replace the tracked deadlines, waking the timer to re-arm."""
        self._heap.rebuild(todos)
        self._changed.set()

    def track(self, todo: Todo) -> None:
        self._heap.push(todo)
        self._changed.set()

    def poke(self) -> None:
        """Wake the loop to re-check deadlines against the clock now."""
        self._changed.set()

    async def start(self) -> None:
        if self._running:
            return
        self._running = True
        logger.debug(
            "deadline_watcher_started",
            extra={"watcher.mode": self._mode, "watcher.interval": self._poll_interval},
        )
        loop = self._timer_loop if self._mode == "timer" else self._poll_loop
        self._task = asyncio.create_task(loop())

    async def stop(self) -> None:
        if not self._running:
            return
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.debug("deadline_watcher_stopped")

    async def _poll_loop(self) -> None:
        while self._running:
            await self._run_sweep()
            await asyncio.sleep(self._poll_interval)

    async def _timer_loop(self) -> None:
        while self._running:
            delay = self._next_delay()
            self._changed.clear()
            try:
                await asyncio.wait_for(self._changed.wait(), timeout=delay)
            except TimeoutError:
                pass

            now = self._clock()
            if self._backoff_until is not None and now < self._backoff_until:
                continue
            deadline = self._heap.peek()
            if deadline is not None and deadline <= now:
                if await self._run_sweep():
                    self._heap.pop_due(now)

    def _next_delay(self) -> float | None:
        now = self._clock()
        if self._backoff_until is not None and now < self._backoff_until:
            return (self._backoff_until - now).total_seconds()
        deadline = self._heap.peek()
        if deadline is None:
            return None
        return min(max((deadline - now).total_seconds(), 0.0), MAX_TIMER_DELAY)

    async def _run_sweep(self) -> bool:
        self._sweep_count += 1
        try:
            missed = await self._sweep()
        except Exception as e:
            logger.error("deadline_sweep_error", extra={"error.message": str(e)})
            self._backoff_until = self._clock() + timedelta(seconds=self._poll_interval)
            return False
        self._backoff_until = None
        if missed:
            logger.debug("deadline_sweep_completed", extra={"todo.missed": missed})
        return True
