"""Fixed-interval background loops with per-tick error isolation.

Each loop runs as its own asyncio task. Ticks are scheduled on a fixed
cadence from the loop's start time; a tick that overruns its slot skips the
slots it missed rather than firing back-to-back. All loops in a group share
one stop event: setting it stops future ticks, while a tick already in flight
is allowed to finish.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Awaitable, Callable, Dict, List, Optional

from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="poller")

TickCallback = Callable[[], Awaitable[object]]


@dataclass
class TaskStats:
    """Counters for one periodic loop."""
    ticks: int = 0
    failures: int = 0
    last_success: Optional[datetime] = None
    last_error: Optional[datetime] = None
    last_error_message: Optional[str] = None

    def as_dict(self) -> Dict[str, object]:
        return {
            "ticks": self.ticks,
            "failures": self.failures,
            "lastSuccess": self.last_success.isoformat() if self.last_success else None,
            "lastError": self.last_error.isoformat() if self.last_error else None,
            "lastErrorMessage": self.last_error_message,
        }


class PeriodicTask:
    """Call `callback` every `interval` seconds until `stop_event` is set."""

    def __init__(
        self,
        name: str,
        interval: float,
        callback: TickCallback,
        stop_event: asyncio.Event,
    ) -> None:
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")
        self.name = name
        self.interval = interval
        self.callback = callback
        self.stats = TaskStats()
        self._stop = stop_event
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Schedule the loop; the first tick fires immediately."""
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name=f"poller:{self.name}")
        logger.info(f"Started '{self.name}' loop every {self.interval:g}s")

    async def _tick(self) -> None:
        self.stats.ticks += 1
        try:
            await self.callback()
        except Exception as exc:
            self.stats.failures += 1
            self.stats.last_error = datetime.now(timezone.utc)
            self.stats.last_error_message = str(exc)
            logger.exception(f"'{self.name}' tick {self.stats.ticks} failed: {exc}")
        else:
            self.stats.last_success = datetime.now(timezone.utc)

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        next_run = loop.time()
        while not self._stop.is_set():
            await self._tick()
            next_run += self.interval
            now = loop.time()
            if next_run <= now:
                skipped = int((now - next_run) // self.interval) + 1
                logger.warning(f"'{self.name}' tick overran; skipping {skipped} slot(s)")
                next_run += skipped * self.interval
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=next_run - now)
            except asyncio.TimeoutError:
                pass
        logger.info(f"Stopped '{self.name}' loop after {self.stats.ticks} ticks")

    async def wait(self) -> None:
        """Wait for the loop to exit after the stop event is set."""
        if self._task is not None:
            await self._task


class PollerGroup:
    """A set of periodic loops started and stopped together."""

    def __init__(self) -> None:
        self.stop_event = asyncio.Event()
        self.tasks: List[PeriodicTask] = []

    def add(self, name: str, interval: float, callback: TickCallback) -> PeriodicTask:
        """Register a loop sharing this group's stop event."""
        task = PeriodicTask(name, interval, callback, self.stop_event)
        self.tasks.append(task)
        return task

    @property
    def started(self) -> bool:
        return any(t.running for t in self.tasks)

    def start(self) -> None:
        """Start every loop that is not already running."""
        if self.stop_event.is_set():
            logger.warning("Poller group already stopped; not starting")
            return
        for task in self.tasks:
            task.start()

    async def stop(self) -> None:
        """Stop scheduling ticks and wait for in-flight ticks to finish."""
        self.stop_event.set()
        await asyncio.gather(*(t.wait() for t in self.tasks))

    def status(self) -> Dict[str, Dict[str, object]]:
        return {t.name: {"running": t.running, "interval": t.interval, **t.stats.as_dict()} for t in self.tasks}
