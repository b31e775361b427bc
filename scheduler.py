#!/usr/bin/env python3
"""
Polling scheduler for a feed sync engine.

Lifecycle: idle -> initial-sync -> steady-polling. The initial cycle runs as
soon as the scheduler is started; whatever its outcome the sink is marked
ready exactly once, so a feed that is permanently unreachable never leaves
consumers waiting. Errors in timer-driven cycles are logged and polling
continues on the same cadence; errors in a manual refresh propagate.

Cycles never overlap: a lock serializes them, and a refresh requested while
a cycle is in flight waits for it and then runs its own full cycle.
"""

import asyncio
from typing import Optional

from config import get_logger
from sync import Sink, SyncResult, SyncSession
from telemetry import trace_span
from utils import format_duration

logger = get_logger("scheduler")

IDLE = 'idle'
INITIAL_SYNC = 'initial-sync'
STEADY_POLLING = 'steady-polling'


class PollScheduler:
    """Drives a SyncSession on a timer.

    Args:
        session: The session to run.
        start_polling: Whether recurring polling begins after the initial sync.
    """

    def __init__(self, session: SyncSession, start_polling: bool = True):
        self.session = session
        self.state = IDLE
        self.sink: Optional[Sink] = None
        self._autostart = start_polling
        self._polling = False
        self._ready_marked = False
        self._lock = asyncio.Lock()
        self._stop_event = asyncio.Event()
        self._initial_task: Optional[asyncio.Task] = None
        self._poll_task: Optional[asyncio.Task] = None

    @property
    def feed_url(self) -> str:
        return self.session.configuration.feed_url

    def start(self, sink: Sink) -> asyncio.Task:
        """Bind to a sink and launch the initial sync. Must be called inside a running loop."""
        if self.sink is not None:
            raise RuntimeError(f"Scheduler for {self.feed_url} is already started")
        self.sink = sink
        if self._autostart:
            self._polling = True
        self._initial_task = asyncio.create_task(self._initial_sync())
        return self._initial_task

    async def wait_initial_sync(self) -> None:
        """Wait until the initial cycle has finished (successfully or not)."""
        if self._initial_task is not None:
            await asyncio.shield(self._initial_task)

    async def _initial_sync(self) -> None:
        self.state = INITIAL_SYNC
        logger.info(f"Initial sync of {self.feed_url}")
        try:
            await self._run_guarded()
        finally:
            self._mark_ready()
        self.state = STEADY_POLLING
        if self._polling:
            self._launch_poll_loop()

    def _mark_ready(self) -> None:
        if not self._ready_marked:
            self._ready_marked = True
            self.sink.mark_ready()

    async def _run_cycle(self) -> SyncResult:
        async with self._lock:
            return await self.session.run(self.sink)

    @trace_span(
        "scheduler.poll",
        tracer_name="scheduler",
        attr_from_args=lambda self: {"feed.url": self.feed_url},
    )
    async def _run_guarded(self) -> Optional[SyncResult]:
        """Run a timer-driven cycle, logging instead of raising."""
        try:
            result = await self._run_cycle()
        except Exception as e:
            logger.warning(f"Polling error for {self.feed_url}: {e}")
            return None
        logger.debug(f"Cycle for {self.feed_url} finished: {result}")
        return result

    async def _poll_loop(self, stop_event: asyncio.Event) -> None:
        while not stop_event.is_set():
            interval = self.session.effective_interval
            logger.debug(f"Next poll of {self.feed_url} in {format_duration(interval)}")
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=interval / 1000)
            except asyncio.TimeoutError:
                pass
            if stop_event.is_set():
                break
            await self._run_guarded()

    def _launch_poll_loop(self) -> None:
        # Each loop owns its stop event so a restarted loop never sees a stale one
        self._stop_event = asyncio.Event()
        self._poll_task = asyncio.create_task(self._poll_loop(self._stop_event))
        logger.info(f"Polling {self.feed_url}")

    async def refresh(self) -> SyncResult:
        """Run a cycle now. Errors propagate to the caller."""
        if self.sink is None:
            raise RuntimeError("Manual refresh is not available before the engine is bound to a sink")
        return await self._run_cycle()

    def start_polling(self) -> None:
        if self._polling:
            return
        self._polling = True
        # Before the initial sync finishes, it launches the loop itself
        if self.state == STEADY_POLLING:
            self._launch_poll_loop()

    def stop_polling(self) -> None:
        """Prevent future cycles. A cycle already running is left to finish."""
        if not self._polling:
            return
        self._polling = False
        self._stop_event.set()
        logger.info(f"Stopped polling {self.feed_url}")

    def is_polling(self) -> bool:
        return self._polling

    async def close(self) -> None:
        """Stop polling and wait for outstanding tasks to end."""
        self.stop_polling()
        tasks = [t for t in (self._initial_task, self._poll_task) if t is not None]
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
