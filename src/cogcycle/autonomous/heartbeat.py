# src/cogcycle/autonomous/heartbeat.py
"""
Wake Scheduler for the cognitive cycle.

Runs ``CycleOrchestrator.evaluate_cycle`` on a fixed interval from a single
asyncio loop task, so two cycles never overlap.  The wait between cycles is
an ``asyncio.Event`` with the interval as timeout: ``wake_now()`` ends the
wait early and ``update_interval()`` restarts it with the new interval.

Example:
    scheduler = WakeScheduler(orchestrator, interval=timedelta(minutes=5))
    scheduler.on_cycle_complete(report_cycle)

    await scheduler.start()
    ...
    scheduler.wake_now()       # run the next cycle immediately
    print(scheduler.get_status())

    await scheduler.stop()     # lets an in-flight cycle finish
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable

from .orchestrator import CycleOrchestrator, CycleResult

logger = logging.getLogger(__name__)

CycleCallback = Callable[[CycleResult], Awaitable[None]]


# =============================================================================
# WakeScheduler
# =============================================================================


class WakeScheduler:
    """
    Periodic driver for cognitive cycles.

    Args:
        orchestrator: Runs the cycles.
        interval: Time between the end of one cycle and the start of the next.
        history_limit: Cycle results kept for ``get_cycle_history``.
        max_cycles: Stop the loop after this many cycles (None runs until stopped).
    """

    def __init__(
        self,
        orchestrator: CycleOrchestrator,
        interval: timedelta = timedelta(seconds=300),
        history_limit: int = 100,
        max_cycles: int | None = None,
    ) -> None:
        if interval.total_seconds() <= 0:
            raise ValueError(f"Wake interval must be positive, got {interval}")

        self.orchestrator = orchestrator
        self.interval = interval
        self.max_cycles = max_cycles

        self._running = False
        self._paused = False
        self._loop_task: asyncio.Task | None = None
        self._wake_event: asyncio.Event | None = None
        self._wake_requested = False

        self._started_at: datetime | None = None
        self._next_wake_at: datetime | None = None
        self._total_cycles = 0
        self._failed_cycles = 0
        self._history: deque[CycleResult] = deque(maxlen=history_limit)
        self._on_cycle_complete: list[CycleCallback] = []

    @classmethod
    def from_config(
        cls,
        orchestrator: CycleOrchestrator,
        config: Any,
        max_cycles: int | None = None,
    ) -> WakeScheduler:
        """Create a WakeScheduler from a ``cogcycle.config.WakeConfig``."""
        return cls(
            orchestrator,
            interval=timedelta(seconds=config.interval_seconds),
            history_limit=config.history_limit,
            max_cycles=max_cycles,
        )

    def on_cycle_complete(self, callback: CycleCallback) -> None:
        """
        Register a callback for every finished cycle.

        Args:
            callback: Async function(cycle_result).  Its errors are logged.
        """
        self._on_cycle_complete.append(callback)

    # ----- lifecycle ----------------------------------------------------------

    async def start(self) -> None:
        """
        Start the wake loop.  The first cycle runs immediately.

        Idempotent: calling it while running does nothing.
        """
        if self._running:
            return

        self._running = True
        self._wake_event = asyncio.Event()
        self._started_at = datetime.now(timezone.utc)
        self._loop_task = asyncio.create_task(self._wake_loop())
        logger.info("Wake scheduler started (interval: %.0fs)", self.interval.total_seconds())

    async def stop(self) -> None:
        """
        Stop the wake loop.

        A cycle that is already running completes before this returns.
        """
        self._running = False
        if self._wake_event is not None:
            self._wake_event.set()

        task = self._loop_task
        if task is not None and task is not asyncio.current_task():
            await task
        self._loop_task = None
        self._next_wake_at = None
        logger.info("Wake scheduler stopped")

    async def wait_stopped(self) -> None:
        """Block until the loop ends (via ``stop`` or ``max_cycles``)."""
        if self._loop_task is not None:
            await self._loop_task

    def pause(self) -> None:
        """Pause cycles; the timer keeps running."""
        self._paused = True
        logger.info("Wake scheduler paused")

    def resume(self) -> None:
        self._paused = False
        logger.info("Wake scheduler resumed")

    def wake_now(self) -> None:
        """End the current wait and run a cycle right away."""
        if not self._running or self._wake_event is None:
            logger.debug("wake_now ignored: scheduler not running")
            return
        self._wake_requested = True
        self._wake_event.set()

    def update_interval(self, seconds: float) -> None:
        """
        Change the wake interval.

        The current wait restarts with the new interval; no cycle runs
        because of the change.

        Raises:
            ValueError: If *seconds* is not positive.
        """
        if seconds <= 0:
            raise ValueError(f"Wake interval must be positive, got {seconds}")

        self.interval = timedelta(seconds=seconds)
        if self._running and self._wake_event is not None:
            self._wake_event.set()
        logger.info("Wake interval set to %.0fs", seconds)

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def is_paused(self) -> bool:
        return self._paused

    # ----- cycles -------------------------------------------------------------

    async def tick(self) -> CycleResult | None:
        """
        Run one cycle now, outside the timer.

        Returns:
            The cycle result, or None if a cycle was already running or failed.
        """
        return await self._run_cycle()

    async def _run_cycle(self) -> CycleResult | None:
        try:
            result = await self.orchestrator.evaluate_cycle()
        except Exception as e:
            self._failed_cycles += 1
            logger.error("Cycle raised out of the orchestrator: %s", e, exc_info=True)
            return None

        if result is None:
            return None

        self._total_cycles += 1
        if result.errors:
            self._failed_cycles += 1
        self._history.append(result)

        for callback in self._on_cycle_complete:
            try:
                await callback(result)
            except Exception as e:
                logger.error("Cycle callback error: %s", e)
        return result

    async def _wake_loop(self) -> None:
        """Main wake loop."""
        run_now = True
        while self._running:
            try:
                if run_now and not self._paused:
                    await self._run_cycle()
                    if self.max_cycles is not None and self._total_cycles >= self.max_cycles:
                        logger.info("Reached %d cycles; stopping", self.max_cycles)
                        self._running = False
                        break
                run_now = await self._sleep()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error("Wake loop error: %s", e)
                await asyncio.sleep(5)
                run_now = False

    async def _sleep(self) -> bool:
        """
        Wait out the interval.

        Returns:
            True if a cycle should run next: the interval elapsed or
            ``wake_now`` was called.
        """
        assert self._wake_event is not None
        timeout = self.interval.total_seconds()
        self._next_wake_at = datetime.now(timezone.utc) + self.interval
        try:
            await asyncio.wait_for(self._wake_event.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            return True
        finally:
            self._wake_event.clear()

        requested = self._wake_requested
        self._wake_requested = False
        return requested and self._running

    # ----- status -------------------------------------------------------------

    def get_status(self) -> dict[str, Any]:
        """Current scheduler state."""
        last = self._history[-1] if self._history else None
        uptime = (
            (datetime.now(timezone.utc) - self._started_at).total_seconds()
            if self._running and self._started_at
            else 0.0
        )
        return {
            "running": self._running,
            "paused": self._paused,
            "state": self.orchestrator.state.value,
            "interval_seconds": self.interval.total_seconds(),
            "last_cycle_id": last.cycle_id if last else None,
            "next_wake_at": self._next_wake_at.isoformat() if self._next_wake_at else None,
            "total_cycles": self._total_cycles,
            "failed_cycles": self._failed_cycles,
            "uptime_seconds": round(uptime, 3),
        }

    def get_cycle_history(self, limit: int = 10) -> list[CycleResult]:
        """Most recent cycle results, oldest first."""
        history = list(self._history)
        return history[-limit:] if limit > 0 else []
