"""
Cron-driven scheduler for sync runs.

Fires a sync on a fixed cron schedule. Each firing runs the sync in a worker
thread so the event loop stays responsive to shutdown. The scheduler never
retries a run: the next firing re-evaluates every fingerprint anyway.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

from blobmirror.service.cron_parser import next_fire_time_cron, validate_cron
from blobmirror.sync.types import RunSummary
from blobmirror.utils.logging import get_logger

logger = get_logger("blobmirror.service.scheduler")

DEFAULT_CRON = "0 12,17 * * *"


class SyncScheduler:
    """
    Run ``run_once`` every time the cron expression fires.

    Args:
        run_once: Callable performing one sync and returning its summary
        cron: 5-field cron expression
        timezone: Timezone the cron expression is evaluated in
        run_on_start: Fire once immediately before following the schedule
        past_due_grace: Lateness after which a firing is reported as past due
        clock: Returns the current aware datetime (injectable for tests)
        max_runs: Stop after this many firings (None = until stopped)
    """

    def __init__(
        self,
        run_once: Callable[[], RunSummary],
        *,
        cron: str = DEFAULT_CRON,
        timezone: str | None = "UTC",
        run_on_start: bool = False,
        past_due_grace: timedelta = timedelta(seconds=60),
        clock: Callable[[], datetime] | None = None,
        max_runs: int | None = None,
    ):
        validate_cron(cron, timezone=timezone)
        self.run_once = run_once
        self.cron = cron
        self.timezone = timezone
        self.run_on_start = run_on_start
        self.past_due_grace = past_due_grace
        self.max_runs = max_runs
        self._clock = clock or (lambda: datetime.now(UTC))
        self._stopping = asyncio.Event()

        self.runs = 0
        self.next_fire: datetime | None = None
        self.last_summary: RunSummary | None = None

    def stop(self) -> None:
        """Ask the loop to exit; a run already in progress finishes first."""
        self._stopping.set()

    @property
    def _done(self) -> bool:
        return self._stopping.is_set() or (self.max_runs is not None and self.runs >= self.max_runs)

    async def run_forever(self) -> None:
        """Follow the schedule until ``stop()`` is called or ``max_runs`` is reached."""
        logger.info(f"Scheduler started with cron '{self.cron}' ({self.timezone or 'UTC'})")

        if self.run_on_start and not self._done:
            await self._fire(None)

        while not self._done:
            now = self._clock()
            self.next_fire = next_fire_time_cron(self.cron, now=now, timezone=self.timezone)
            logger.info(f"Next timer schedule at: {self.next_fire.isoformat()}")

            delay = max(0.0, (self.next_fire - now).total_seconds())
            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=delay)
                break
            except asyncio.TimeoutError:
                pass

            await self._fire(self.next_fire)

        logger.info("Scheduler stopped")

    async def _fire(self, scheduled: datetime | None) -> RunSummary | None:
        fired_at = self._clock()
        if scheduled is not None and fired_at - scheduled > self.past_due_grace:
            logger.warning(f"The timer is past due! Scheduled for {scheduled.isoformat()}")
        logger.info(f"Sync triggered at: {fired_at.isoformat()}")

        self.runs += 1
        try:
            summary = await asyncio.to_thread(self.run_once)
        except Exception as e:
            # Includes ConfigurationError: reported once per firing, loop continues
            logger.error(f"Sync run failed to start: {e}")
            return None

        self.last_summary = summary
        return summary
