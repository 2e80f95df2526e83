"""
Background watcher that re-runs the reconciliation sweep on an interval.

The watcher is single-flight: a tick that arrives while a sweep is still
running is skipped, never queued and never allowed to run alongside it. The
ticker is an owned asyncio task with an explicit start/stop lifecycle, and
`tick()` can be driven directly so tests need no wall-clock waiting.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Optional

from services.collaborators import NotificationSink, notify_quietly
from services.conversion_validator import BatchValidationReport
from services.reconciliation_service import ReconciliationService

logger = logging.getLogger(__name__)


class WatcherState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"


class ReconciliationWatcher:
    def __init__(
        self,
        service: ReconciliationService,
        *,
        interval_seconds: float,
        notifications: Optional[NotificationSink] = None,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self._service = service
        self._interval = interval_seconds
        self._notifications = notifications
        self._state = WatcherState.IDLE
        self._ticker: Optional[asyncio.Task] = None
        self._sweep: Optional[asyncio.Task] = None
        self.sweeps_started = 0
        self.sweeps_skipped = 0
        self.last_report: Optional[BatchValidationReport] = None
        self.last_error: Optional[str] = None

    @property
    def state(self) -> WatcherState:
        return self._state

    @property
    def is_started(self) -> bool:
        return self._ticker is not None and not self._ticker.done()

    @property
    def interval_seconds(self) -> float:
        return self._interval

    async def tick(self) -> Optional[BatchValidationReport]:
        """
        Run one sweep unless one is already running.

        Returns:
            The sweep's report, or None if the tick was skipped or the sweep failed.
        """

        # No await between the check and the transition: the event loop
        # cannot interleave another tick here.
        if self._state is WatcherState.RUNNING:
            self.sweeps_skipped += 1
            logger.info("Reconciliation sweep already running; skipping tick")
            return None

        self._state = WatcherState.RUNNING
        self.sweeps_started += 1
        try:
            report = await self._service.validate_all()
        except Exception as exc:
            self.last_error = str(exc) or type(exc).__name__
            logger.exception("Reconciliation sweep failed")
            return None
        finally:
            self._state = WatcherState.IDLE

        self.last_report = report
        self.last_error = None
        if report.invalid or report.errored:
            if report.invalid:
                title = f"Found {len(report.invalid)} invalid converted leads"
            else:
                title = f"Could not validate {len(report.errored)} converted leads"
            await notify_quietly(
                self._notifications,
                title,
                f"{len(report.valid)} are valid, {len(report.invalid)} need attention, "
                f"{len(report.errored)} could not be checked",
                severity="warning",
            )
        return report

    def start(self) -> None:
        """Start the ticker on the running event loop. Idempotent."""

        if self.is_started:
            return
        self._ticker = asyncio.create_task(self._run(), name="reconciliation-watcher")
        logger.info(f"Reconciliation watcher started (interval {self._interval}s)")

    async def stop(self) -> None:
        """Cancel the ticker and wait for an in-flight sweep to finish."""

        ticker, self._ticker = self._ticker, None
        if ticker is not None:
            ticker.cancel()
            try:
                await ticker
            except asyncio.CancelledError:
                pass
        sweep, self._sweep = self._sweep, None
        if sweep is not None and not sweep.done():
            await sweep
        logger.info("Reconciliation watcher stopped")

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            if self._sweep is not None and not self._sweep.done():
                self.sweeps_skipped += 1
                logger.info("Reconciliation sweep already running; skipping tick")
                continue
            # Each tick runs as its own task so a slow sweep doesn't delay the timer.
            self._sweep = asyncio.create_task(self.tick())


__all__ = ["WatcherState", "ReconciliationWatcher"]
