"""Periodic runner for the issuance status watcher.

Runs :meth:`IssuanceStatusWatcher.run_watcher_job` once immediately on
:meth:`IssuanceWatcherJob.start`, then every ``interval_seconds``, measured
start to start, for the life of the process.  A failed run is logged and
counted; the next tick still fires.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field

from tokenops.core.enums import JobStatus

from .issuance import IssuanceStatusWatcher, WatcherRunSummary

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS = 10.0


def next_due(due: float, now: float, interval: float) -> float:
    """First tick after *due* that is still in the future at *now*."""
    due += interval
    if due <= now:
        due += ((now - due) // interval + 1) * interval
    return due


class JobHealthReport(BaseModel):
    healthy: bool
    message: str = ""
    last_run_at: datetime | None = None
    run_count: int = 0
    error_count: int = 0
    details: dict[str, Any] = Field(default_factory=dict)


class IssuanceWatcherJob:
    """Background task driving an :class:`IssuanceStatusWatcher`.

    Parameters
    ----------
    watcher:
        The watcher whose ``run_watcher_job`` is invoked each tick.
    interval_seconds:
        Period between run starts.  Runs are scheduled against a monotonic
        clock, so a slow run does not push later runs back; ticks missed
        while a run overran are skipped, never queued.
    """

    def __init__(
        self,
        watcher: IssuanceStatusWatcher,
        interval_seconds: float = DEFAULT_INTERVAL_SECONDS,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self._watcher = watcher
        self._interval = interval_seconds
        self._task: asyncio.Task | None = None
        self._running = False
        self._status = JobStatus.CREATED
        self._run_count = 0
        self._error_count = 0
        self._last_run_at: datetime | None = None
        self._last_error: str | None = None
        self._last_summary: WatcherRunSummary | None = None

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def status(self) -> JobStatus:
        return self._status

    @property
    def run_count(self) -> int:
        return self._run_count

    @property
    def error_count(self) -> int:
        return self._error_count

    @property
    def last_summary(self) -> WatcherRunSummary | None:
        return self._last_summary

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Start the loop.  The first run begins without waiting."""
        if self._running:
            logger.warning("Issuance watcher job is already running")
            return

        self._status = JobStatus.STARTING
        self._running = True
        self._task = asyncio.create_task(self._loop(), name="issuance-watcher")
        self._status = JobStatus.RUNNING
        logger.info("Issuance watcher job started (interval=%.1fs)", self._interval)

    async def stop(self) -> None:
        """Cancel the loop and wait for it to exit."""
        self._status = JobStatus.STOPPING
        self._running = False

        if self._task is not None:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None

        self._status = JobStatus.STOPPED
        logger.info(
            "Issuance watcher job stopped (runs=%d, errors=%d)",
            self._run_count,
            self._error_count,
        )

    async def run_once(self) -> WatcherRunSummary | None:
        """Execute a single guarded run.  Never raises (except cancellation)."""
        self._run_count += 1
        try:
            summary = await self._watcher.run_watcher_job()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            self._error_count += 1
            self._last_error = f"{type(exc).__name__}: {exc}"
            logger.exception(
                "Issuance watcher run failed (errors=%d)", self._error_count,
            )
            return None

        self._last_run_at = datetime.now(timezone.utc)
        self._last_summary = summary
        return summary

    # ------------------------------------------------------------------
    # Background loop
    # ------------------------------------------------------------------

    async def _loop(self) -> None:
        loop = asyncio.get_running_loop()
        due = loop.time()
        while self._running:
            await self.run_once()
            now = loop.time()
            due = next_due(due, now, self._interval)
            await asyncio.sleep(due - now)

    # ------------------------------------------------------------------
    # Health
    # ------------------------------------------------------------------

    def health_check(self) -> JobHealthReport:
        healthy = self._running and self._status == JobStatus.RUNNING
        message = ""
        if not self._running:
            message = "Job is not running"
        elif self._last_error:
            message = f"Last error: {self._last_error}"

        return JobHealthReport(
            healthy=healthy,
            message=message,
            last_run_at=self._last_run_at,
            run_count=self._run_count,
            error_count=self._error_count,
            details={
                "status": self._status.value,
                "interval_seconds": self._interval,
            },
        )
