"""Recurring automatic sync.

``SyncScheduler`` owns one asyncio task that wakes up every
``interval_seconds`` and asks the engine for a quiet ``"auto"`` run.
The period is fixed at ``start()``; the configured interval is re-read
on every tick only to decide whether auto-sync is still enabled.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable

from .engine import SyncEngine
from .models import SyncOptions

logger = logging.getLogger(__name__)

AUTO_OPTIONS = SyncOptions(quiet=True, skip_active_editors=True, reason="auto")


class SyncScheduler:
    """Periodic trigger for ``SyncEngine.run_sync``.

    Args:
        engine: Engine to trigger.
        interval_provider: Returns the currently configured interval in
            seconds; ``<= 0`` pauses auto-sync without stopping the timer.
        is_alive: Returns ``False`` once the host has been torn down.
            The timer then stops for good.
        has_focus: Returns whether the host currently has focus.
    """

    def __init__(
        self,
        engine: SyncEngine,
        interval_provider: Callable[[], int],
        is_alive: Callable[[], bool],
        has_focus: Callable[[], bool] = lambda: True,
    ) -> None:
        self.engine = engine
        self.interval_provider = interval_provider
        self.is_alive = is_alive
        self.has_focus = has_focus
        self._task: asyncio.Task | None = None
        self._ticking = False
        self._stopping = False

    @property
    def task(self) -> asyncio.Task | None:
        return self._task

    @property
    def active(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self, interval_seconds: float) -> asyncio.Task | None:
        """Start the timer.

        Calling this twice starts a second timer; callers avoid that.

        Returns:
            The timer task, or ``None`` when *interval_seconds* <= 0.
        """
        if interval_seconds <= 0:
            logger.info("Auto-sync disabled (interval %s)", interval_seconds)
            return None
        self._task = asyncio.create_task(
            self._loop(interval_seconds), name="note-sync-scheduler"
        )
        logger.info("Auto-sync every %s seconds", interval_seconds)
        return self._task

    async def _loop(self, interval_seconds: float) -> None:
        while True:
            await asyncio.sleep(interval_seconds)
            self._ticking = True
            try:
                keep_going = await self.tick()
            finally:
                self._ticking = False
            if not keep_going or self._stopping:
                return

    async def tick(self) -> bool:
        """Handle one timer expiry.

        Returns:
            ``False`` when the host is gone and the timer must stop.
        """
        if not self.is_alive():
            logger.info("Host torn down; stopping auto-sync timer")
            return False
        if self.has_focus() and self.interval_provider() > 0:
            report = await self.engine.run_sync(options=AUTO_OPTIONS)
            if report is not None and report.synced:
                logger.info("Auto-sync run finished\n%s", report.summary())
        return True

    async def stop(self) -> None:
        """Stop the timer and wait for it to finish.

        A sleeping timer is cancelled. A run started by the timer is
        never interrupted: the timer ends once that run has completed.
        """
        task, self._task = self._task, None
        if task is None or task.done():
            return
        self._stopping = True
        try:
            if self._ticking:
                logger.info("Waiting for the running auto-sync to finish")
                await task
            else:
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        finally:
            self._stopping = False
        logger.info("Auto-sync timer stopped")
