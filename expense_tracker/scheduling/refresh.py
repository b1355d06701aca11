"""
Periodic dashboard refresh.

Each dashboard owns exactly one RefreshScheduler. Mounting starts one
background task that refreshes immediately and then every interval;
teardown cancels it. There is no process-wide timer.
"""

import asyncio
import contextlib
from typing import Awaitable, Callable, Optional

import structlog

from expense_tracker.config import get_settings


logger = structlog.get_logger(__name__)


RefreshCallback = Callable[[], Awaitable[None]]


class RefreshScheduler:
    """
    Runs `refresh` on mount and then on a fixed interval until torn down.
    
    Mounting an already-mounted scheduler is an error, so a dashboard can
    never end up with two live timers.
    """
    
    def __init__(
        self,
        refresh: RefreshCallback,
        interval_seconds: Optional[float] = None,
    ):
        self._refresh = refresh
        self._interval = (
            interval_seconds
            if interval_seconds is not None
            else get_settings().dashboard.refresh_interval_seconds
        )
        self._task: Optional[asyncio.Task] = None
        self.tick_count = 0
    
    @property
    def interval_seconds(self) -> float:
        return self._interval
    
    @property
    def is_mounted(self) -> bool:
        return self._task is not None and not self._task.done()
    
    def mount(self) -> None:
        """Start the timer. Must be called from inside a running event loop."""
        if self.is_mounted:
            raise RuntimeError("Refresh scheduler is already mounted")
        self._task = asyncio.create_task(self._run())
        logger.debug("refresh_mounted", interval=self._interval)
    
    async def teardown(self) -> None:
        """Cancel the timer and wait until it has stopped."""
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        logger.debug("refresh_torn_down", ticks=self.tick_count)
    
    async def restart(self) -> None:
        """Tear down and mount again, refreshing immediately."""
        await self.teardown()
        self.mount()
    
    async def _run(self) -> None:
        while True:
            self.tick_count += 1
            try:
                await self._refresh()
            except asyncio.CancelledError:
                raise
            except Exception:
                # Keep the timer alive; the next tick gets a fresh attempt
                logger.exception("refresh_tick_failed", tick=self.tick_count)
            await asyncio.sleep(self._interval)
