"""Periodic refresh of a server-owned queue view.

A ``QueuePoller`` fetches once in the foreground as soon as it starts, then
refreshes silently on a fixed interval until stopped.  Use it as an async
context manager so the timer is cancelled on every exit path::

    async with QueuePoller(api.get_queue_status, QueueSnapshot.empty) as board:
        ...

Foreground refreshes raise the loading flag and reset the data on failure.
Background refreshes keep the last good data and only set ``error``.  A
failed fetch never stops the timer; the next tick simply tries again.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Awaitable, Callable, Generic, Optional, TypeVar

from .config import Settings, settings as default_settings
from .errors import ClinicQueueError, PollerError
from .models import PollMode

logger = logging.getLogger(__name__)

T = TypeVar("T")


class QueuePoller(Generic[T]):
    def __init__(
        self,
        fetch: Callable[[], Awaitable[T]],
        empty: Callable[[], T],
        mode: PollMode = PollMode.patient,
        config: Optional[Settings] = None,
        on_error: Optional[Callable[[ClinicQueueError], None]] = None,
        on_update: Optional[Callable[[T], None]] = None,
    ):
        self.fetch = fetch
        self.empty = empty
        self.mode = mode
        self.config = config or default_settings
        self.on_error = on_error
        self.on_update = on_update

        self.data: T = empty()
        self.error = ""
        self.last_error: Optional[ClinicQueueError] = None
        self.is_loading = False
        self.last_updated: Optional[datetime] = None
        self.fetch_count = 0

        self._task: Optional[asyncio.Task] = None
        # Bumped on start/stop; a fetch only applies if the epoch is unchanged
        self._epoch = 0

    @property
    def interval(self) -> float:
        if self.mode is PollMode.admin:
            return self.config.admin_poll_seconds
        return self.config.patient_poll_seconds

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self, mode: Optional[PollMode] = None) -> None:
        if self.running:
            raise PollerError("Poller is already running; stop it before starting again.")
        if mode is not None:
            self.mode = mode
        self._epoch += 1
        self._task = asyncio.get_running_loop().create_task(self._run())
        logger.debug(f"Started {self.mode.value} poller every {self.interval}s")

    def stop(self) -> None:
        """Cancel the timer.  Safe to call at any time, including from ``on_error``."""
        self._epoch += 1
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            logger.debug(f"Stopped {self.mode.value} poller")

    async def aclose(self) -> None:
        task = self._task
        self.stop()
        if task is not None and task is not asyncio.current_task():
            try:
                await task
            except asyncio.CancelledError:
                pass

    async def __aenter__(self) -> "QueuePoller[T]":
        self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def _run(self) -> None:
        await self._tick(foreground=True)
        while True:
            await asyncio.sleep(self.interval)
            await self._tick(foreground=False)

    async def _tick(self, foreground: bool) -> None:
        try:
            await self.refresh(foreground=foreground)
        except Exception:
            logger.exception(f"Unexpected error in {self.mode.value} poller; will retry next tick")

    async def refresh(self, foreground: bool = False) -> bool:
        """Fetch once.  Returns True if new data was applied."""
        epoch = self._epoch
        if foreground:
            self.is_loading = True
            self.error = ""
        try:
            data = await self.fetch()
        except ClinicQueueError as e:
            if epoch != self._epoch:
                return False
            self.fetch_count += 1
            self.error = e.message
            self.last_error = e
            if foreground:
                self.data = self.empty()
            if self.on_error is not None:
                self.on_error(e)
            return False
        finally:
            # Also covers a stop() or cancellation while the fetch was pending
            if foreground:
                self.is_loading = False

        if epoch != self._epoch:
            logger.debug("Dropping fetch result that finished after stop")
            return False
        self.fetch_count += 1
        self.data = data
        self.error = ""
        self.last_error = None
        self.last_updated = datetime.now()
        if self.on_update is not None:
            self.on_update(data)
        return True
