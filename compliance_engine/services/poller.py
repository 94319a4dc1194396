"""Periodic refresh of a notification feed.

Results are tagged with a sequence number when a poll starts. A result is
applied only if no newer poll has already been applied and the poller has not
been stopped in the meantime, so a slow response can never overwrite fresher
state or land after shutdown.
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Awaitable, Callable
from typing import Generic, TypeVar

from compliance_engine.config import settings
from compliance_engine.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class NotificationPoller(Generic[T]):
    def __init__(
        self,
        fetch: Callable[[], Awaitable[T]],
        on_result: Callable[[T], None],
        *,
        interval_seconds: float | None = None,
        name: str = "notifications",
    ) -> None:
        self._fetch = fetch
        self._on_result = on_result
        self._interval = (
            interval_seconds
            if interval_seconds is not None
            else settings.notification_poll_interval_seconds
        )
        self.name = name
        self._stop_event = asyncio.Event()
        self._task: asyncio.Task[None] | None = None
        self._started = 0
        self._applied = 0
        self._generation = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._stop_event = asyncio.Event()
        self._generation += 1
        self._task = asyncio.create_task(self._run(), name=f"poller:{self.name}")
        logger.info("Notification poller started", poller=self.name, interval=self._interval)

    async def stop(self) -> None:
        """Stop polling; results of polls already in flight are discarded."""
        self._generation += 1
        self._stop_event.set()
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
            logger.info("Notification poller stopped", poller=self.name)

    async def refresh_now(self) -> bool:
        """Poll immediately; returns True if the result was applied."""
        return await self._poll_once()

    async def _poll_once(self) -> bool:
        self._started += 1
        sequence = self._started
        generation = self._generation
        result = await self._fetch()
        if generation != self._generation or sequence <= self._applied:
            logger.debug(
                "Discarding superseded poll result",
                poller=self.name,
                sequence=sequence,
                applied=self._applied,
            )
            return False
        self._applied = sequence
        self._on_result(result)
        return True

    async def _run(self) -> None:
        """Poll until stopped; a failed poll is logged and retried next interval."""
        while not self._stop_event.is_set():
            try:
                await self._poll_once()
            except Exception:
                logger.exception("Notification poll failed", poller=self.name)

            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self._interval)
            except TimeoutError:
                continue
