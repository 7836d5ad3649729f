"""Timer + wake-signal loop shared by the background workers."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable

logger = logging.getLogger(__name__)

Action = Callable[[], Awaitable[Any]]
# Seconds until the next unprompted run; None waits for wake() only.
IntervalFn = Callable[[], float | None]


class ScheduledTask:
    def __init__(
        self,
        name: str,
        action: Action,
        interval: IntervalFn,
        *,
        run_on_start: bool = True,
    ) -> None:
        self._name = name
        self._action = action
        self._interval = interval
        self._run_on_start = run_on_start
        self._wake = asyncio.Event()
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def wake(self) -> None:
        self._wake.set()

    async def start(self) -> None:
        if self.running:
            return
        if self._run_on_start:
            self._wake.set()
        self._task = asyncio.create_task(self._loop(), name=self._name)
        logger.info("%s started", self._name)

    async def stop(self) -> None:
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            finally:
                self._task = None
            logger.info("%s stopped", self._name)

    async def _loop(self) -> None:
        while True:
            try:
                await asyncio.wait_for(self._wake.wait(), self._interval())
            except TimeoutError:
                pass
            self._wake.clear()
            try:
                await self._action()
            except Exception:
                logger.exception("%s loop error", self._name)
