from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable

from feedback_client.workers.scheduled import ScheduledTask

logger = logging.getLogger(__name__)

FOREGROUND_INTERVAL_SECONDS = 8.0
BACKGROUND_INTERVAL_SECONDS = 60.0


class MessagePollingWorker:
    """Periodically pulls the remote message list; faster while the inbox is on screen."""

    def __init__(
        self,
        poll: Callable[[], Awaitable[Any]],
        *,
        foreground_interval: float = FOREGROUND_INTERVAL_SECONDS,
        background_interval: float = BACKGROUND_INTERVAL_SECONDS,
    ) -> None:
        self._foreground_interval = foreground_interval
        self._background_interval = background_interval
        self._foreground = False
        self._task = ScheduledTask("message-polling-worker", poll, self.interval)

    @property
    def in_foreground(self) -> bool:
        return self._foreground

    def interval(self) -> float:
        return self._foreground_interval if self._foreground else self._background_interval

    def set_foreground(self, in_foreground: bool) -> None:
        if in_foreground == self._foreground:
            return
        self._foreground = in_foreground
        logger.debug("Message polling switched to %.1fs", self.interval())
        if in_foreground:
            self._task.wake()

    def wake(self) -> None:
        self._task.wake()

    async def start(self) -> None:
        await self._task.start()

    async def stop(self) -> None:
        await self._task.stop()
