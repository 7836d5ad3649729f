"""In-process event channel: one consumer task delivers events to listeners in order."""
from __future__ import annotations

import asyncio
import inspect
import logging
from types import TracebackType
from typing import Any

from feedback_client.application.ports.bus import DeliveryEvent
from feedback_client.domain.entities.message import Message
from feedback_client.domain.events.message_sent import MessageSent
from feedback_client.domain.events.new_incoming_message import NewIncomingMessage
from feedback_client.domain.events.send_paused import SendPaused, SendResumed
from feedback_client.domain.events.unread_count_changed import UnreadCountChanged
from feedback_client.domain.value_objects.enums import PauseReason, SendOutcome

logger = logging.getLogger(__name__)


class DeliveryListener:
    """Override the callbacks you care about. Each may be sync or async."""

    def on_message_sent(self, outcome: SendOutcome, message: Message) -> Any:
        pass

    def on_send_paused(self, reason: PauseReason) -> Any:
        pass

    def on_send_resumed(self) -> Any:
        pass

    def on_unread_count_changed(self, count: int) -> Any:
        pass

    def on_new_incoming_message(self, message: Message) -> Any:
        pass


class Subscription:
    """Handle returned by EventChannel.subscribe; dispose() detaches the listener."""

    def __init__(self, channel: EventChannel, listener: DeliveryListener) -> None:
        self._channel = channel
        self._listener: DeliveryListener | None = listener

    @property
    def active(self) -> bool:
        return self._listener is not None

    def dispose(self) -> None:
        if self._listener is not None:
            self._channel._detach(self._listener)
            self._listener = None

    def __enter__(self) -> Subscription:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.dispose()


def _invoke(listener: DeliveryListener, event: DeliveryEvent) -> Any:
    if isinstance(event, MessageSent):
        return listener.on_message_sent(event.outcome, event.message)
    if isinstance(event, SendPaused):
        return listener.on_send_paused(event.reason)
    if isinstance(event, SendResumed):
        return listener.on_send_resumed()
    if isinstance(event, UnreadCountChanged):
        return listener.on_unread_count_changed(event.count)
    if isinstance(event, NewIncomingMessage):
        return listener.on_new_incoming_message(event.message)
    logger.debug("Ignoring unknown event: %r", event)
    return None


class EventChannel:
    """Implements application.ports.bus.EventPublisher."""

    def __init__(self) -> None:
        self._queue: asyncio.Queue[DeliveryEvent] = asyncio.Queue()
        self._listeners: list[DeliveryListener] = []
        self._task: asyncio.Task[None] | None = None

    def subscribe(self, listener: DeliveryListener) -> Subscription:
        if listener not in self._listeners:
            self._listeners.append(listener)
        return Subscription(self, listener)

    def _detach(self, listener: DeliveryListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def publish(self, event: DeliveryEvent) -> None:
        self._queue.put_nowait(event)

    async def start(self) -> None:
        if self._task is None:
            self._task = asyncio.create_task(self._listen(), name="delivery-event-channel")
            logger.info("Event channel started")

    async def stop(self) -> None:
        if self._task is None:
            return
        await self.join()
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Event channel stopped")

    async def join(self) -> None:
        """Wait until every published event has been delivered."""
        await self._queue.join()

    async def _listen(self) -> None:
        while True:
            event = await self._queue.get()
            try:
                await self._dispatch(event)
            finally:
                self._queue.task_done()

    async def _dispatch(self, event: DeliveryEvent) -> None:
        for listener in list(self._listeners):
            try:
                result = _invoke(listener, event)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception(
                    "Listener %r failed on %s", listener, type(event).__name__,
                )
