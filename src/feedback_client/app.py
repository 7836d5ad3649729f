from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Iterable, Sequence

import httpx
from sqlalchemy.ext.asyncio import AsyncEngine

from feedback_client.application.exceptions import EnqueueError, StoreError
from feedback_client.application.policies.classifier import ResponseClassifier, StatusTable
from feedback_client.application.policies.retry import RetryPolicy
from feedback_client.application.ports.clock import Clock, SystemClock
from feedback_client.application.ports.transport import Transport
from feedback_client.config import Settings, settings as default_settings
from feedback_client.domain.entities.message import Message
from feedback_client.domain.entities.stored_file import StoredFile
from feedback_client.domain.events.unread_count_changed import UnreadCountChanged
from feedback_client.domain.value_objects.enums import PayloadBaseType
from feedback_client.domain.value_objects.ids import PayloadId
from feedback_client.infrastructure.bus.event_channel import (
    DeliveryListener,
    EventChannel,
    Subscription,
)
from feedback_client.infrastructure.db.migrations import upgrade_schema
from feedback_client.infrastructure.db.session import create_engine, create_session_factory
from feedback_client.infrastructure.db.uow import uow_factory
from feedback_client.infrastructure.http.transport import HttpxTransport
from feedback_client.services import message_service
from feedback_client.services.reconcile_service import ReconcileResult, Reconciler
from feedback_client.workers.polling_worker import MessagePollingWorker
from feedback_client.workers.send_worker import SendWorker

logger = logging.getLogger(__name__)


class FeedbackClient:
    """Wires the store, transport, workers and event channel together.

    Build one with ``create_client`` (or the ``lifespan`` context manager),
    then ``start()`` it inside a running event loop.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        transport: Transport,
        engine: AsyncEngine,
        clock: Clock | None = None,
    ) -> None:
        self.settings = settings
        self._engine = engine
        self._transport = transport
        self._clock = clock or SystemClock()
        self._uow_factory = uow_factory(create_session_factory(engine))
        self.events = EventChannel()

        classifier = ResponseClassifier(
            StatusTable.from_statuses(settings.RETRYABLE_CLIENT_STATUSES)
        )
        self.send_worker = SendWorker(
            self._uow_factory,
            transport,
            self.events,
            classifier=classifier,
            retry_policy=RetryPolicy(
                base_delay=settings.SEND_BACKOFF_BASE_SECONDS,
                max_delay=settings.SEND_BACKOFF_MAX_SECONDS,
                max_attempts=settings.SEND_MAX_ATTEMPTS,
                resume_on_timer=settings.SEND_RESUME_ON_TIMER,
            ),
        )
        self.reconciler = Reconciler(
            self._uow_factory,
            transport,
            self.events,
            classifier=classifier,
            person_id=settings.PERSON_ID,
            files_dir=settings.FILES_DIR,
            page_size=settings.MESSAGE_FETCH_PAGE_SIZE,
        )
        self.polling_worker = MessagePollingWorker(
            self.reconciler.fetch_and_store_messages,
            foreground_interval=settings.MESSAGE_POLL_INTERVAL_FOREGROUND,
            background_interval=settings.MESSAGE_POLL_INTERVAL_BACKGROUND,
        )

    # ---- lifecycle

    async def start(self, *, poll: bool = True) -> None:
        await self.events.start()
        await self.send_worker.start()
        if poll:
            await self.polling_worker.start()
        logger.info("Feedback client started")

    async def stop(self) -> None:
        await self.polling_worker.stop()
        await self.send_worker.stop()
        await self.events.stop()
        if isinstance(self._transport, HttpxTransport):
            await self._transport.aclose()
        await self._engine.dispose()
        logger.info("Feedback client stopped")

    # ---- producers

    async def send_message(
        self,
        text: str | None,
        *,
        attachments: Sequence[StoredFile] = (),
        hidden: bool = False,
        automated: bool = False,
        custom_data: dict[str, Any] | None = None,
    ) -> Message:
        try:
            async with self._uow_factory() as uow:
                message = await message_service.send_message(
                    uow,
                    self._clock,
                    text=text,
                    attachments=attachments,
                    hidden=hidden,
                    automated=automated,
                    custom_data=custom_data,
                )
        except StoreError as exc:
            raise EnqueueError(f"message not queued: {exc.detail}") from exc
        logger.debug("Queued message %s", message.nonce)
        self.send_worker.wake()
        return message

    async def enqueue_payload(self, base_type: PayloadBaseType, body: dict[str, Any]) -> PayloadId:
        try:
            async with self._uow_factory() as uow:
                payload_id = await message_service.enqueue_payload(uow, base_type, body)
        except StoreError as exc:
            raise EnqueueError(f"{base_type} payload not queued: {exc.detail}") from exc
        self.send_worker.wake()
        return payload_id

    # ---- conversation

    async def list_messages(self) -> list[Message]:
        try:
            async with self._uow_factory() as uow:
                return await message_service.list_messages(uow)
        except StoreError:
            logger.exception("Unable to list messages")
            return []

    async def get_message(self, nonce: str) -> Message | None:
        try:
            async with self._uow_factory() as uow:
                return await uow.messages.get_by_nonce(nonce)
        except StoreError:
            logger.exception("Unable to load message %s", nonce)
            return None

    async def unread_count(self) -> int:
        try:
            async with self._uow_factory() as uow:
                return await uow.messages.unread_count()
        except StoreError:
            logger.exception("Unable to count unread messages")
            return 0

    async def mark_read(self, nonces: Iterable[str]) -> int:
        try:
            async with self._uow_factory() as uow:
                updated = await message_service.mark_read(uow, nonces)
                unread = await uow.messages.unread_count()
        except StoreError:
            logger.exception("Unable to mark messages read")
            return 0
        if updated:
            self.events.publish(UnreadCountChanged(unread))
        return updated

    async def fetch_messages(self) -> ReconcileResult:
        """Pull the remote list now, e.g. when a push notification arrives."""
        try:
            return await self.reconciler.fetch_and_store_messages()
        except StoreError:
            logger.exception("Unable to store fetched messages")
            return ReconcileResult()

    async def delete_all_messages(self) -> None:
        try:
            async with self._uow_factory() as uow:
                files = await message_service.delete_all_messages(uow)
        except StoreError:
            logger.exception("Unable to delete messages")
            return
        message_service.discard_local_files(files)
        self.events.publish(UnreadCountChanged(0))

    async def delete_all_payloads(self) -> None:
        try:
            async with self._uow_factory() as uow:
                await uow.payloads.delete_all()
                await uow.commit()
        except StoreError:
            logger.exception("Unable to delete queued payloads")

    async def pending_payloads(self) -> int:
        try:
            async with self._uow_factory() as uow:
                return await uow.payloads.count()
        except StoreError:
            logger.exception("Unable to count queued payloads")
            return 0

    # ---- signals

    def resume_sending(self) -> None:
        self.send_worker.resume()

    def set_foreground(self, in_foreground: bool) -> None:
        self.polling_worker.set_foreground(in_foreground)
        if in_foreground:
            self.send_worker.resume()

    def subscribe(self, listener: DeliveryListener) -> Subscription:
        return self.events.subscribe(listener)


async def create_client(
    settings: Settings | None = None,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
    clock: Clock | None = None,
) -> FeedbackClient:
    """Open the store (upgrading it if needed) and build an unstarted client."""
    settings = settings or default_settings
    Path(settings.FILES_DIR).mkdir(parents=True, exist_ok=True)
    engine = create_engine(settings.DATABASE_URL)
    await upgrade_schema(engine, settings.FILES_DIR)
    return FeedbackClient(
        settings,
        transport=HttpxTransport.from_settings(settings, transport=transport),
        engine=engine,
        clock=clock,
    )


@asynccontextmanager
async def lifespan(
    settings: Settings | None = None,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
    poll: bool = True,
) -> AsyncIterator[FeedbackClient]:
    """Startup / shutdown lifecycle."""
    client = await create_client(settings, transport=transport)
    await client.start(poll=poll)
    try:
        yield client
    finally:
        await client.stop()
