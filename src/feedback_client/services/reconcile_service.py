"""Merge the server's message list into the local store."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from pydantic import ValidationError as SchemaError

from feedback_client.application.policies.classifier import ResponseClassifier
from feedback_client.application.ports.bus import EventPublisher
from feedback_client.application.ports.transport import Transport
from feedback_client.application.uow import UoWFactory
from feedback_client.domain.entities.message import Message
from feedback_client.domain.entities.stored_file import StoredFile
from feedback_client.domain.events.new_incoming_message import NewIncomingMessage
from feedback_client.domain.events.unread_count_changed import UnreadCountChanged
from feedback_client.domain.value_objects.enums import MessageState, SendOutcome
from feedback_client.infrastructure.http.routes import messages_fetch_path
from feedback_client.infrastructure.http.schemas import MessageListResponse, RemoteMessage

logger = logging.getLogger(__name__)

# Server messages authored elsewhere may arrive without a client nonce.
REMOTE_NONCE_PREFIX = "remote-"


@dataclass(frozen=True, slots=True)
class ReconcileResult:
    fetched: int = 0
    incoming: int = 0
    notification: Message | None = None
    unread_count: int | None = None


class Reconciler:
    def __init__(
        self,
        uow_factory: UoWFactory,
        transport: Transport,
        publisher: EventPublisher,
        *,
        classifier: ResponseClassifier | None = None,
        person_id: str | None = None,
        files_dir: str | Path = ".",
        page_size: int | None = None,
    ) -> None:
        self._uow_factory = uow_factory
        self._transport = transport
        self._publisher = publisher
        self._classifier = classifier or ResponseClassifier()
        self._person_id = person_id
        self._files_dir = Path(files_dir)
        self._page_size = page_size

    async def fetch_and_store_messages(self) -> ReconcileResult:
        """Fetch messages newer than the last received one and merge them.

        Safe to repeat: rows are keyed by nonce, and a message already stored
        with the same server id is never announced or counted twice.
        """
        async with self._uow_factory() as uow:
            after_id = await uow.messages.last_received_id()

        listing = await self._fetch(after_id)
        if not listing:
            return ReconcileResult()

        fresh_incoming: list[Message] = []
        async with self._uow_factory() as uow:
            for remote in listing:
                nonce = remote.nonce or f"{REMOTE_NONCE_PREFIX}{remote.id}"
                existing = await uow.messages.get_by_nonce(nonce)
                message = self._merge(nonce, remote, existing)
                await uow.messages.upsert_by_nonce(message)
                if remote.attachments and not message.is_outgoing:
                    await uow.files.replace_for_nonce(nonce, self._remote_files(nonce, remote))
                if not message.is_outgoing and not _already_stored(existing, remote):
                    fresh_incoming.append(message)
            await uow.commit()
            unread = await uow.messages.unread_count()

        for message in fresh_incoming:
            self._publisher.publish(NewIncomingMessage(message))
        self._publisher.publish(UnreadCountChanged(unread))

        logger.info(
            "Stored %d messages (%d new incoming, %d unread)",
            len(listing), len(fresh_incoming), unread,
        )
        return ReconcileResult(
            fetched=len(listing),
            incoming=len(fresh_incoming),
            notification=fresh_incoming[0] if fresh_incoming else None,
            unread_count=unread,
        )

    async def _fetch(self, after_id: str | None) -> list[RemoteMessage]:
        logger.debug("Fetching messages newer than: %s", after_id)
        result = await self._transport.send(
            messages_fetch_path(count=self._page_size, after_id=after_id), "GET",
        )
        outcome = self._classifier.classify(result)
        if outcome is not SendOutcome.SUCCESS:
            logger.warning("Message fetch failed: %s", outcome)
            return []
        try:
            items = MessageListResponse.model_validate_json(result.body_text).items
        except SchemaError:
            logger.exception("Error parsing messages JSON.")
            return []

        messages = []
        for raw in items:
            try:
                messages.append(RemoteMessage.model_validate(raw))
            except SchemaError as exc:
                logger.warning("Skipping malformed message: %s", exc)
        return messages

    def _merge(self, nonce: str, remote: RemoteMessage, existing: Message | None) -> Message:
        outgoing = self._is_outgoing(remote, existing)
        client_created_at = remote.client_created_at
        if client_created_at is None:
            client_created_at = existing.client_created_at if existing else (remote.created_at or 0.0)
        return Message(
            nonce=nonce,
            server_id=remote.id,
            client_created_at=client_created_at,
            created_at=remote.created_at,
            state=MessageState.SAVED,
            # The sender already knows its own content; local reads stick.
            read=outgoing or (existing is not None and existing.read),
            hidden=remote.hidden,
            is_outgoing=outgoing,
            body=remote.content(),
        )

    def _is_outgoing(self, remote: RemoteMessage, existing: Message | None) -> bool:
        if existing is not None and existing.is_outgoing:
            return True
        sender_id = remote.sender.id if remote.sender else None
        return self._person_id is not None and sender_id == self._person_id

    def _remote_files(self, nonce: str, remote: RemoteMessage) -> list[StoredFile]:
        return [
            StoredFile(
                nonce=nonce,
                local_cache_path=str(
                    self._files_dir / f"{nonce}-{index}-{Path(a.original_name or 'file').name}"
                ),
                mime_type=a.content_type,
                remote_url=a.url,
            )
            for index, a in enumerate(remote.attachments)
        ]


def _already_stored(existing: Message | None, remote: RemoteMessage) -> bool:
    return existing is not None and existing.server_id == remote.id
