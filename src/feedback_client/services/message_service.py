from __future__ import annotations

import dataclasses
import logging
import uuid
from pathlib import Path
from typing import Any, Iterable, Sequence

from feedback_client.application.exceptions import ValidationError
from feedback_client.application.ports.clock import Clock
from feedback_client.application.uow import UnitOfWork
from feedback_client.domain.entities.message import Message
from feedback_client.domain.entities.stored_file import StoredFile
from feedback_client.domain.value_objects.enums import MessageState, MessageType, PayloadBaseType
from feedback_client.domain.value_objects.ids import PayloadId

logger = logging.getLogger(__name__)


def message_payload_body(message: Message) -> dict[str, Any]:
    return {
        **message.body,
        "nonce": message.nonce,
        "client_created_at": message.client_created_at,
        "hidden": message.hidden,
    }


async def send_message(
    uow: UnitOfWork,
    clock: Clock,
    *,
    text: str | None,
    attachments: Sequence[StoredFile] = (),
    hidden: bool = False,
    automated: bool = False,
    custom_data: dict[str, Any] | None = None,
    nonce: str | None = None,
) -> Message:
    """Store an outgoing message and queue it for delivery in one transaction."""
    if not text and not attachments:
        raise ValidationError("message needs text or at least one attachment")

    nonce = nonce or str(uuid.uuid4())
    files = tuple(dataclasses.replace(f, nonce=nonce) for f in attachments)
    body: dict[str, Any] = {
        "type": MessageType.COMPOUND.value,
        "body": text,
        "text_only": not files,
        "automated": automated,
    }
    if custom_data:
        body["custom_data"] = custom_data

    message = Message(
        nonce=nonce,
        client_created_at=clock.time(),
        state=MessageState.SENDING,
        body=body,
        read=True,
        hidden=hidden,
        is_outgoing=True,
        attachments=files,
    )
    await uow.messages.upsert_by_nonce(message)
    if files:
        await uow.files.replace_for_nonce(nonce, files)
    await uow.payloads.enqueue(PayloadBaseType.MESSAGE, message_payload_body(message))
    await uow.commit()
    return message


async def enqueue_payload(
    uow: UnitOfWork,
    base_type: PayloadBaseType,
    body: dict[str, Any],
) -> PayloadId:
    if base_type is PayloadBaseType.MESSAGE:
        raise ValidationError("messages must be queued through send_message")
    payload_id = await uow.payloads.enqueue(base_type, body)
    await uow.commit()
    return payload_id


async def list_messages(uow: UnitOfWork) -> list[Message]:
    """Messages the user may see: hidden ones are never listed."""
    return await uow.messages.list_ordered(include_hidden=False)


async def mark_read(uow: UnitOfWork, nonces: Iterable[str]) -> int:
    updated = await uow.messages.mark_read(nonces)
    await uow.commit()
    return updated


async def delete_message(uow: UnitOfWork, nonce: str) -> list[StoredFile]:
    """Delete a message row and its file rows. Returns the files for disk cleanup."""
    files = await uow.files.list_for_nonce(nonce)
    await uow.files.delete_for_nonce(nonce)
    await uow.messages.delete_by_nonce(nonce)
    return files


def discard_local_files(files: Iterable[StoredFile]) -> None:
    for stored in files:
        if not stored.local_cache_path:
            continue
        try:
            Path(stored.local_cache_path).unlink(missing_ok=True)
        except OSError as exc:
            logger.warning("Could not delete cached file %s: %s", stored.local_cache_path, exc)


async def delete_all_messages(uow: UnitOfWork) -> list[StoredFile]:
    """Clear the local history, e.g. on logout. Returns the files for disk cleanup."""
    nonces = [m.nonce for m in await uow.messages.list_ordered(include_hidden=True)]
    grouped = await uow.files.list_for_nonces(nonces)
    for nonce in grouped:
        await uow.files.delete_for_nonce(nonce)
    await uow.messages.delete_all()
    await uow.commit()
    return [f for files in grouped.values() for f in files]
