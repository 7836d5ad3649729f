"""Store-side effects of a finished send attempt."""
from __future__ import annotations

import dataclasses
import logging

from pydantic import ValidationError as SchemaError

from feedback_client.application.ports.transport import RawResult
from feedback_client.application.uow import UnitOfWork
from feedback_client.domain.entities.message import SEND_FAILED_CREATED_AT, Message
from feedback_client.domain.entities.payload import Payload
from feedback_client.domain.entities.stored_file import StoredFile
from feedback_client.domain.value_objects.enums import MessageState
from feedback_client.infrastructure.http.schemas import MessageSentResponse
from feedback_client.services.message_service import delete_message

logger = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True, slots=True)
class Completion:
    """What happened to the owning message, if the payload had one."""

    message: Message | None = None
    discarded_files: tuple[StoredFile, ...] = ()


async def complete_delivered(uow: UnitOfWork, payload: Payload, result: RawResult) -> Completion:
    """Remove a delivered payload and mark its message sent (or drop it if hidden)."""
    await uow.payloads.delete_by_id(payload.database_id)
    message = await _owning_message(uow, payload)
    if message is None:
        await uow.commit()
        return Completion()

    if message.hidden:
        files = await delete_message(uow, message.nonce)
        await uow.commit()
        return Completion(dataclasses.replace(message, state=MessageState.SENT), tuple(files))

    fields: dict[str, object] = {"state": MessageState.SENT}
    try:
        response = MessageSentResponse.model_validate_json(result.body_text)
    except SchemaError:
        logger.error("Error parsing sent message response for %s", message.nonce)
    else:
        fields.update(server_id=response.id, created_at=response.created_at)

    await uow.messages.update_by_nonce(message.nonce, **fields)
    await uow.commit()
    return Completion(dataclasses.replace(message, **fields))


async def complete_dropped(uow: UnitOfWork, payload: Payload) -> Completion:
    """Remove a payload that can never succeed and flag its message as failed."""
    await uow.payloads.delete_by_id(payload.database_id)
    message = await _owning_message(uow, payload)
    if message is None:
        await uow.commit()
        return Completion()

    failed = dataclasses.replace(message, created_at=SEND_FAILED_CREATED_AT)
    if message.hidden:
        files = await delete_message(uow, message.nonce)
        await uow.commit()
        return Completion(failed, tuple(files))

    await uow.messages.update_by_nonce(message.nonce, created_at=SEND_FAILED_CREATED_AT)
    await uow.commit()
    return Completion(failed)


async def _owning_message(uow: UnitOfWork, payload: Payload) -> Message | None:
    nonce = payload.nonce
    if nonce is None:
        return None
    message = await uow.messages.get_by_nonce(nonce)
    if message is None:
        logger.info("Message %s is no longer stored; nothing to update", nonce)
    return message
