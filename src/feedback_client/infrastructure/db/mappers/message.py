from __future__ import annotations

from typing import Any, Sequence

from feedback_client.domain.entities.message import Message
from feedback_client.domain.entities.stored_file import StoredFile
from feedback_client.domain.value_objects.enums import MessageState
from feedback_client.infrastructure.db.models.message import MessageModel


def model_to_entity(
    model: MessageModel, attachments: Sequence[StoredFile] = (),
) -> Message:
    return Message(
        nonce=model.nonce,
        server_id=model.server_id,
        client_created_at=model.client_created_at,
        created_at=model.created_at,
        state=MessageState(model.state),
        read=model.read,
        hidden=model.hidden,
        is_outgoing=model.is_outgoing,
        body=dict(model.json or {}),
        attachments=tuple(attachments),
    )


def entity_to_values(entity: Message) -> dict[str, Any]:
    return {
        "nonce": entity.nonce,
        "server_id": entity.server_id,
        "client_created_at": entity.client_created_at,
        "created_at": entity.created_at,
        "state": entity.state.value,
        "read": entity.read,
        "hidden": entity.hidden,
        "is_outgoing": entity.is_outgoing,
        "json": entity.body,
    }
