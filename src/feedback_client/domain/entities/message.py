from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any

from feedback_client.domain.entities.stored_file import StoredFile
from feedback_client.domain.value_objects.enums import MessageState, MessageType

# Smallest positive float; marks a message whose send was permanently rejected.
SEND_FAILED_CREATED_AT: float = math.ulp(0.0)


@dataclass(frozen=True, slots=True)
class Message:
    nonce: str
    client_created_at: float
    state: MessageState
    body: dict[str, Any]
    server_id: str | None = None
    created_at: float | None = None
    read: bool = False
    hidden: bool = False
    is_outgoing: bool = True
    attachments: tuple[StoredFile, ...] = field(default=())

    @property
    def type(self) -> str:
        return self.body.get("type", MessageType.COMPOUND)

    @property
    def text(self) -> str | None:
        return self.body.get("body")

    @property
    def text_only(self) -> bool:
        return bool(self.body.get("text_only", not self.attachments))

    @property
    def automated(self) -> bool:
        return bool(self.body.get("automated", False))

    @property
    def send_failed(self) -> bool:
        return self.created_at == SEND_FAILED_CREATED_AT
