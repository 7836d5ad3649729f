from __future__ import annotations

from dataclasses import dataclass

from feedback_client.domain.entities.message import Message


@dataclass(frozen=True, slots=True)
class NewIncomingMessage:
    message: Message
