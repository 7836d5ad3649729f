from __future__ import annotations

from dataclasses import dataclass

from feedback_client.domain.entities.message import Message
from feedback_client.domain.value_objects.enums import SendOutcome


@dataclass(frozen=True, slots=True)
class MessageSent:
    outcome: SendOutcome
    message: Message
