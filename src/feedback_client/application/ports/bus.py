from __future__ import annotations

from typing import Protocol

from feedback_client.domain.events.message_sent import MessageSent
from feedback_client.domain.events.new_incoming_message import NewIncomingMessage
from feedback_client.domain.events.send_paused import SendPaused, SendResumed
from feedback_client.domain.events.unread_count_changed import UnreadCountChanged

DeliveryEvent = (
    MessageSent | SendPaused | SendResumed | UnreadCountChanged | NewIncomingMessage
)


class EventPublisher(Protocol):
    def publish(self, event: DeliveryEvent) -> None:
        """Queue an event for listeners. Never blocks the caller."""
        ...
