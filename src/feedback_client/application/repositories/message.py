from __future__ import annotations

from typing import Any, Iterable, Protocol

from feedback_client.domain.entities.message import Message


class MessageStore(Protocol):
    async def upsert_by_nonce(self, message: Message) -> None:
        """Insert, or overwrite the mutable fields of the row with the same nonce."""
        ...

    async def get_by_nonce(self, nonce: str) -> Message | None: ...

    async def update_by_nonce(self, nonce: str, **fields: Any) -> bool:
        """Update an existing row. Returns False (and writes nothing) if it is gone."""
        ...

    async def delete_by_nonce(self, nonce: str) -> None: ...

    async def delete_all(self) -> None: ...

    async def list_ordered(self, *, include_hidden: bool = False) -> list[Message]:
        """Server id ascending; unsent messages last, in insertion order."""
        ...

    async def unread_count(self) -> int: ...

    async def last_received_id(self) -> str | None: ...

    async def mark_read(self, nonces: Iterable[str]) -> int: ...
