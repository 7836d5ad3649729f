from __future__ import annotations

from typing import Any, Protocol

from feedback_client.domain.entities.payload import Payload
from feedback_client.domain.value_objects.enums import PayloadBaseType
from feedback_client.domain.value_objects.ids import PayloadId


class PayloadStore(Protocol):
    async def enqueue(self, base_type: PayloadBaseType, body: dict[str, Any]) -> PayloadId:
        """Append a payload. Ids are strictly increasing and never reused."""
        ...

    async def peek_oldest(self) -> Payload | None: ...

    async def delete_by_id(self, payload_id: int) -> None:
        """Delete a payload. Deleting an absent id is a no-op."""
        ...

    async def delete_all(self) -> None: ...

    async def count(self) -> int: ...
