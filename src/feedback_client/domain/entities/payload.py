from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from feedback_client.domain.value_objects.enums import PayloadBaseType


@dataclass(frozen=True, slots=True)
class Payload:
    database_id: int
    base_type: PayloadBaseType
    body: dict[str, Any]

    @property
    def nonce(self) -> str | None:
        """Nonce of the owning message, for message payloads."""
        if self.base_type is not PayloadBaseType.MESSAGE:
            return None
        return self.body.get("nonce")
