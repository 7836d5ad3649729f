from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol, Sequence

from feedback_client.domain.entities.stored_file import StoredFile


@dataclass(frozen=True, slots=True)
class RawResult:
    """Outcome of a single HTTP call, before classification."""

    status_code: int | None = None
    headers: dict[str, str] = field(default_factory=dict)
    body_text: str = ""
    transport_error: str | None = None
    bad_payload: bool = False

    @property
    def is_successful(self) -> bool:
        return self.status_code is not None and 200 <= self.status_code < 300


class Transport(Protocol):
    async def send(
        self,
        endpoint: str,
        method: str,
        body: dict[str, Any] | None = None,
        attachments: Sequence[StoredFile] = (),
    ) -> RawResult: ...
