from __future__ import annotations

from dataclasses import dataclass
from pathlib import PurePath


@dataclass(frozen=True, slots=True)
class StoredFile:
    """Attachment metadata, owned by the message with the same nonce."""

    nonce: str
    local_cache_path: str
    mime_type: str
    source_uri_or_path: str | None = None
    remote_url: str | None = None
    creation_time: int = 0

    @property
    def file_name(self) -> str:
        return PurePath(self.source_uri_or_path or self.local_cache_path).name
