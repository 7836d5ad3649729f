from __future__ import annotations

from typing import Protocol, Sequence

from feedback_client.domain.entities.stored_file import StoredFile


class StoredFileStore(Protocol):
    async def replace_for_nonce(self, nonce: str, files: Sequence[StoredFile]) -> None: ...

    async def list_for_nonce(self, nonce: str) -> list[StoredFile]: ...

    async def list_for_nonces(self, nonces: Sequence[str]) -> dict[str, list[StoredFile]]: ...

    async def delete_for_nonce(self, nonce: str) -> int: ...
