from __future__ import annotations

from contextlib import AbstractAsyncContextManager
from typing import Callable, Protocol

from feedback_client.application.repositories.message import MessageStore
from feedback_client.application.repositories.payload import PayloadStore
from feedback_client.application.repositories.stored_file import StoredFileStore


class UnitOfWork(Protocol):
    payloads: PayloadStore
    messages: MessageStore
    files: StoredFileStore

    async def commit(self) -> None: ...
    async def rollback(self) -> None: ...
    async def flush(self) -> None: ...


UoWFactory = Callable[[], AbstractAsyncContextManager[UnitOfWork]]
