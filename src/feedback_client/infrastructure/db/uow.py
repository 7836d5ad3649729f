from __future__ import annotations

from contextlib import asynccontextmanager
from types import TracebackType
from typing import AsyncIterator, Self

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from feedback_client.application.exceptions import StoreError
from feedback_client.application.uow import UoWFactory
from feedback_client.infrastructure.db.repositories.message import MessageStoreRepo
from feedback_client.infrastructure.db.repositories.payload import PayloadStoreRepo
from feedback_client.infrastructure.db.repositories.stored_file import StoredFileStoreRepo


class SqlAlchemyUoW:
    """Concrete Unit-of-Work backed by a single AsyncSession."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session
        self.payloads = PayloadStoreRepo(session)
        self.messages = MessageStoreRepo(session)
        self.files = StoredFileStoreRepo(session)

    async def flush(self) -> None:
        await self._session.flush()

    async def commit(self) -> None:
        await self._session.commit()

    async def rollback(self) -> None:
        await self._session.rollback()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        if exc_type is not None:
            await self.rollback()
        if isinstance(exc_val, SQLAlchemyError):
            raise StoreError(str(exc_val)) from exc_val


def uow_factory(session_factory: async_sessionmaker[AsyncSession]) -> UoWFactory:
    """Return a callable opening a fresh session-backed UoW per transaction."""

    @asynccontextmanager
    async def _open() -> AsyncIterator[SqlAlchemyUoW]:
        async with session_factory() as session:
            async with SqlAlchemyUoW(session) as uow:
                yield uow

    return _open
