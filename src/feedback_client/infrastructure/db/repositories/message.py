from __future__ import annotations

from enum import Enum
from typing import Any, Iterable

from sqlalchemy import delete, func, select, update
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from feedback_client.domain.entities.message import Message
from feedback_client.domain.value_objects.enums import MessageState
from feedback_client.infrastructure.db.mappers import message as mapper
from feedback_client.infrastructure.db.models.message import MessageModel
from feedback_client.infrastructure.db.repositories.stored_file import StoredFileStoreRepo

_MUTABLE_COLUMNS = (
    "server_id",
    "client_created_at",
    "created_at",
    "state",
    "read",
    "hidden",
    "is_outgoing",
    "json",
)

_FIELD_TO_COLUMN = {"body": "json"}


class MessageStoreRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session
        self._files = StoredFileStoreRepo(session)

    async def upsert_by_nonce(self, message: Message) -> None:
        """Insert message, or overwrite the row with the same nonce in place."""
        values = mapper.entity_to_values(message)
        stmt = sqlite_insert(MessageModel).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=[MessageModel.nonce],
            set_={col: stmt.excluded[col] for col in _MUTABLE_COLUMNS},
        )
        await self._session.execute(stmt)

    async def get_by_nonce(self, nonce: str) -> Message | None:
        stmt = (
            select(MessageModel)
            .where(MessageModel.nonce == nonce)
            .execution_options(populate_existing=True)
        )
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        if model is None:
            return None
        attachments = await self._files.list_for_nonce(nonce)
        return mapper.model_to_entity(model, attachments)

    async def update_by_nonce(self, nonce: str, **fields: Any) -> bool:
        values = {
            _FIELD_TO_COLUMN.get(name, name): value.value if isinstance(value, Enum) else value
            for name, value in fields.items()
        }
        if not values:
            return False
        result = await self._session.execute(
            update(MessageModel).where(MessageModel.nonce == nonce).values(**values)
        )
        return bool(result.rowcount)

    async def delete_by_nonce(self, nonce: str) -> None:
        await self._session.execute(
            delete(MessageModel).where(MessageModel.nonce == nonce)
        )

    async def delete_all(self) -> None:
        await self._session.execute(delete(MessageModel))

    async def list_ordered(self, *, include_hidden: bool = False) -> list[Message]:
        stmt = (
            select(MessageModel)
            .order_by(
                # Messages without a server id sort after every confirmed one.
                MessageModel.server_id.is_(None),
                MessageModel.server_id.asc(),
                MessageModel.id.asc(),
            )
            .execution_options(populate_existing=True)
        )
        if not include_hidden:
            stmt = stmt.where(MessageModel.hidden.is_(False))
        result = await self._session.execute(stmt)
        models = result.scalars().all()
        files = await self._files.list_for_nonces([m.nonce for m in models])
        return [mapper.model_to_entity(m, files.get(m.nonce, ())) for m in models]

    async def unread_count(self) -> int:
        stmt = (
            select(func.count())
            .select_from(MessageModel)
            .where(
                MessageModel.read.is_(False),
                MessageModel.server_id.is_not(None),
            )
        )
        result = await self._session.execute(stmt)
        return result.scalar_one()

    async def last_received_id(self) -> str | None:
        stmt = (
            select(MessageModel.server_id)
            .where(
                MessageModel.state == MessageState.SAVED.value,
                MessageModel.server_id.is_not(None),
            )
            .order_by(MessageModel.server_id.desc())
            .limit(1)
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def mark_read(self, nonces: Iterable[str]) -> int:
        nonces = list(nonces)
        if not nonces:
            return 0
        result = await self._session.execute(
            update(MessageModel)
            .where(MessageModel.nonce.in_(nonces), MessageModel.read.is_(False))
            .values(read=True)
        )
        return result.rowcount or 0
