from __future__ import annotations

from collections import defaultdict
from typing import Sequence

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from feedback_client.domain.entities.stored_file import StoredFile
from feedback_client.infrastructure.db.mappers import stored_file as mapper
from feedback_client.infrastructure.db.models.stored_file import StoredFileModel


class StoredFileStoreRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def replace_for_nonce(self, nonce: str, files: Sequence[StoredFile]) -> None:
        # Delete first so that add and update share one path.
        await self.delete_for_nonce(nonce)
        self._session.add_all(
            mapper.entity_to_model(f) for f in files if f.nonce == nonce
        )
        await self._session.flush()

    async def list_for_nonce(self, nonce: str) -> list[StoredFile]:
        return (await self.list_for_nonces([nonce])).get(nonce, [])

    async def list_for_nonces(self, nonces: Sequence[str]) -> dict[str, list[StoredFile]]:
        if not nonces:
            return {}
        stmt = (
            select(StoredFileModel)
            .where(StoredFileModel.nonce.in_(nonces))
            .order_by(StoredFileModel.id.asc())
        )
        result = await self._session.execute(stmt)
        grouped: dict[str, list[StoredFile]] = defaultdict(list)
        for model in result.scalars().all():
            grouped[model.nonce].append(mapper.model_to_entity(model))
        return dict(grouped)

    async def delete_for_nonce(self, nonce: str) -> int:
        result = await self._session.execute(
            delete(StoredFileModel).where(StoredFileModel.nonce == nonce)
        )
        return result.rowcount or 0
