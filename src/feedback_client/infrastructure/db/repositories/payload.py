from __future__ import annotations

from typing import Any

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from feedback_client.domain.entities.payload import Payload
from feedback_client.domain.value_objects.enums import PayloadBaseType
from feedback_client.domain.value_objects.ids import PayloadId
from feedback_client.infrastructure.db.mappers import payload as mapper
from feedback_client.infrastructure.db.models.payload import PayloadModel


class PayloadStoreRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def enqueue(self, base_type: PayloadBaseType, body: dict[str, Any]) -> PayloadId:
        model = PayloadModel(base_type=base_type.value, json=body)
        self._session.add(model)
        await self._session.flush()
        return PayloadId(model.id)

    async def peek_oldest(self) -> Payload | None:
        stmt = select(PayloadModel).order_by(PayloadModel.id.asc()).limit(1)
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return mapper.model_to_entity(model) if model else None

    async def delete_by_id(self, payload_id: int) -> None:
        await self._session.execute(
            delete(PayloadModel).where(PayloadModel.id == payload_id)
        )

    async def delete_all(self) -> None:
        await self._session.execute(delete(PayloadModel))

    async def count(self) -> int:
        result = await self._session.execute(
            select(func.count()).select_from(PayloadModel)
        )
        return result.scalar_one()
