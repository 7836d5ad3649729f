from __future__ import annotations

from feedback_client.domain.entities.payload import Payload
from feedback_client.domain.value_objects.enums import PayloadBaseType
from feedback_client.infrastructure.db.models.payload import PayloadModel


def model_to_entity(model: PayloadModel) -> Payload:
    return Payload(
        database_id=model.id,
        base_type=PayloadBaseType(model.base_type),
        body=dict(model.json or {}),
    )
