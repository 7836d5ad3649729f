from __future__ import annotations

from feedback_client.domain.entities.stored_file import StoredFile
from feedback_client.infrastructure.db.models.stored_file import StoredFileModel


def model_to_entity(model: StoredFileModel) -> StoredFile:
    return StoredFile(
        nonce=model.nonce,
        local_cache_path=model.local_path,
        mime_type=model.mime_type,
        source_uri_or_path=model.local_uri,
        remote_url=model.remote_url,
        creation_time=model.creation_time,
    )


def entity_to_model(entity: StoredFile) -> StoredFileModel:
    return StoredFileModel(
        nonce=entity.nonce,
        local_path=entity.local_cache_path,
        mime_type=entity.mime_type,
        local_uri=entity.source_uri_or_path,
        remote_url=entity.remote_url,
        creation_time=entity.creation_time,
    )
