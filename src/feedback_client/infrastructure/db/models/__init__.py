"""Import all models so Base.metadata knows every table."""
from feedback_client.infrastructure.db.models.message import MessageModel
from feedback_client.infrastructure.db.models.payload import PayloadModel
from feedback_client.infrastructure.db.models.schema_meta import SchemaMetaModel
from feedback_client.infrastructure.db.models.stored_file import (
    LegacyStoredFileModel,
    StoredFileModel,
)

__all__ = [
    "LegacyStoredFileModel",
    "MessageModel",
    "PayloadModel",
    "SchemaMetaModel",
    "StoredFileModel",
]
