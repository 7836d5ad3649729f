"""Schema creation and upgrade.

Schema 1 kept one attachment per message in ``file_store`` and used a separate
type discriminator per message kind (text, file, automated). Schema 2 keys
attachments by message nonce and folds every kind into ``CompoundMessage``
with ``text_only`` / ``automated`` flags.

The rewrite covers both the message table and the pending payload queue so
that a send started before the upgrade goes out in the same shape as the
stored history. Each record is rewritten on its own: a malformed one is
logged and left alone.
"""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from sqlalchemy import Table, Text, delete, insert, inspect, select, type_coerce, update
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

from feedback_client.domain.value_objects.enums import MessageType, PayloadBaseType
from feedback_client.infrastructure.db.base import Base
from feedback_client.infrastructure.db.models import (
    LegacyStoredFileModel,
    MessageModel,
    PayloadModel,
    SchemaMetaModel,
    StoredFileModel,
)

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 2
LEGACY_SCHEMA_VERSION = 1

LEGACY_FILE_ID_PREFIX = "file-"

_LEGACY_FLAGS: dict[str, dict[str, bool]] = {
    MessageType.TEXT: {"text_only": True},
    MessageType.FILE: {"text_only": False},
    MessageType.AUTOMATED: {"text_only": True, "automated": True},
}


def normalize_legacy_message(root: dict[str, Any]) -> dict[str, Any] | None:
    """Return the CompoundMessage form of a legacy record, or None if already current."""
    kind = root.get("type")
    if not isinstance(kind, str):
        return None
    flags = _LEGACY_FLAGS.get(kind)
    if flags is None:
        return None
    return {**root, "type": MessageType.COMPOUND.value, **flags}


async def upgrade_schema(engine: AsyncEngine, files_dir: str | Path) -> int:
    """Create missing tables and bring an older database up to SCHEMA_VERSION."""
    async with engine.begin() as conn:
        existing = set(
            await conn.run_sync(lambda sync_conn: inspect(sync_conn).get_table_names())
        )
        await conn.run_sync(Base.metadata.create_all)

        version = await _read_version(conn)
        if version is None:
            upgrading = (
                MessageModel.__tablename__ in existing
                and StoredFileModel.__tablename__ not in existing
            )
            version = LEGACY_SCHEMA_VERSION if upgrading else SCHEMA_VERSION

        if version < SCHEMA_VERSION:
            logger.info("Upgrading database schema %d -> %d", version, SCHEMA_VERSION)
            await migrate_to_compound_message(conn, files_dir)

        await _write_version(conn, SCHEMA_VERSION)
    return SCHEMA_VERSION


async def migrate_to_compound_message(conn: AsyncConnection, files_dir: str | Path) -> None:
    files = await _migrate_legacy_files(conn, Path(files_dir))
    messages = await _rewrite_legacy_records(conn, MessageModel.__table__)
    payloads = await _rewrite_legacy_records(
        conn,
        PayloadModel.__table__,
        PayloadModel.__table__.c.base_type == PayloadBaseType.MESSAGE.value,
    )
    logger.info(
        "Migrated %d legacy files, %d messages, %d pending payloads",
        files, messages, payloads,
    )


async def _migrate_legacy_files(conn: AsyncConnection, files_dir: Path) -> int:
    legacy = LegacyStoredFileModel.__table__
    target = StoredFileModel.__table__
    migrated = 0
    rows = (await conn.execute(select(legacy))).all()
    for row in rows:
        if not row.local_uri:
            logger.warning("Skipping legacy file %s without a local file", row.id)
            continue
        file_id: str = row.id
        start = file_id.find(LEGACY_FILE_ID_PREFIX)
        nonce = file_id[start + len(LEGACY_FILE_ID_PREFIX):] if start >= 0 else file_id
        await conn.execute(
            insert(target).values(
                nonce=nonce,
                # Legacy rows hold a bare file name relative to the files dir.
                local_path=str((files_dir / row.local_uri).absolute()),
                mime_type=row.mime_type or "application/octet-stream",
                local_uri=row.original_uri or row.local_uri,
                remote_url=row.remote_uri,
                creation_time=0,
            )
        )
        migrated += 1
    return migrated


async def _rewrite_legacy_records(conn: AsyncConnection, table: Table, *criteria: Any) -> int:
    # Read the raw text so a single corrupt row cannot fail the whole select.
    stmt = select(table.c.id, type_coerce(table.c.json, Text).label("raw"))
    if criteria:
        stmt = stmt.where(*criteria)
    stmt = stmt.order_by(table.c.id.asc())

    rewritten = 0
    for row_id, raw in (await conn.execute(stmt)).all():
        try:
            root = json.loads(raw)
        except (TypeError, ValueError):
            logger.warning("Skipping malformed %s record %s", table.name, row_id)
            continue
        if not isinstance(root, dict):
            logger.warning("Skipping non-object %s record %s", table.name, row_id)
            continue
        migrated = normalize_legacy_message(root)
        if migrated is None:
            continue
        await conn.execute(update(table).where(table.c.id == row_id).values(json=migrated))
        rewritten += 1
    return rewritten


async def _read_version(conn: AsyncConnection) -> int | None:
    result = await conn.execute(
        select(SchemaMetaModel.__table__.c.version).where(SchemaMetaModel.__table__.c.id == 1)
    )
    return result.scalar_one_or_none()


async def _write_version(conn: AsyncConnection, version: int) -> None:
    meta = SchemaMetaModel.__table__
    await conn.execute(delete(meta))
    await conn.execute(insert(meta).values(id=1, version=version))
