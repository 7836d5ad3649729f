from __future__ import annotations

import json

import pytest
import pytest_asyncio
from sqlalchemy import insert, select, text

from feedback_client.domain.value_objects.enums import MessageType
from feedback_client.infrastructure.db.base import Base
from feedback_client.infrastructure.db.migrations import (
    SCHEMA_VERSION,
    normalize_legacy_message,
    upgrade_schema,
)
from feedback_client.infrastructure.db.models import (
    LegacyStoredFileModel,
    MessageModel,
    PayloadModel,
    SchemaMetaModel,
)
from feedback_client.infrastructure.db.session import create_engine, create_session_factory
from feedback_client.infrastructure.db.uow import uow_factory


def test_text_message_becomes_text_only_compound():
    migrated = normalize_legacy_message({"type": "TextMessage", "body": "hi", "nonce": "n"})

    assert migrated == {
        "type": MessageType.COMPOUND.value,
        "body": "hi",
        "nonce": "n",
        "text_only": True,
    }


def test_file_message_keeps_its_attachment_flag():
    migrated = normalize_legacy_message({"type": "FileMessage", "nonce": "n"})
    assert migrated["type"] == "CompoundMessage"
    assert migrated["text_only"] is False


def test_automated_message_is_flagged():
    migrated = normalize_legacy_message({"type": "AutomatedMessage", "body": "Hi!"})
    assert migrated["automated"] is True
    assert migrated["text_only"] is True


def test_current_records_are_left_alone():
    assert normalize_legacy_message({"type": "CompoundMessage", "body": "x"}) is None
    assert normalize_legacy_message({"body": "untyped"}) is None


def test_non_string_types_are_left_alone():
    assert normalize_legacy_message({"type": ["TextMessage"]}) is None
    assert normalize_legacy_message({"type": {"name": "TextMessage"}}) is None


@pytest_asyncio.fixture
async def legacy_engine(tmp_path):
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'legacy.db'}")
    legacy_tables = [
        MessageModel.__table__,
        PayloadModel.__table__,
        LegacyStoredFileModel.__table__,
    ]
    async with engine.begin() as conn:
        await conn.run_sync(lambda c: Base.metadata.create_all(c, tables=legacy_tables))
        await conn.execute(insert(MessageModel.__table__), [
            {
                "nonce": "text-1", "server_id": "1", "client_created_at": 1.0,
                "state": "saved", "json": {"type": "TextMessage", "body": "hello"},
            },
            {
                "nonce": "abc", "server_id": "2", "client_created_at": 2.0,
                "state": "saved", "json": {"type": "FileMessage", "nonce": "abc"},
            },
            {
                "nonce": "auto-1", "server_id": "3", "client_created_at": 3.0,
                "state": "saved", "json": {"type": "AutomatedMessage", "body": "Welcome"},
            },
            {
                "nonce": "typed-list", "server_id": "5", "client_created_at": 5.0,
                "state": "saved", "json": {"type": ["TextMessage"], "body": "odd"},
            },
        ])
        await conn.execute(text(
            "INSERT INTO message (nonce, client_created_at, state, read, hidden, is_outgoing, json) "
            "VALUES ('broken', 4.0, 'saved', 0, 0, 0, '{not json')"
        ))
        await conn.execute(insert(PayloadModel.__table__), [
            {"base_type": "message", "json": {"type": "TextMessage", "body": "queued", "nonce": "q"}},
            {"base_type": "event", "json": {"type": "TextMessage", "label": "untouched"}},
        ])
        await conn.execute(insert(LegacyStoredFileModel.__table__), [
            {
                "id": "apptentive-file-abc", "mime_type": "image/jpeg",
                "original_uri": "content://photos/9", "local_uri": "abc.jpg",
                "remote_uri": None,
            },
            {
                "id": "apptentive-file-gone", "mime_type": "image/jpeg",
                "original_uri": None, "local_uri": None, "remote_uri": None,
            },
        ])
    yield engine
    await engine.dispose()


@pytest.mark.asyncio
async def test_fresh_database_starts_at_current_version(engine):
    async with engine.connect() as conn:
        version = (await conn.execute(select(SchemaMetaModel.version))).scalar_one()
    assert version == SCHEMA_VERSION


@pytest.mark.asyncio
async def test_legacy_messages_are_rewritten(legacy_engine, tmp_path):
    assert await upgrade_schema(legacy_engine, tmp_path) == SCHEMA_VERSION

    async with legacy_engine.connect() as conn:
        rows = dict(
            (await conn.execute(text("SELECT nonce, json FROM message"))).all()
        )
    assert json.loads(rows["text-1"])["type"] == "CompoundMessage"
    assert json.loads(rows["abc"])["text_only"] is False
    assert json.loads(rows["auto-1"])["automated"] is True
    assert rows["broken"] == "{not json"
    assert json.loads(rows["typed-list"]) == {"type": ["TextMessage"], "body": "odd"}


@pytest.mark.asyncio
async def test_pending_message_payloads_are_rewritten(legacy_engine, tmp_path):
    await upgrade_schema(legacy_engine, tmp_path)
    uows = uow_factory(create_session_factory(legacy_engine))

    async with uows() as uow:
        head = await uow.payloads.peek_oldest()
        await uow.payloads.delete_by_id(head.database_id)
        await uow.commit()
        event = await uow.payloads.peek_oldest()

    assert head.body == {
        "type": "CompoundMessage", "body": "queued", "nonce": "q", "text_only": True,
    }
    assert event.body == {"type": "TextMessage", "label": "untouched"}


@pytest.mark.asyncio
async def test_legacy_files_move_to_the_message_file_store(legacy_engine, tmp_path):
    await upgrade_schema(legacy_engine, tmp_path)
    uows = uow_factory(create_session_factory(legacy_engine))

    async with uows() as uow:
        files = await uow.files.list_for_nonce("abc")
        assert await uow.files.list_for_nonce("gone") == []

    [stored] = files
    assert stored.local_cache_path == str((tmp_path / "abc.jpg").absolute())
    assert stored.mime_type == "image/jpeg"
    assert stored.source_uri_or_path == "content://photos/9"


@pytest.mark.asyncio
async def test_upgrade_runs_once(legacy_engine, tmp_path):
    await upgrade_schema(legacy_engine, tmp_path)
    await upgrade_schema(legacy_engine, tmp_path)

    uows = uow_factory(create_session_factory(legacy_engine))
    async with uows() as uow:
        assert len(await uow.files.list_for_nonce("abc")) == 1
