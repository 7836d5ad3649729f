from __future__ import annotations

from urllib.parse import parse_qs, urlsplit

import pytest

from feedback_client.application.ports.transport import RawResult
from feedback_client.domain.events.new_incoming_message import NewIncomingMessage
from feedback_client.domain.events.unread_count_changed import UnreadCountChanged
from feedback_client.domain.value_objects.enums import MessageState
from feedback_client.services.reconcile_service import ReconcileResult, Reconciler
from tests.conftest import make_message, ok


def remote(server_id: str, *, nonce: str | None = None, sender: str = "agent-1", **extra) -> dict:
    data = {
        "id": server_id,
        "nonce": nonce,
        "created_at": float(server_id),
        "type": "CompoundMessage",
        "body": f"message {server_id}",
        "sender": {"id": sender, "name": "Support"},
    }
    data.update(extra)
    return data


LISTING = [
    remote("101", nonce="in-1"),
    remote("102", nonce="out-1", sender="person-1"),
    remote("103", nonce="in-2"),
    remote("104", nonce="in-3"),
]


@pytest.fixture
def reconciler(uows, transport, publisher, tmp_path) -> Reconciler:
    return Reconciler(
        uows, transport, publisher, person_id="person-1", files_dir=tmp_path,
    )


@pytest.mark.asyncio
async def test_incoming_messages_count_as_unread(reconciler, transport, publisher, uows):
    transport.script(ok({"items": LISTING}))

    result = await reconciler.fetch_and_store_messages()

    assert result.fetched == 4
    assert result.incoming == 3
    assert result.unread_count == 3
    assert result.notification.nonce == "in-1"
    assert [e.message.nonce for e in publisher.of_type(NewIncomingMessage)] == [
        "in-1", "in-2", "in-3",
    ]
    assert publisher.events[-1] == UnreadCountChanged(3)

    async with uows() as uow:
        outgoing = await uow.messages.get_by_nonce("out-1")
    assert outgoing.is_outgoing and outgoing.read
    assert outgoing.state is MessageState.SAVED


@pytest.mark.asyncio
async def test_fetching_the_same_list_twice_is_idempotent(reconciler, transport, publisher, uows):
    transport.script(ok({"items": LISTING}), ok({"items": LISTING}))

    await reconciler.fetch_and_store_messages()
    publisher.events.clear()
    again = await reconciler.fetch_and_store_messages()

    assert again.incoming == 0
    assert again.notification is None
    assert again.unread_count == 3
    assert publisher.events == [UnreadCountChanged(3)]
    async with uows() as uow:
        assert len(await uow.messages.list_ordered(include_hidden=True)) == 4


@pytest.mark.asyncio
async def test_pending_local_message_is_merged_not_duplicated(reconciler, transport, uows):
    async with uows() as uow:
        await uow.messages.upsert_by_nonce(make_message(nonce="mine", text="hi"))
        await uow.commit()
    # Sender id unknown to the server listing: still outgoing because it was sent here.
    transport.script(ok({"items": [remote("200", nonce="mine", sender="someone")]}))

    result = await reconciler.fetch_and_store_messages()

    assert result.incoming == 0
    async with uows() as uow:
        [message] = await uow.messages.list_ordered(include_hidden=True)
    assert message.nonce == "mine"
    assert message.server_id == "200"
    assert message.state is MessageState.SAVED
    assert message.is_outgoing
    assert message.read
    assert message.client_created_at == 100.0


@pytest.mark.asyncio
async def test_fetch_asks_for_messages_after_last_received(reconciler, transport, uows):
    async with uows() as uow:
        await uow.messages.upsert_by_nonce(
            make_message(nonce="old", server_id="0005", state=MessageState.SAVED),
        )
        await uow.commit()
    transport.script(ok({"items": []}))

    await reconciler.fetch_and_store_messages()

    [call] = transport.calls
    url = urlsplit(call.endpoint)
    assert call.method == "GET"
    assert url.path == "/conversation"
    assert parse_qs(url.query)["after_id"] == ["0005"]


@pytest.mark.asyncio
async def test_failed_fetch_changes_nothing(reconciler, transport, publisher, uows):
    transport.script(RawResult(status_code=503))

    assert await reconciler.fetch_and_store_messages() == ReconcileResult()

    assert publisher.events == []
    async with uows() as uow:
        assert await uow.messages.list_ordered(include_hidden=True) == []


@pytest.mark.asyncio
async def test_malformed_listing_is_ignored(reconciler, transport, publisher):
    transport.script(RawResult(status_code=200, body_text="{not json"))

    assert await reconciler.fetch_and_store_messages() == ReconcileResult()
    assert publisher.events == []


@pytest.mark.asyncio
async def test_malformed_items_are_skipped_not_the_whole_batch(reconciler, transport, uows):
    transport.script(ok({"items": [
        remote("101", nonce="in-1"),
        {"nonce": "in-2", "body": "no id"},
        remote("103", nonce="in-3", type=None),
        remote("104", nonce="in-4"),
    ]}))

    result = await reconciler.fetch_and_store_messages()

    assert result.fetched == 2
    assert result.incoming == 2
    async with uows() as uow:
        stored = await uow.messages.list_ordered(include_hidden=True)
    assert [m.nonce for m in stored] == ["in-1", "in-4"]


@pytest.mark.asyncio
async def test_message_without_nonce_gets_a_stable_one(reconciler, transport, uows):
    transport.script(ok({"items": [remote("300")]}), ok({"items": [remote("300")]}))

    await reconciler.fetch_and_store_messages()
    await reconciler.fetch_and_store_messages()

    async with uows() as uow:
        messages = await uow.messages.list_ordered(include_hidden=True)
    assert [m.nonce for m in messages] == ["remote-300"]


@pytest.mark.asyncio
async def test_local_read_state_survives_refetch(reconciler, transport, uows):
    transport.script(ok({"items": [remote("101", nonce="in-1")]}))
    await reconciler.fetch_and_store_messages()
    async with uows() as uow:
        await uow.messages.mark_read(["in-1"])
        await uow.commit()

    transport.script(ok({"items": [remote("101", nonce="in-1", body="edited")]}))
    result = await reconciler.fetch_and_store_messages()

    assert result.unread_count == 0
    async with uows() as uow:
        message = await uow.messages.get_by_nonce("in-1")
    assert message.read
    assert message.text == "edited"


@pytest.mark.asyncio
async def test_incoming_attachments_are_recorded(reconciler, transport, uows, tmp_path):
    transport.script(ok({"items": [remote(
        "400",
        nonce="in-files",
        attachments=[{
            "url": "https://cdn.test/a.png",
            "content_type": "image/png",
            "original_name": "a.png",
        }],
    )]}))

    await reconciler.fetch_and_store_messages()

    async with uows() as uow:
        message = await uow.messages.get_by_nonce("in-files")
    [attachment] = message.attachments
    assert attachment.remote_url == "https://cdn.test/a.png"
    assert attachment.mime_type == "image/png"
    assert attachment.local_cache_path.startswith(str(tmp_path))
    assert message.text_only is False


@pytest.mark.asyncio
async def test_hidden_remote_messages_are_stored_but_not_listed(reconciler, transport, uows):
    transport.script(ok({"items": [remote("500", nonce="h", hidden=True)]}))

    await reconciler.fetch_and_store_messages()

    async with uows() as uow:
        assert await uow.messages.list_ordered() == []
        assert await uow.messages.get_by_nonce("h") is not None
