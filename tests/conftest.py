"""Shared test fixtures."""
from __future__ import annotations

import dataclasses
import json
import uuid
from dataclasses import dataclass, field
from typing import Any, Sequence

import pytest
import pytest_asyncio

from feedback_client.application.ports.transport import RawResult
from feedback_client.domain.entities.message import Message
from feedback_client.domain.entities.payload import Payload
from feedback_client.domain.entities.stored_file import StoredFile
from feedback_client.domain.value_objects.enums import MessageState, MessageType
from feedback_client.infrastructure.db.migrations import upgrade_schema
from feedback_client.infrastructure.db.session import create_engine, create_session_factory
from feedback_client.infrastructure.db.uow import uow_factory


def ok(body: dict[str, Any] | None = None, status: int = 200) -> RawResult:
    return RawResult(status_code=status, body_text=json.dumps(body or {}))


def sent_ok(server_id: str = "srv-1", created_at: float = 1000.0) -> RawResult:
    return ok({"id": server_id, "created_at": created_at}, status=201)


def make_message(
    *,
    nonce: str | None = None,
    text: str | None = "hello",
    state: MessageState = MessageState.SENDING,
    server_id: str | None = None,
    created_at: float | None = None,
    client_created_at: float = 100.0,
    read: bool = True,
    hidden: bool = False,
    is_outgoing: bool = True,
    attachments: tuple[StoredFile, ...] = (),
) -> Message:
    return Message(
        nonce=nonce or str(uuid.uuid4()),
        client_created_at=client_created_at,
        state=state,
        body={
            "type": MessageType.COMPOUND.value,
            "body": text,
            "text_only": not attachments,
            "automated": False,
        },
        server_id=server_id,
        created_at=created_at,
        read=read,
        hidden=hidden,
        is_outgoing=is_outgoing,
        attachments=attachments,
    )


def make_stored_file(
    path: str,
    *,
    nonce: str = "pending",
    mime_type: str = "image/png",
    source: str | None = None,
) -> StoredFile:
    return StoredFile(
        nonce=nonce,
        local_cache_path=path,
        mime_type=mime_type,
        source_uri_or_path=source,
    )


@dataclass(frozen=True)
class SentRequest:
    endpoint: str
    method: str
    body: dict[str, Any] | None
    attachments: tuple[StoredFile, ...]


@dataclass
class FakeTransport:
    """Records every call and answers from a scripted queue (then ``default``)."""

    results: list[RawResult] = field(default_factory=list)
    default: RawResult = field(default_factory=sent_ok)
    calls: list[SentRequest] = field(default_factory=list)

    def script(self, *results: RawResult) -> None:
        self.results.extend(results)

    async def send(
        self,
        endpoint: str,
        method: str,
        body: dict[str, Any] | None = None,
        attachments: Sequence[StoredFile] = (),
    ) -> RawResult:
        self.calls.append(SentRequest(endpoint, method, body, tuple(attachments)))
        if self.results:
            return self.results.pop(0)
        return self.default

    @property
    def sent_nonces(self) -> list[str | None]:
        return [c.body.get("nonce") if c.body else None for c in self.calls]


@dataclass
class RecordingPublisher:
    events: list[Any] = field(default_factory=list)

    def publish(self, event: Any) -> None:
        self.events.append(event)

    def of_type(self, kind: type) -> list[Any]:
        return [e for e in self.events if isinstance(e, kind)]


@dataclass
class FakeClock:
    current: float = 1_714_564_800.0

    def time(self) -> float:
        return self.current


@dataclass
class FakeMonotonic:
    value: float = 0.0

    def __call__(self) -> float:
        return self.value

    def advance(self, seconds: float) -> None:
        self.value += seconds


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'feedback.db'}")
    await upgrade_schema(engine, tmp_path)
    yield engine
    await engine.dispose()


@pytest.fixture
def uows(engine):
    return uow_factory(create_session_factory(engine))


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def publisher() -> RecordingPublisher:
    return RecordingPublisher()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def monotonic() -> FakeMonotonic:
    return FakeMonotonic()


@dataclass
class FakePayloadStore:
    _rows: dict[int, tuple[str, dict[str, Any]]] = field(default_factory=dict)
    _next_id: int = 1

    async def enqueue(self, base_type, body):
        payload_id = self._next_id
        self._next_id += 1
        self._rows[payload_id] = (base_type, body)
        return payload_id

    async def peek_oldest(self):
        if not self._rows:
            return None
        payload_id = min(self._rows)
        base_type, body = self._rows[payload_id]
        return Payload(database_id=payload_id, base_type=base_type, body=body)

    async def delete_by_id(self, payload_id):
        self._rows.pop(payload_id, None)

    async def delete_all(self):
        self._rows.clear()

    async def count(self):
        return len(self._rows)


@dataclass
class FakeMessageStore:
    _rows: dict[str, Message] = field(default_factory=dict)

    async def upsert_by_nonce(self, message):
        self._rows[message.nonce] = message

    async def get_by_nonce(self, nonce):
        return self._rows.get(nonce)

    async def delete_by_nonce(self, nonce):
        self._rows.pop(nonce, None)

    async def delete_all(self):
        self._rows.clear()

    async def list_ordered(self, *, include_hidden=False):
        return [m for m in self._rows.values() if include_hidden or not m.hidden]

    async def mark_read(self, nonces):
        changed = 0
        for nonce in nonces:
            message = self._rows.get(nonce)
            if message is not None and not message.read:
                self._rows[nonce] = dataclasses.replace(message, read=True)
                changed += 1
        return changed


@dataclass
class FakeFileStore:
    _rows: dict[str, list[StoredFile]] = field(default_factory=dict)

    async def replace_for_nonce(self, nonce, files):
        self._rows[nonce] = list(files)

    async def list_for_nonce(self, nonce):
        return list(self._rows.get(nonce, []))

    async def list_for_nonces(self, nonces):
        return {n: list(self._rows[n]) for n in nonces if n in self._rows}

    async def delete_for_nonce(self, nonce):
        return len(self._rows.pop(nonce, []))


@dataclass
class FakeUoW:
    """In-memory UoW for service unit tests."""
    payloads: FakePayloadStore = field(default_factory=FakePayloadStore)
    messages: FakeMessageStore = field(default_factory=FakeMessageStore)
    files: FakeFileStore = field(default_factory=FakeFileStore)
    _committed: bool = False

    async def flush(self) -> None:
        pass

    async def commit(self) -> None:
        self._committed = True

    async def rollback(self) -> None:
        pass
