"""Wire models for the remote conversation API."""
from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class MessageSentResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    created_at: float


class SenderSchema(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str | None = None
    name: str | None = None
    profile_photo: str | None = None


class RemoteAttachment(BaseModel):
    model_config = ConfigDict(extra="ignore")

    url: str
    content_type: str = "application/octet-stream"
    original_name: str | None = None
    size: int | None = None


class RemoteMessage(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str
    nonce: str | None = None
    created_at: float | None = None
    client_created_at: float | None = None
    type: str = "CompoundMessage"
    body: str | None = None
    hidden: bool = False
    automated: bool = False
    sender: SenderSchema | None = None
    attachments: list[RemoteAttachment] = Field(default_factory=list)

    def content(self) -> dict[str, Any]:
        """The JSON body stored alongside the local message row."""
        data = self.model_dump(
            exclude={"id", "nonce", "created_at", "client_created_at", "hidden", "attachments"},
            exclude_none=True,
        )
        data.setdefault("text_only", not self.attachments)
        return data


class MessageListResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    # Raw items; each one is validated separately as a RemoteMessage.
    items: list[Any] = Field(default_factory=list)
