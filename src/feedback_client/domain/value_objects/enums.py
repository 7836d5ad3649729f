from __future__ import annotations

from enum import StrEnum


class MessageState(StrEnum):
    STORED = "stored"
    SENDING = "sending"
    SAVED = "saved"
    SENT = "sent"


class MessageType(StrEnum):
    COMPOUND = "CompoundMessage"
    # Legacy discriminators, only found in records written by schema 1.
    TEXT = "TextMessage"
    FILE = "FileMessage"
    AUTOMATED = "AutomatedMessage"


class PayloadBaseType(StrEnum):
    MESSAGE = "message"
    EVENT = "event"
    DEVICE = "device"
    SDK = "sdk"
    APP_RELEASE = "app_release"
    PERSON = "person"
    SURVEY = "survey"


class PauseReason(StrEnum):
    NETWORK = "network"
    SERVER = "server"


class SendOutcome(StrEnum):
    SUCCESS = "success"
    REJECTED_PERMANENTLY = "rejected_permanently"
    REJECTED_TEMPORARILY = "rejected_temporarily"
    BAD_PAYLOAD = "bad_payload"
    NETWORK_FAILURE = "network_failure"

    @property
    def is_terminal(self) -> bool:
        return self in (SendOutcome.REJECTED_PERMANENTLY, SendOutcome.BAD_PAYLOAD)

    @property
    def is_transient(self) -> bool:
        return self in (SendOutcome.REJECTED_TEMPORARILY, SendOutcome.NETWORK_FAILURE)

    @property
    def pause_reason(self) -> PauseReason | None:
        if self is SendOutcome.NETWORK_FAILURE:
            return PauseReason.NETWORK
        if self is SendOutcome.REJECTED_TEMPORARILY:
            return PauseReason.SERVER
        return None
