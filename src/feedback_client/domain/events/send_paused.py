from __future__ import annotations

from dataclasses import dataclass

from feedback_client.domain.value_objects.enums import PauseReason


@dataclass(frozen=True, slots=True)
class SendPaused:
    reason: PauseReason


@dataclass(frozen=True, slots=True)
class SendResumed:
    pass
