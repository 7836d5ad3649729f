"""Maps raw HTTP results onto delivery outcomes.

The status boundaries live in a StatusTable so that the mapping can be
configured and tested instead of being implied by scattered comparisons.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from feedback_client.application.ports.transport import RawResult
from feedback_client.domain.value_objects.enums import SendOutcome

DEFAULT_TEMPORARY_STATUSES = frozenset({408, 429})


@dataclass(frozen=True, slots=True)
class StatusTable:
    # 4xx codes that mean "try again later" rather than "never".
    temporary_statuses: frozenset[int] = field(default=DEFAULT_TEMPORARY_STATUSES)

    @classmethod
    def from_statuses(cls, statuses: Iterable[int]) -> StatusTable:
        return cls(temporary_statuses=frozenset(statuses))

    def outcome_for(self, status: int) -> SendOutcome:
        if 200 <= status < 300:
            return SendOutcome.SUCCESS
        if status in self.temporary_statuses or 500 <= status < 600:
            return SendOutcome.REJECTED_TEMPORARILY
        if 400 <= status < 500:
            return SendOutcome.REJECTED_PERMANENTLY
        # 1xx/3xx are not part of the protocol; keep the record and retry.
        return SendOutcome.REJECTED_TEMPORARILY


class ResponseClassifier:
    def __init__(self, table: StatusTable | None = None) -> None:
        self._table = table or StatusTable()

    @property
    def table(self) -> StatusTable:
        return self._table

    def classify(self, result: RawResult) -> SendOutcome:
        if result.bad_payload:
            return SendOutcome.BAD_PAYLOAD
        if result.transport_error is not None or result.status_code is None:
            return SendOutcome.NETWORK_FAILURE
        return self._table.outcome_for(result.status_code)
