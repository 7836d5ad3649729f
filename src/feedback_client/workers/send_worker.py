"""Send worker: drains the payload queue oldest-first, one request at a time.

A transient failure (network or server backpressure) pauses the whole queue
with the failed payload still at its head, so nothing behind it can overtake
it. A terminal failure drops only the offending payload and the cycle moves on.
"""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Callable, Sequence

from feedback_client.application.exceptions import StoreError, ValidationError
from feedback_client.application.policies.classifier import ResponseClassifier
from feedback_client.application.policies.retry import RetryPolicy
from feedback_client.application.ports.bus import EventPublisher
from feedback_client.application.ports.transport import RawResult, Transport
from feedback_client.application.uow import UnitOfWork, UoWFactory
from feedback_client.domain.entities.payload import Payload
from feedback_client.domain.entities.stored_file import StoredFile
from feedback_client.domain.events.message_sent import MessageSent
from feedback_client.domain.events.send_paused import SendPaused, SendResumed
from feedback_client.domain.value_objects.enums import PauseReason, SendOutcome
from feedback_client.infrastructure.http.routes import route_for
from feedback_client.services import delivery_service
from feedback_client.services.message_service import discard_local_files
from feedback_client.workers.scheduled import ScheduledTask

logger = logging.getLogger(__name__)


class WorkerStatus(StrEnum):
    IDLE = "idle"
    SENDING = "sending"
    PAUSED = "paused"


@dataclass
class RetryState:
    pause_reason: PauseReason | None = None
    paused_until: float = 0.0
    consecutive_failures: dict[int, int] = field(default_factory=dict)

    def record_failure(self, payload_id: int) -> int:
        attempts = self.consecutive_failures.get(payload_id, 0) + 1
        self.consecutive_failures[payload_id] = attempts
        return attempts

    def forget(self, payload_id: int) -> None:
        self.consecutive_failures.pop(payload_id, None)

    def pause(self, reason: PauseReason, until: float) -> None:
        self.pause_reason = reason
        self.paused_until = until

    def clear_pause(self) -> None:
        self.pause_reason = None
        self.paused_until = 0.0


class SendWorker:
    def __init__(
        self,
        uow_factory: UoWFactory,
        transport: Transport,
        publisher: EventPublisher,
        *,
        classifier: ResponseClassifier | None = None,
        retry_policy: RetryPolicy | None = None,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self._uow_factory = uow_factory
        self._transport = transport
        self._publisher = publisher
        self._classifier = classifier or ResponseClassifier()
        self._retry = retry_policy or RetryPolicy()
        self._monotonic = monotonic
        self._slot = asyncio.Lock()
        self._retry_state = RetryState()
        self._status = WorkerStatus.IDLE
        self._task = ScheduledTask("payload-send-worker", self.run_once, self._next_wakeup)

    # ---- state

    @property
    def status(self) -> WorkerStatus:
        return self._status

    @property
    def pause_reason(self) -> PauseReason | None:
        return self._retry_state.pause_reason

    @property
    def retry_state(self) -> RetryState:
        return self._retry_state

    # ---- lifecycle

    async def start(self) -> None:
        await self._task.start()

    async def stop(self) -> None:
        await self._task.stop()

    def wake(self) -> None:
        """New payloads are waiting. Does nothing while paused."""
        self._task.wake()

    def resume(self) -> None:
        """Explicit resume signal, e.g. connectivity regained or host foregrounded."""
        if self._retry_state.pause_reason is not None:
            self._retry_state.clear_pause()
            self._status = WorkerStatus.IDLE
            logger.info("Sending resumed")
            self._publisher.publish(SendResumed())
        self._task.wake()

    def _next_wakeup(self) -> float | None:
        if self._retry_state.pause_reason is None or not self._retry.resume_on_timer:
            return None
        return max(0.0, self._retry_state.paused_until - self._monotonic())

    # ---- cycle

    async def run_once(self) -> int:
        """Send payloads until the queue is empty or paused. Returns how many finished."""
        if self._slot.locked():
            logger.debug("Send cycle already running")
            return 0
        async with self._slot:
            finished = 0
            try:
                while self._may_send():
                    if not await self._send_next():
                        break
                    finished += 1
            except StoreError:
                logger.exception("Payload store failed; send cycle stopped")
            if self._status is WorkerStatus.SENDING:
                self._status = WorkerStatus.IDLE
            return finished

    def _may_send(self) -> bool:
        if self._retry_state.pause_reason is None:
            return True
        if self._retry.resume_on_timer and self._monotonic() >= self._retry_state.paused_until:
            self._retry_state.clear_pause()
            logger.info("Retry timer elapsed; sending resumed")
            self._publisher.publish(SendResumed())
            return True
        return False

    async def _send_next(self) -> bool:
        """Attempt the oldest payload. Returns False when the cycle must stop."""
        async with self._uow_factory() as uow:
            payload = await uow.payloads.peek_oldest()
            attachments = await self._attachments_for(uow, payload) if payload else ()

        if payload is None:
            self._status = WorkerStatus.IDLE
            return False

        self._status = WorkerStatus.SENDING
        result = await self._deliver(payload, attachments)
        outcome = self._classifier.classify(result)
        logger.debug("Payload %d (%s): %s", payload.database_id, payload.base_type, outcome)

        if outcome is SendOutcome.SUCCESS:
            async with self._uow_factory() as uow:
                completion = await delivery_service.complete_delivered(uow, payload, result)
            self._finish(payload, outcome, completion)
            return True

        if outcome.is_transient:
            attempts = self._retry_state.record_failure(payload.database_id)
            if self._retry.should_retry(outcome, attempts):
                self._pause(outcome.pause_reason, attempts)
                return False
            logger.warning(
                "Giving up on payload %d after %d attempts", payload.database_id, attempts,
            )

        async with self._uow_factory() as uow:
            completion = await delivery_service.complete_dropped(uow, payload)
        logger.warning("Dropped payload %d: %s", payload.database_id, outcome)
        self._finish(payload, outcome, completion)
        return True

    def _finish(
        self,
        payload: Payload,
        outcome: SendOutcome,
        completion: delivery_service.Completion,
    ) -> None:
        self._retry_state.forget(payload.database_id)
        discard_local_files(completion.discarded_files)
        if completion.message is not None:
            self._publisher.publish(MessageSent(outcome, completion.message))

    def _pause(self, reason: PauseReason | None, attempts: int) -> None:
        reason = reason or PauseReason.SERVER
        delay = self._retry.backoff_delay(attempts)
        self._retry_state.pause(reason, self._monotonic() + delay)
        self._status = WorkerStatus.PAUSED
        logger.info("Sending paused (%s), next attempt in %.1fs", reason, delay)
        self._publisher.publish(SendPaused(reason))

    async def _attachments_for(
        self, uow: UnitOfWork, payload: Payload,
    ) -> Sequence[StoredFile] | None:
        """Files to upload with a message payload; None if they have gone missing."""
        nonce = payload.nonce
        if nonce is None:
            return ()
        files = await uow.files.list_for_nonce(nonce)
        if not files and payload.body.get("text_only") is False:
            return None
        return files

    async def _deliver(
        self, payload: Payload, attachments: Sequence[StoredFile] | None,
    ) -> RawResult:
        if attachments is None:
            logger.error("Attachments for payload %d are missing", payload.database_id)
            return RawResult(bad_payload=True)
        try:
            route = route_for(payload.base_type)
            endpoint = route.resolve(payload.body)
        except ValidationError as exc:
            logger.error("Cannot route payload %d: %s", payload.database_id, exc.detail)
            return RawResult(bad_payload=True)
        return await self._transport.send(endpoint, route.method, payload.body, attachments)
