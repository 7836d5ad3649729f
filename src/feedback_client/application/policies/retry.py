from __future__ import annotations

from dataclasses import dataclass

from feedback_client.domain.value_objects.enums import SendOutcome

BASE_DELAY_SECONDS = 5.0
MAX_DELAY_SECONDS = 300.0


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    base_delay: float = BASE_DELAY_SECONDS
    max_delay: float = MAX_DELAY_SECONDS
    # None retries transient failures forever.
    max_attempts: int | None = None
    resume_on_timer: bool = True

    def should_retry(self, outcome: SendOutcome, attempt: int) -> bool:
        """attempt is the number of failed sends of this payload so far."""
        if not outcome.is_transient:
            return False
        if self.max_attempts is None:
            return True
        return attempt < self.max_attempts

    def backoff_delay(self, attempt: int) -> float:
        if attempt <= 0:
            return 0.0
        exponent = min(attempt - 1, 32)
        return min(self.base_delay * (2 ** exponent), self.max_delay)
