from __future__ import annotations

import time
from typing import Protocol


class Clock(Protocol):
    def time(self) -> float:
        """Seconds since the epoch, as stored in client_created_at."""
        ...


class SystemClock:
    def time(self) -> float:
        return time.time()
