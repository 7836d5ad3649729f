from __future__ import annotations

from typing import NewType

PayloadId = NewType("PayloadId", int)
