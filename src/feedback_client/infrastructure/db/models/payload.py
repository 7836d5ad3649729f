from __future__ import annotations

from typing import Any

from sqlalchemy import JSON, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from feedback_client.infrastructure.db.base import Base


class PayloadModel(Base):
    __tablename__ = "payload"

    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True,
    )
    base_type: Mapped[str] = mapped_column(String(32), nullable=False)
    json: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)

    __table_args__ = (
        Index("ix_payload_base_type", "base_type"),
        # Ids must never be reused after the newest row is deleted.
        {"sqlite_autoincrement": True},
    )
