from __future__ import annotations

from sqlalchemy import BigInteger, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from feedback_client.infrastructure.db.base import Base


class StoredFileModel(Base):
    """Files attached to a message, one row per file, keyed by message nonce."""

    __tablename__ = "compound_message_file_store"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    nonce: Mapped[str] = mapped_column(String(64), nullable=False)
    local_path: Mapped[str] = mapped_column(Text, nullable=False)
    mime_type: Mapped[str] = mapped_column(String(128), nullable=False)
    local_uri: Mapped[str | None] = mapped_column(Text, nullable=True)
    remote_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    creation_time: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    __table_args__ = (Index("ix_file_store_nonce", "nonce"),)


class LegacyStoredFileModel(Base):
    """Schema 1 file table: one file per message, id is ``file-<nonce>``."""

    __tablename__ = "file_store"

    id: Mapped[str] = mapped_column(String(128), primary_key=True)
    mime_type: Mapped[str | None] = mapped_column(String(128), nullable=True)
    original_uri: Mapped[str | None] = mapped_column(Text, nullable=True)
    local_uri: Mapped[str | None] = mapped_column(Text, nullable=True)
    remote_uri: Mapped[str | None] = mapped_column(Text, nullable=True)
