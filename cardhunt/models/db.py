"""
SQLAlchemy ORM models for persistent storage.

All game records (teams, cards, counters) live in a single document table,
addressed by (collection, doc_id). The version column backs optimistic
concurrency: every write bumps it, and transactional writes only apply when
the version still matches the one observed when the document was read.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import (
    JSON,
    DateTime,
    Integer,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class DocumentDB(Base):
    """
    A single stored document.

    `data` holds the document fields exactly as clients see them
    (camelCase keys, e.g. teamName, cardsCaught, isCaught).
    """

    __tablename__ = "documents"
    __table_args__ = (UniqueConstraint("collection", "doc_id", name="uq_collection_doc"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    collection: Mapped[str] = mapped_column(String(64), index=True)
    doc_id: Mapped[str] = mapped_column(String(255), index=True)
    data: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict)
    version: Mapped[int] = mapped_column(Integer, default=1)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    def __repr__(self) -> str:
        return f"<DocumentDB(collection={self.collection}, doc_id={self.doc_id}, v={self.version})>"
