"""MemoryRecord ORM — durable append-only log of everything remembered about a user.

Invariants:
    - Rows are inserted, never updated or deleted by the application
    - seq is monotonic per table; "newest first" means ORDER BY seq DESC
    - entry_id is the MemoryEntry.id (uuid hex), unique
    - (user_id, entry_type, seq) index serves every read the assembler makes
"""

from datetime import datetime, timezone

from sqlalchemy import JSON, BigInteger, DateTime, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from coachflow.db.base import Base


class MemoryRecord(Base):
    """One MemoryEntry row: interaction, preference, insight or goal."""
    __tablename__ = "memory_entries"
    __table_args__ = (
        Index("ix_memory_entries_user_type_seq", "user_id", "entry_type", "seq"),
    )

    # BigInteger on Postgres, INTEGER on SQLite so autoincrement works there
    seq: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"),
        primary_key=True, autoincrement=True,
    )
    entry_id: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)
    user_id: Mapped[str] = mapped_column(String(100), nullable=False)
    session_id: Mapped[str] = mapped_column(String(100), nullable=False)
    agent_name: Mapped[str] = mapped_column(String(50), nullable=False)
    entry_type: Mapped[str] = mapped_column(String(20), nullable=False)
    role: Mapped[str] = mapped_column(String(20), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    entry_metadata: Mapped[dict] = mapped_column(
        "metadata", JSON, nullable=False, default=dict,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
