"""Memory Repositories — durable append-only log of MemoryEntry records.

Invariants:
    - append() never mutates an existing entry; query() returns newest first
    - query() filters are conjunctive; None means "any"
    - SqlMemoryRepository orders by the autoincrement seq, not created_at,
      so entries written within the same clock tick keep insertion order
"""

import json
from collections import defaultdict

from sqlalchemy import func, select

from coachflow.core.domain_types import MemoryRole, MemoryType
from coachflow.core.memory_models import MemoryEntry
from coachflow.infrastructure.database import DatabaseSessionManager
from coachflow.models.memory_entry import MemoryRecord


class InMemoryMemoryRepository:
    """Process-local log. Default backend for development and tests."""

    def __init__(self):
        self._entries: dict[str, list[MemoryEntry]] = defaultdict(list)

    async def append(self, entry: MemoryEntry) -> None:
        self._entries[entry.user_id].append(entry)

    async def query(
        self,
        user_id: str,
        *,
        entry_type: MemoryType | None = None,
        agent_name: str | None = None,
        session_id: str | None = None,
        limit: int = 20,
    ) -> list[MemoryEntry]:
        if limit <= 0:
            return []
        matched: list[MemoryEntry] = []
        for entry in reversed(self._entries.get(user_id, [])):
            if entry_type is not None and entry.type != entry_type:
                continue
            if agent_name is not None and entry.agent_name != agent_name:
                continue
            if session_id is not None and entry.session_id != session_id:
                continue
            matched.append(entry)
            if len(matched) >= limit:
                break
        return matched

    async def count(self, user_id: str) -> int:
        return len(self._entries.get(user_id, []))


class SqlMemoryRepository:
    """memory_entries table via DatabaseSessionManager (errors → DatabaseError)."""

    def __init__(self, db_manager: DatabaseSessionManager):
        self.db_manager = db_manager

    async def append(self, entry: MemoryEntry) -> None:
        async with self.db_manager.session() as db:
            db.add(_to_record(entry))
            await db.commit()

    async def query(
        self,
        user_id: str,
        *,
        entry_type: MemoryType | None = None,
        agent_name: str | None = None,
        session_id: str | None = None,
        limit: int = 20,
    ) -> list[MemoryEntry]:
        if limit <= 0:
            return []
        stmt = select(MemoryRecord).where(MemoryRecord.user_id == user_id)
        if entry_type is not None:
            stmt = stmt.where(MemoryRecord.entry_type == entry_type.value)
        if agent_name is not None:
            stmt = stmt.where(MemoryRecord.agent_name == agent_name)
        if session_id is not None:
            stmt = stmt.where(MemoryRecord.session_id == session_id)
        stmt = stmt.order_by(MemoryRecord.seq.desc()).limit(limit)

        async with self.db_manager.session() as db:
            result = await db.execute(stmt)
            return [_to_entry(r) for r in result.scalars().all()]

    async def count(self, user_id: str) -> int:
        stmt = select(func.count()).select_from(MemoryRecord).where(
            MemoryRecord.user_id == user_id,
        )
        async with self.db_manager.session() as db:
            result = await db.execute(stmt)
            return int(result.scalar_one())


def _to_record(entry: MemoryEntry) -> MemoryRecord:
    return MemoryRecord(
        entry_id=entry.id,
        user_id=entry.user_id,
        session_id=entry.session_id,
        agent_name=entry.agent_name,
        entry_type=entry.type.value,
        role=entry.role.value,
        content=entry.content,
        entry_metadata=_json_safe(entry.metadata),
        created_at=entry.created_at,
    )


def _json_safe(metadata: dict) -> dict:
    """Round-trip through JSON so datetimes and enums land as strings."""
    return json.loads(json.dumps(metadata, default=str))


def _to_entry(record: MemoryRecord) -> MemoryEntry:
    return MemoryEntry(
        user_id=record.user_id,
        agent_name=record.agent_name,
        session_id=record.session_id,
        type=MemoryType(record.entry_type),
        role=MemoryRole(record.role),
        content=record.content,
        metadata=dict(record.entry_metadata or {}),
        id=record.entry_id,
        created_at=record.created_at,
    )
