"""SqlMemoryRepository — tests against a file-backed SQLite database.

Tests cover:
    - append/query round trip keeps enums, content and metadata
    - query is newest-first by insertion, with conjunctive filters and a limit
    - non-JSON metadata values are stored as strings
    - the assembler works unchanged on top of the SQL log
"""

from datetime import datetime, timezone

import pytest

from coachflow.core.domain_types import MemoryRole, MemoryType
from coachflow.core.memory_models import MemoryEntry
from coachflow.db.base import Base
from coachflow.infrastructure.database import DatabaseSessionManager
from coachflow.infrastructure.memory_repository import SqlMemoryRepository
from coachflow.services.memory_assembler import MemoryAssembler
import coachflow.models  # noqa: F401


@pytest.fixture
async def db_manager(tmp_path):
    manager = DatabaseSessionManager(f"sqlite+aiosqlite:///{tmp_path}/memory.db")
    async with manager.engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield manager
    await manager.dispose()


@pytest.fixture
def sql_repository(db_manager):
    return SqlMemoryRepository(db_manager)


def _entry(content, entry_type=MemoryType.INTERACTION, **kwargs):
    kwargs.setdefault("user_id", "u1")
    kwargs.setdefault("agent_name", "budget_coach")
    kwargs.setdefault("session_id", "s1")
    kwargs.setdefault("role", MemoryRole.USER)
    return MemoryEntry(type=entry_type, content=content, **kwargs)


@pytest.mark.asyncio
async def test_append_and_query_round_trip(sql_repository):
    original = _entry("hello", metadata={"turn": "user", "nested": {"a": [1, 2]}})
    await sql_repository.append(original)
    [loaded] = await sql_repository.query("u1")
    assert loaded.id == original.id
    assert loaded.type is MemoryType.INTERACTION
    assert loaded.role is MemoryRole.USER
    assert loaded.content == "hello"
    assert loaded.metadata == {"turn": "user", "nested": {"a": [1, 2]}}


@pytest.mark.asyncio
async def test_query_newest_first_with_filters(sql_repository):
    await sql_repository.append(_entry("one"))
    await sql_repository.append(_entry("two", agent_name="financial_advisor"))
    await sql_repository.append(_entry("pref", MemoryType.PREFERENCE))
    await sql_repository.append(_entry("three"))
    await sql_repository.append(_entry("other user", user_id="u2"))

    interactions = await sql_repository.query("u1", entry_type=MemoryType.INTERACTION)
    assert [e.content for e in interactions] == ["three", "two", "one"]
    coach = await sql_repository.query(
        "u1", entry_type=MemoryType.INTERACTION, agent_name="budget_coach", limit=1,
    )
    assert [e.content for e in coach] == ["three"]
    assert await sql_repository.query("u1", limit=0) == []
    assert await sql_repository.count("u1") == 4


@pytest.mark.asyncio
async def test_non_json_metadata_is_stringified(sql_repository):
    when = datetime(2026, 3, 1, tzinfo=timezone.utc)
    await sql_repository.append(_entry("x", metadata={"at": when}))
    [loaded] = await sql_repository.query("u1")
    assert loaded.metadata["at"] == str(when)


@pytest.mark.asyncio
async def test_assembler_on_sql_log(sql_repository):
    memory = MemoryAssembler(sql_repository)
    await memory.store_preference("u1", "budget_coach", "s1", "budgeting_style", "zero_based")
    await memory.store_interaction("u1", "budget_coach", "s1", "Plan my budget", "Sure")
    fresh = MemoryAssembler(sql_repository)
    ctx = await fresh.build_agent_memory_context("u1", "budget_coach", "s1")
    assert ctx.user_profile.preferences.budgeting_style == "zero_based"
    assert ctx.user_profile.context.current_focus == "budgeting"
    assert [e.content for e in ctx.conversation_history] == ["Plan my budget", "Sure"]
