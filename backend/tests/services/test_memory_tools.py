"""Memory Tools — tests for the sandbox tools agents use to read and write memory."""

import pytest

from coachflow.core.errors import ErrorKind
from coachflow.core.tool_models import ToolExecutionContext
from coachflow.services.goal_tracker import GoalProgressTracker
from coachflow.services.memory_tools import register_memory_tools


@pytest.fixture
def tools(sandbox, memory):
    register_memory_tools(sandbox, memory, GoalProgressTracker())
    return sandbox


def _ctx(user_id="u1"):
    return ToolExecutionContext(user_id=user_id, session_id="s1", agent_name="budget_coach")


def test_all_memory_tools_registered(tools):
    assert set(tools.tool_names()) == {
        "store_user_preference", "store_insight",
        "get_user_memory_profile", "track_goal_progress",
    }
    assert tools.get_tool("store_insight").requires_auth is True
    assert tools.get_tool("track_goal_progress").requires_auth is False


@pytest.mark.asyncio
async def test_store_preference_then_read_profile(tools):
    stored = await tools.execute(
        "store_user_preference",
        {"key": "communication_style", "value": "concise"}, _ctx(),
    )
    assert stored.success is True
    assert stored.result["category"] == "communication"

    profile = await tools.execute("get_user_memory_profile", {}, _ctx())
    assert profile.result["is_new_user"] is False
    assert profile.result["preferences"]["communication_style"] == "concise"
    assert "learnings" in profile.result


@pytest.mark.asyncio
async def test_profile_without_learnings(tools):
    result = await tools.execute(
        "get_user_memory_profile", {"include_learnings": False}, _ctx(),
    )
    assert "learnings" not in result.result
    assert result.result["context"]["last_interaction"] is None


@pytest.mark.asyncio
async def test_store_insight_requires_user(tools):
    result = await tools.execute(
        "store_insight", {"insight": "Saves monthly", "category": "success"}, _ctx(""),
    )
    assert result.error_kind is ErrorKind.AUTH_REQUIRED


@pytest.mark.asyncio
async def test_store_insight_rejects_bad_confidence(tools):
    result = await tools.execute(
        "store_insight",
        {"insight": "Saves monthly", "category": "success", "confidence": 3}, _ctx(),
    )
    assert result.error_kind is ErrorKind.VALIDATION


@pytest.mark.asyncio
async def test_track_goal_progress_tool(tools):
    result = await tools.execute(
        "track_goal_progress",
        {"goals": [{"id": "g1", "target_amount": 2000, "current_amount": 1500}]},
        _ctx(),
    )
    goal = result.result["goals"][0]
    assert goal["goal_id"] == "g1"
    assert goal["progress"]["percentage"] == 75.0
    assert goal["progress"]["next_milestone"]["percentage"] == 90
