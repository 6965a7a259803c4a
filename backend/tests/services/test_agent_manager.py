"""Agent Manager — tests for runs, routing, handoff delegation and metrics.

Tests cover:
    - Typed errors for unknown agent, not-ready agent, empty message, agent failure
    - Memory context and goal tracking reach the agent; the caller's context is untouched
    - Successful runs store the interaction; failed runs store nothing
    - route_to_agent follows strong advice and falls back on weak advice
    - get_agent_metrics reports per-agent counters and the handoff system
"""

import pytest

from coachflow.core.agent_models import RunContext
from coachflow.core.domain_types import MemoryRole, MemoryType
from coachflow.core.errors import (
    AgentNotReadyError, ParameterValidationError, ResourceNotFoundError,
    TransitionFailureError,
)
from coachflow.core.handoff_models import RoutingDecision

from tests.services.fakes import FakeAgent


def _context(**kwargs):
    kwargs.setdefault("user_id", "u1")
    kwargs.setdefault("session_id", "s1")
    return RunContext(**kwargs)


@pytest.mark.asyncio
async def test_unknown_agent_raises_not_found(manager):
    with pytest.raises(ResourceNotFoundError) as exc:
        await manager.run_agent("nonexistent", "hi", _context())
    assert exc.value.http_status == 404


@pytest.mark.asyncio
async def test_not_ready_agent_raises(manager, fake_agents):
    fake_agents["budget_coach"].ready = False
    with pytest.raises(AgentNotReadyError):
        await manager.run_agent("budget_coach", "hi", _context())


@pytest.mark.asyncio
async def test_empty_message_raises_validation(manager):
    with pytest.raises(ParameterValidationError):
        await manager.run_agent("budget_coach", "   ", _context())


@pytest.mark.asyncio
async def test_agent_failure_raises_transition_failure(manager, fake_agents, repository):
    fake_agents["budget_coach"].fail = "model down"
    with pytest.raises(TransitionFailureError) as exc:
        await manager.run_agent("budget_coach", "hi", _context())
    assert "model down" in exc.value.message
    assert await repository.count("u1") == 0
    assert manager.get_agent_metrics()["budget_coach"]["failures"] == 1


@pytest.mark.asyncio
async def test_successful_run_stores_interaction(manager, repository):
    response = await manager.run_agent(
        "budget_coach", "Plan my month", _context(financial={"income": 3000}),
    )
    assert response == "budget_coach response"
    entries = await repository.query("u1", entry_type=MemoryType.INTERACTION)
    assert [e.role for e in entries] == [MemoryRole.ASSISTANT, MemoryRole.USER]
    assert entries[1].content == "Plan my month"
    assert entries[1].metadata["context"] == {"income": 3000}
    assert entries[1].metadata["success"] is True


@pytest.mark.asyncio
async def test_agent_receives_memory_and_goals(manager, fake_agents):
    ctx = _context(goals=[{"id": "g1", "target_amount": 1000, "current_amount": 500}])
    await manager.run_agent("insight_generator", "How am I doing?", ctx)
    _, seen = fake_agents["insight_generator"].calls[0]
    assert seen.memory_context is not None
    assert seen.memory_context.user_profile.is_new_user is True
    assert seen.goal_tracking[0]["progress"]["percentage"] == 50.0
    assert ctx.memory_context is None
    assert ctx.goal_tracking == []


@pytest.mark.asyncio
async def test_second_run_sees_previous_turns(manager, fake_agents):
    await manager.run_agent("budget_coach", "first", _context())
    await manager.run_agent("budget_coach", "second", _context())
    _, seen = fake_agents["budget_coach"].calls[1]
    assert [e.content for e in seen.memory_context.conversation_history] == [
        "first", "budget_coach response",
    ]


@pytest.mark.asyncio
async def test_execute_handoff_delegates_to_engine(manager, engine):
    result = await manager.execute_handoff(
        "financial_advisor", "budget_coach", "Plan", "Budget request", _context(),
    )
    assert result.success is True
    assert engine.get_handoff_history("u1")[0].handoff_id == result.handoff_id


@pytest.mark.asyncio
async def test_execute_handoff_returns_failure_unchanged(manager):
    result = await manager.execute_handoff(
        "financial_advisor", "nonexistent", "Plan", "Budget request", _context(),
    )
    assert result.success is False
    assert result.error_kind.value == "NotFound"


@pytest.mark.asyncio
async def test_route_follows_confident_advice(manager, fake_agents):
    routed = await manager.route_to_agent("Set up an envelope budget", _context())
    assert routed.agent_name == "budget_coach"
    assert routed.suggested_agent == "budget_coach"
    _, seen = fake_agents["budget_coach"].calls[0]
    assert seen.metadata["routing"]["original_agent"] == "financial_advisor"


@pytest.mark.asyncio
async def test_route_falls_back_on_low_confidence(manager, engine):
    async def weak(current_agent, message, user_id):
        return RoutingDecision("budget_coach", "guess", 0.3)

    engine.route_to_optimal_agent = weak
    routed = await manager.route_to_agent("anything", _context())
    assert routed.agent_name == "financial_advisor"
    assert routed.suggested_agent == "budget_coach"


@pytest.mark.asyncio
async def test_route_falls_back_on_unregistered_agent(manager, engine):
    async def odd(current_agent, message, user_id):
        return RoutingDecision("tax_specialist", "tax", 0.95)

    engine.route_to_optimal_agent = odd
    routed = await manager.route_to_agent("taxes", _context())
    assert routed.agent_name == "financial_advisor"


def test_register_duplicate_agent_fails(manager):
    with pytest.raises(ValueError):
        manager.register_agent(FakeAgent("budget_coach"))


def test_select_agent_by_keywords(manager):
    assert manager.select_agent("categorize this transaction") == "transaction_analyst"
    assert manager.select_agent("hello there") == "financial_advisor"


@pytest.mark.asyncio
async def test_metrics_report_runs_and_handoff_system(manager):
    await manager.run_agent("budget_coach", "hi", _context())
    metrics = manager.get_agent_metrics()
    assert metrics["budget_coach"]["runs"] == 1
    assert metrics["budget_coach"]["is_available"] is True
    assert metrics["handoff_system"]["total_handoffs"] == 0
    assert metrics["handoff_system"]["health_status"]["is_healthy"] is True
    assert manager.get_agent_capabilities("budget_coach") == ["budget_coach_capability"]
    assert manager.get_agent_capabilities("nonexistent") == []
    assert manager.is_ready() is True
