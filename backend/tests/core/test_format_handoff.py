"""Tests for construct_handoff_message."""

from coachflow.core.domain_types import HandoffPriority
from coachflow.core.format_handoff import construct_handoff_message
from coachflow.core.handoff_models import HandoffRequest
from coachflow.core.memory_models import AgentMemoryContext, UserMemoryProfile


def _request(message="What now?"):
    return HandoffRequest(
        from_agent="budget_coach", to_agent="insight_generator", user_id="u1",
        session_id="s1", reason="Needs analysis", user_message=message,
        priority=HandoffPriority.URGENT,
    )


def test_header_and_message_without_memory():
    text = construct_handoff_message(_request(), 0, None)
    lines = text.split("\n")
    assert lines[0] == "[AGENT HANDOFF: BUDGET_COACH → INSIGHT_GENERATOR]"
    assert "Reason: Needs analysis" in lines
    assert "Priority: URGENT" in lines
    assert "ESCALATION LEVEL" not in text
    assert text.endswith("USER MESSAGE:\nWhat now?")


def test_escalation_and_memory_sections():
    memory = AgentMemoryContext(
        user_id="u1", agent_name="insight_generator", session_id="s1",
        user_profile=UserMemoryProfile.new_user("u1"),
        context_summary="Saving for a house.",
        personalizations={"communication_style": "concise"},
    )
    text = construct_handoff_message(_request(""), 2, memory)
    assert "ESCALATION LEVEL 2" in text
    assert "USER CONTEXT:\nSaving for a house." in text
    assert "USER MESSAGE:\n" in text
    assert text.endswith("PERSONALIZATION NOTES:\n- communication_style: concise")
