"""Agent Schemas — request/response bodies of the agent, routing and handoff endpoints.

Invariants:
    - Request bodies are validated here; services never see malformed input
    - user_id and session_id are opaque caller strings (1-100 chars)
    - Responses carry no internal objects, only JSON-ready fields
"""

from typing import Any

from pydantic import BaseModel, Field

from coachflow.core.domain_types import HandoffPriority


class RunContextBody(BaseModel):
    """Caller context shared by every agent request."""
    user_id: str = Field(min_length=1, max_length=100)
    session_id: str = Field(min_length=1, max_length=100)
    financial: dict[str, Any] = Field(default_factory=dict)
    goals: list[dict[str, Any]] = Field(default_factory=list)
    previous_interactions: list[dict[str, Any]] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)


class AgentRunRequest(RunContextBody):
    message: str = Field(min_length=1, max_length=10_000)


class AgentRunResponse(BaseModel):
    agent_name: str
    response: str


class RouteResponse(AgentRunResponse):
    reason: str
    confidence: float
    suggested_agent: str


class HandoffRequestBody(RunContextBody):
    from_agent: str = Field(min_length=1, max_length=50)
    to_agent: str = Field(min_length=1, max_length=50)
    message: str = Field(default="", max_length=10_000)
    reason: str = Field(min_length=1, max_length=500)
    priority: HandoffPriority = HandoffPriority.MEDIUM
    escalation_level: int = Field(default=0, ge=0)


class HandoffResponse(BaseModel):
    handoff_id: str
    from_agent: str
    to_agent: str
    response: str
    context_preserved: bool
    escalation_triggered: bool
    duration_ms: float
    metadata: dict[str, Any]


class AgentSummary(BaseModel):
    name: str
    display_name: str
    capabilities: list[str]
    handoff_targets: list[str]
    is_ready: bool
