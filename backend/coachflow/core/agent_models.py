"""Agent Models — the context callers supply and the result an agent returns.

Invariants:
    - RunContext.user_id and session_id are required; everything else is optional
    - The orchestrator never mutates a caller's RunContext (dataclasses.replace only)
    - AgentRunResult: success=False ⇒ error set; response may carry an apology text
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from coachflow.core.memory_models import AgentMemoryContext


@dataclass(frozen=True)
class RunContext:
    """What the request surface hands the orchestrator for one message."""
    user_id: str
    session_id: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    financial: dict[str, Any] = field(default_factory=dict)
    goals: list[dict[str, Any]] = field(default_factory=list)
    previous_interactions: list[dict[str, Any]] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)
    # Filled in by the orchestrator before the agent sees the context
    memory_context: AgentMemoryContext | None = None
    goal_tracking: list[dict[str, Any]] = field(default_factory=list)

    @property
    def personalization(self) -> dict[str, Any]:
        return self.memory_context.personalizations if self.memory_context else {}

    @property
    def context_summary(self) -> str:
        return self.memory_context.context_summary if self.memory_context else ""

    def business_context(self) -> dict[str, Any]:
        """Caller-supplied financial data, as stored alongside interactions."""
        data = dict(self.financial)
        if self.goals:
            data["goals"] = list(self.goals)
        return data


@dataclass(frozen=True)
class AgentProfile:
    """Capability description of one agent (prompt + allowed tools)."""
    name: str
    display_name: str
    instructions: str
    capabilities: tuple[str, ...] = ()
    handoff_targets: tuple[str, ...] = ()
    tool_names: tuple[str, ...] = ()
    temperature: float | None = None


@dataclass(frozen=True)
class AgentRunResult:
    success: bool
    response: str
    agent_name: str
    duration_ms: float = 0.0
    error: str | None = None
    tool_calls: int = 0


@dataclass(frozen=True)
class RoutedRun:
    """Outcome of AgentManager.route_to_agent: who answered, and why."""
    agent_name: str
    response: str
    reason: str
    confidence: float
    suggested_agent: str
