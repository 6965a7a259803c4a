"""Handoff Models — requests, results, rules and the decision records between them.

Invariants:
    - HandoffResult.handoff_id is unique per attempt, failed attempts included
    - 0 ≤ escalation_level ≤ HandoffPolicy.max_escalation_level
    - HandoffRule.predicate receives a copy of HandoffRequest.context and must not raise
      for missing keys (rules use dict.get)
    - RoutingDecision.confidence ∈ [0, 1]
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from coachflow.core.domain_types import HandoffPriority
from coachflow.core.errors import ErrorKind


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class HandoffRequest:
    from_agent: str
    to_agent: str
    user_id: str
    session_id: str
    reason: str
    user_message: str = ""
    priority: HandoffPriority = HandoffPriority.MEDIUM
    context: dict[str, Any] = field(default_factory=dict)
    escalation_level: int = 0
    preserve_history: bool = True
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class HandoffResult:
    success: bool
    handoff_id: str
    from_agent: str
    to_agent: str
    duration_ms: float
    response: str = ""
    context_preserved: bool = False
    escalation_triggered: bool = False
    error: str | None = None
    error_kind: ErrorKind | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=_utcnow)

    @property
    def escalation_level(self) -> int:
        return int(self.metadata.get("escalation_level", 0))


@dataclass(frozen=True)
class HandoffRule:
    """Static transition policy; the rule set must contain one catch-all."""
    name: str
    from_agents: frozenset[str]
    to_agents: frozenset[str]
    predicate: Callable[[dict[str, Any]], bool]
    priority: int = 0
    auto_approve: bool = False

    def matches(self, from_agent: str, to_agent: str, context: dict[str, Any]) -> bool:
        return (
            from_agent in self.from_agents
            and to_agent in self.to_agents
            and bool(self.predicate(context))
        )


@dataclass(frozen=True)
class HandoffPolicy:
    """Thresholds for validation and escalation; every value is configurable."""
    max_escalation_level: int = 3
    history_limit: int = 50
    circular_window: int = 3
    escalation_window_seconds: int = 600
    recent_handoff_threshold: int = 3
    failure_threshold: int = 2
    handoff_timeout_seconds: int = 30


@dataclass(frozen=True)
class ValidationOutcome:
    valid: bool
    reason: str | None = None
    kind: ErrorKind | None = None
    rule_applied: str | None = None

    @classmethod
    def passed(cls, rule_name: str) -> "ValidationOutcome":
        return cls(valid=True, rule_applied=rule_name)

    @classmethod
    def rejected(cls, kind: ErrorKind, reason: str) -> "ValidationOutcome":
        return cls(valid=False, reason=reason, kind=kind)


@dataclass(frozen=True)
class EscalationDecision:
    escalated: bool
    new_level: int
    reason: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ContextPreservation:
    success: bool
    preserved_items: int


@dataclass(frozen=True)
class MessageAnalysis:
    intent: str
    confidence: float
    keywords: tuple[str, ...]
    urgency: str


@dataclass(frozen=True)
class RoutingDecision:
    target_agent: str
    reason: str
    confidence: float
