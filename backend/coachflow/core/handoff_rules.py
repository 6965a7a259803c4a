"""Handoff Rules — default transition policy, rule matching, loop and escalation checks.

Invariants:
    - default_handoff_rules() always ends with the catch-all `general_routing`
    - Rules are tried in descending priority, declaration order breaking ties
    - Circular check looks only at the newest `circular_window` recorded handoffs
    - check_escalation never lowers the level and never exceeds max_escalation_level;
      it reports an escalation only when the level actually rises
    - History lists are newest-first (HandoffEngine stores them that way)
"""

from datetime import datetime, timedelta
from typing import Any

from coachflow.core.domain_types import AgentType, HandoffPriority
from coachflow.core.handoff_models import (
    EscalationDecision, HandoffPolicy, HandoffRequest, HandoffResult, HandoffRule,
)

_ALL_AGENTS = frozenset(a.value for a in AgentType)
_SPECIALISTS = frozenset({
    AgentType.BUDGET_COACH.value,
    AgentType.TRANSACTION_ANALYST.value,
    AgentType.INSIGHT_GENERATOR.value,
})

MULTIPLE_HANDOFFS_REASON = "Multiple recent handoffs detected"
URGENT_PRIORITY_REASON = "Urgent priority request"
RECENT_FAILURES_REASON = "Recent handoff failures detected"


def _wants_analysis(context: dict[str, Any]) -> bool:
    return bool(context.get("analysis_requested") or context.get("report_needed"))


def _needs_budget_adjustment(context: dict[str, Any]) -> bool:
    return bool(context.get("budget_adjustment_needed"))


def _is_escalating(context: dict[str, Any]) -> bool:
    return (
        (context.get("escalation_level") or 0) > 0
        or context.get("priority") == HandoffPriority.URGENT.value
    )


def _always(context: dict[str, Any]) -> bool:
    return True


def default_handoff_rules() -> list[HandoffRule]:
    return [
        HandoffRule(
            name="budget_to_analysis",
            from_agents=frozenset({AgentType.BUDGET_COACH.value}),
            to_agents=frozenset({AgentType.INSIGHT_GENERATOR.value}),
            predicate=_wants_analysis,
            priority=1,
            auto_approve=True,
        ),
        HandoffRule(
            name="transaction_to_budget",
            from_agents=frozenset({AgentType.TRANSACTION_ANALYST.value}),
            to_agents=frozenset({AgentType.BUDGET_COACH.value}),
            predicate=_needs_budget_adjustment,
            priority=1,
            auto_approve=True,
        ),
        HandoffRule(
            name="escalation_to_advisor",
            from_agents=_SPECIALISTS,
            to_agents=frozenset({AgentType.FINANCIAL_ADVISOR.value}),
            predicate=_is_escalating,
            priority=2,
            auto_approve=True,
        ),
        HandoffRule(
            name="general_routing",
            from_agents=_ALL_AGENTS,
            to_agents=_ALL_AGENTS,
            predicate=_always,
            priority=0,
            auto_approve=False,
        ),
    ]


def has_catch_all(rules: list[HandoffRule]) -> bool:
    return any(r.predicate is _always for r in rules)


def find_applicable_rule(
    rules: list[HandoffRule], request: HandoffRequest,
) -> HandoffRule | None:
    """First rule (by descending priority) accepting the pair and the context."""
    context = dict(request.context)
    context.setdefault("priority", request.priority.value)
    context.setdefault("escalation_level", request.escalation_level)
    for rule in sorted(rules, key=lambda r: -r.priority):
        if rule.matches(request.from_agent, request.to_agent, context):
            return rule
    return None


def detect_circular_handoff(
    history: list[HandoffResult], request: HandoffRequest, window: int,
) -> bool:
    """True if one of the last `window` handoffs went to_agent → from_agent."""
    return any(
        h.from_agent == request.to_agent and h.to_agent == request.from_agent
        for h in history[:window]
    )


def recent_handoffs(
    history: list[HandoffResult], now: datetime, window_seconds: int,
) -> list[HandoffResult]:
    cutoff = now - timedelta(seconds=window_seconds)
    return [h for h in history if h.created_at > cutoff]


def check_escalation(
    current_level: int,
    priority: HandoffPriority,
    history: list[HandoffResult],
    now: datetime,
    policy: HandoffPolicy,
) -> EscalationDecision:
    """Decide whether this handoff raises the escalation level. Never blocks.

    A trigger that fires while the level is already at the ceiling is not an
    escalation: the decision comes back with escalated=False and no reason.
    """
    recent = recent_handoffs(history, now, policy.escalation_window_seconds)
    ceiling = policy.max_escalation_level
    new_level = current_level
    reason: str | None = None

    if len(recent) >= policy.recent_handoff_threshold:
        new_level = max(new_level, min(current_level + 1, ceiling))
        reason = MULTIPLE_HANDOFFS_REASON

    if priority == HandoffPriority.URGENT and current_level == 0:
        new_level = max(new_level, min(2, ceiling))
        reason = URGENT_PRIORITY_REASON

    failures = [h for h in recent if not h.success]
    if len(failures) >= policy.failure_threshold:
        new_level = max(new_level, min(current_level + 1, ceiling))
        reason = RECENT_FAILURES_REASON

    metadata: dict[str, Any] = {
        "recent_handoff_count": len(recent),
        "current_level": current_level,
    }
    escalated = new_level > current_level
    if escalated:
        metadata["escalation_reason"] = reason
        metadata["new_level"] = new_level
    else:
        reason = None
    return EscalationDecision(
        escalated=escalated, new_level=new_level, reason=reason, metadata=metadata,
    )
