"""Routing — keyword intent analysis and agent selection advice.

Invariants:
    - Pure: no state is read or written; callers decide whether to act on advice
    - Confidence ∈ [0, 1]
    - Highest-confidence candidate wins; on a tie the current agent is kept
    - Budget keywords are checked before analysis and transaction keywords
"""

from coachflow.core.domain_types import AgentType, CurrentFocus
from coachflow.core.handoff_models import MessageAnalysis, RoutingDecision

URGENT_KEYWORDS = ("urgent", "emergency", "asap", "immediately", "help", "crisis")
MEDIUM_URGENCY_KEYWORDS = ("soon", "quick")
BUDGET_KEYWORDS = ("budget", "envelope", "allocate", "spending", "allocation")
ANALYSIS_KEYWORDS = ("analyze", "report", "trends", "insights", "pattern")
TRANSACTION_KEYWORDS = ("transaction", "expense", "categorize", "spending")

# Broader lists used when picking an agent for a fresh conversation.
_SELECTION_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    (AgentType.BUDGET_COACH.value, (
        "budget", "envelope", "allocate", "fund", "allocation", "category",
        "distribute", "balance", "target", "budget plan",
    )),
    (AgentType.TRANSACTION_ANALYST.value, (
        "transaction", "spending", "expense", "pattern", "categorize",
        "analyze spending", "transaction history", "expense analysis",
    )),
    (AgentType.INSIGHT_GENERATOR.value, (
        "insight", "trend", "analysis", "progress", "goal", "recommendation",
        "report", "summary", "forecast", "predict", "opportunity",
    )),
)

_INTENT_TARGETS = {
    "budgeting": (AgentType.BUDGET_COACH.value, "Budget-related query detected"),
    "analysis": (AgentType.INSIGHT_GENERATOR.value, "Analysis request detected"),
    "transactions": (AgentType.TRANSACTION_ANALYST.value, "Transaction analysis needed"),
}

_FOCUS_TARGETS = {
    CurrentFocus.BUDGETING.value: (
        AgentType.BUDGET_COACH.value, "User focus on budgeting",
    ),
    CurrentFocus.GOAL_TRACKING.value: (
        AgentType.INSIGHT_GENERATOR.value, "User focus on goal tracking",
    ),
}

INTENT_CONFIDENCE = 0.8
URGENCY_CONFIDENCE = 0.9
FOCUS_CONFIDENCE = 0.7
BASELINE_CONFIDENCE = 0.5
FALLBACK_CONFIDENCE = 0.3


def _found(text: str, keywords: tuple[str, ...]) -> tuple[str, ...]:
    return tuple(k for k in keywords if k in text)


def analyze_message_for_routing(message: str) -> MessageAnalysis:
    text = message.lower()

    if _found(text, URGENT_KEYWORDS):
        urgency = "high"
    elif _found(text, MEDIUM_URGENCY_KEYWORDS):
        urgency = "medium"
    else:
        urgency = "low"

    for intent, keywords in (
        ("budgeting", BUDGET_KEYWORDS),
        ("analysis", ANALYSIS_KEYWORDS),
        ("transactions", TRANSACTION_KEYWORDS),
    ):
        found = _found(text, keywords)
        if found:
            return MessageAnalysis(intent, INTENT_CONFIDENCE, found, urgency)

    return MessageAnalysis("general", BASELINE_CONFIDENCE, (), urgency)


def apply_routing_rules(
    current_agent: str,
    analysis: MessageAnalysis,
    current_focus: str | None,
) -> RoutingDecision:
    """Combine intent, urgency and remembered focus into one decision."""
    candidates = [
        RoutingDecision(current_agent, "No routing change needed", BASELINE_CONFIDENCE),
    ]

    if analysis.intent in _INTENT_TARGETS:
        target, reason = _INTENT_TARGETS[analysis.intent]
        candidates.append(RoutingDecision(target, reason, analysis.confidence))

    if analysis.urgency == "high":
        candidates.append(RoutingDecision(
            AgentType.FINANCIAL_ADVISOR.value,
            "High urgency requires general financial advisor",
            URGENCY_CONFIDENCE,
        ))

    if current_focus in _FOCUS_TARGETS:
        target, reason = _FOCUS_TARGETS[current_focus]
        candidates.append(RoutingDecision(target, reason, FOCUS_CONFIDENCE))

    best = max(c.confidence for c in candidates)
    top = [c for c in candidates if c.confidence == best]
    for candidate in top:
        if candidate.target_agent == current_agent:
            return candidate
    return top[0]


def fallback_routing(current_agent: str) -> RoutingDecision:
    """Advice used when analysis itself failed."""
    target = (
        AgentType.BUDGET_COACH.value
        if current_agent == AgentType.FINANCIAL_ADVISOR.value
        else AgentType.FINANCIAL_ADVISOR.value
    )
    return RoutingDecision(
        target, "Fallback routing due to analysis error", FALLBACK_CONFIDENCE,
    )


def determine_agent_from_message(message: str, default_agent: str) -> str:
    """Keyword routing for a message with no current agent."""
    text = message.lower()
    for agent, keywords in _SELECTION_KEYWORDS:
        if _found(text, keywords):
            return agent
    return default_agent
