"""Profile Builder — deterministic derivation of UserMemoryProfile and agent context pieces.

Invariants:
    - Pure: same entries in ⇒ structurally identical profile out (no clock reads)
    - Inputs are newest-first lists, as returned by MemoryRepository.query()
    - Explicit preferences override static defaults; newest preference per key wins
    - Learnings lists are capped at 5 items, newest first
    - The financial_advisor (and any unknown agent) receives every insight
"""

import copy
from typing import Any

from coachflow.core.domain_types import (
    AgentType, CurrentFocus, FinancialSituation, PreferenceCategory,
)
from coachflow.core.memory_models import (
    MemoryEntry, UserContext, UserLearnings, UserMemoryProfile, UserPreferences,
)

LEARNINGS_CAP = 5
NEW_USER_SUMMARY = "New user with limited context available."

# Agent → category fragments it cares about. Agents not listed get all insights.
AGENT_INSIGHT_TAGS: dict[str, tuple[str, ...]] = {
    AgentType.BUDGET_COACH.value: ("budget", "allocation", "envelope"),
    AgentType.TRANSACTION_ANALYST.value: ("spending", "transaction", "pattern"),
    AgentType.INSIGHT_GENERATOR.value: ("goal", "trend", "recommendation"),
}

_PREFERENCE_FIELDS = {
    "budgeting_style", "communication_style", "risk_tolerance",
    "goal_priorities", "reminder_frequency",
}

_GOAL_KEYWORDS = (
    (("house", "home"), "homeownership"),
    (("emergency",), "emergency_fund"),
    (("retirement",), "retirement"),
    (("vacation",), "vacation"),
    (("debt",), "debt_payoff"),
)


# -- Preferences ---------------------------------------------------------------

def categorize_preference(key: str) -> PreferenceCategory:
    key = key.lower()
    if "budget" in key or "envelope" in key:
        return PreferenceCategory.BUDGETING
    if "communication" in key or "style" in key:
        return PreferenceCategory.COMMUNICATION
    if "goal" in key or "priority" in key:
        return PreferenceCategory.GOALS
    if "risk" in key or "tolerance" in key:
        return PreferenceCategory.RISK_MANAGEMENT
    return PreferenceCategory.GENERAL


def fold_preferences(entries: list[MemoryEntry]) -> dict[str, Any]:
    """Collapse newest-first preference entries into key → value (newest wins)."""
    preferences: dict[str, Any] = {}
    for entry in entries:
        key = entry.metadata.get("key")
        value = entry.metadata.get("value")
        if not key or value is None:
            continue
        preferences.setdefault(key, value)
    return preferences


def _build_preferences(values: dict[str, Any]) -> UserPreferences:
    prefs = UserPreferences()
    for key, value in values.items():
        if key in _PREFERENCE_FIELDS:
            setattr(prefs, key, copy.deepcopy(value))
    return prefs


def apply_preference(
    profile: UserMemoryProfile, key: str, value: Any,
) -> UserMemoryProfile:
    """Return a copy of profile with one preference overridden."""
    updated = copy.deepcopy(profile)
    if key in _PREFERENCE_FIELDS:
        setattr(updated.preferences, key, copy.deepcopy(value))
    return updated


# -- Learnings -----------------------------------------------------------------

def extract_spending_patterns(insights: list[MemoryEntry]) -> dict[str, str]:
    patterns: dict[str, str] = {}
    for insight in insights:
        if insight.category == "spending_pattern" and "pattern" in insight.content:
            patterns.setdefault(insight.agent_name, insight.content)
    return patterns


def _select(
    insights: list[MemoryEntry], category: str, words: tuple[str, ...],
) -> list[str]:
    selected = [
        i.content for i in insights
        if i.category == category
        or any(w in i.content.lower() for w in words)
    ]
    return selected[:LEARNINGS_CAP]


def extract_successful_strategies(insights: list[MemoryEntry]) -> list[str]:
    return _select(insights, "success", ("success", "achieved"))


def extract_challenges(insights: list[MemoryEntry]) -> list[str]:
    return _select(insights, "challenge", ("challenge", "difficulty"))


def extract_improvements(insights: list[MemoryEntry]) -> list[str]:
    return _select(insights, "improvement", ("improve", "better"))


# -- Context inference ---------------------------------------------------------

def infer_financial_situation(insights: list[MemoryEntry]) -> str:
    texts = [i.content.lower() for i in insights]
    if any("emergency" in t or "debt" in t for t in texts):
        return FinancialSituation.NEEDS_ATTENTION.value
    if any("goal" in t and "progress" in t for t in texts):
        return FinancialSituation.ON_TRACK.value
    return FinancialSituation.STABLE.value


def extract_major_goals(
    insights: list[MemoryEntry], interactions: list[MemoryEntry],
) -> list[str]:
    goals: dict[str, None] = {}
    for entry in [*insights, *interactions]:
        text = entry.content.lower()
        if not ("goal" in text or "save for" in text or "target" in text):
            continue
        for words, goal in _GOAL_KEYWORDS:
            if any(w in text for w in words):
                goals.setdefault(goal, None)
    return list(goals)


def infer_current_focus(interactions: list[MemoryEntry]) -> str:
    """Focus from the three most recent interaction records (newest-first input)."""
    if not interactions:
        return CurrentFocus.GETTING_STARTED.value

    recent = " ".join(i.content for i in interactions[:3]).lower()
    if "budget" in recent or "envelope" in recent:
        return CurrentFocus.BUDGETING.value
    if "spending" in recent or "transaction" in recent:
        return CurrentFocus.EXPENSE_ANALYSIS.value
    if "goal" in recent or "progress" in recent:
        return CurrentFocus.GOAL_TRACKING.value
    if "save" in recent or "emergency" in recent:
        return CurrentFocus.SAVINGS.value
    return CurrentFocus.GENERAL_MANAGEMENT.value


# -- Profile -------------------------------------------------------------------

def build_profile(
    user_id: str,
    preference_entries: list[MemoryEntry],
    insight_entries: list[MemoryEntry],
    recent_interactions: list[MemoryEntry],
) -> UserMemoryProfile:
    """Derive the full profile from newest-first log slices."""
    if not (preference_entries or insight_entries or recent_interactions):
        return UserMemoryProfile.new_user(user_id)

    return UserMemoryProfile(
        user_id=user_id,
        preferences=_build_preferences(fold_preferences(preference_entries)),
        learnings=UserLearnings(
            spending_patterns=extract_spending_patterns(insight_entries),
            successful_strategies=extract_successful_strategies(insight_entries),
            challenges=extract_challenges(insight_entries),
            improvements=extract_improvements(insight_entries),
        ),
        context=UserContext(
            financial_situation=infer_financial_situation(insight_entries),
            major_goals=extract_major_goals(insight_entries, recent_interactions),
            current_focus=infer_current_focus(recent_interactions),
            last_interaction=(
                recent_interactions[0].created_at if recent_interactions else None
            ),
        ),
    )


# -- Agent context pieces ------------------------------------------------------

def is_relevant_insight(insight: MemoryEntry, agent_name: str) -> bool:
    tags = AGENT_INSIGHT_TAGS.get(agent_name)
    if tags is None:
        return True
    category = insight.category.lower()
    return any(tag in category for tag in tags)


def filter_relevant_insights(
    insights: list[MemoryEntry], agent_name: str, limit: int,
) -> list[MemoryEntry]:
    return [i for i in insights if is_relevant_insight(i, agent_name)][:limit]


def build_context_summary(
    profile: UserMemoryProfile,
    history: list[MemoryEntry],
    insights: list[MemoryEntry],
) -> str:
    """One-paragraph summary of who the user is and what they are working on."""
    if profile.is_new_user and not history and not insights:
        return NEW_USER_SUMMARY

    prefs = profile.preferences
    parts = [
        f"User prefers {prefs.communication_style} communication "
        f"and {prefs.budgeting_style} budgeting approach."
    ]
    if profile.context.current_focus:
        focus = profile.context.current_focus.replace("_", " ")
        parts.append(f"Currently focused on {focus}.")
    if profile.context.major_goals:
        parts.append(
            f"Main goals include: {', '.join(profile.context.major_goals)}."
        )
    if insights:
        sources = list(dict.fromkeys(i.agent_name for i in insights))
        parts.append(f"Recent insights available from {', '.join(sources)}.")
    return " ".join(parts)


def build_personalizations(
    profile: UserMemoryProfile, agent_name: str,
) -> dict[str, Any]:
    prefs = profile.preferences
    personalizations: dict[str, Any] = {
        "communication_style": prefs.communication_style,
        "risk_tolerance": prefs.risk_tolerance,
        "preferred_approach": prefs.budgeting_style,
    }
    if agent_name == AgentType.BUDGET_COACH.value:
        personalizations["budgeting_style"] = prefs.budgeting_style
        personalizations["reminder_frequency"] = prefs.reminder_frequency
    elif agent_name == AgentType.TRANSACTION_ANALYST.value:
        personalizations["focus_areas"] = list(profile.learnings.challenges)
    elif agent_name == AgentType.INSIGHT_GENERATOR.value:
        personalizations["goal_priorities"] = list(prefs.goal_priorities)
        personalizations["successful_strategies"] = list(
            profile.learnings.successful_strategies,
        )
    return personalizations
