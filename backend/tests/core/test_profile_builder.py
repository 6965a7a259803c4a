"""Tests for profile derivation — preferences, learnings, focus, summaries."""

from coachflow.core.domain_types import MemoryRole, MemoryType, PreferenceCategory
from coachflow.core.memory_models import MemoryEntry, UserMemoryProfile
from coachflow.core.profile_builder import (
    NEW_USER_SUMMARY, apply_preference, build_context_summary, build_personalizations,
    build_profile, categorize_preference, filter_relevant_insights, fold_preferences,
    infer_current_focus, infer_financial_situation,
)


def _entry(content, entry_type=MemoryType.INTERACTION, agent="financial_advisor", **meta):
    return MemoryEntry(
        user_id="u1", agent_name=agent, session_id="s1", type=entry_type,
        role=MemoryRole.SYSTEM, content=content, metadata=meta,
    )


def _pref(key, value):
    return _entry(f"{key}={value}", MemoryType.PREFERENCE, key=key, value=value)


def _insight(content, category, agent="financial_advisor"):
    return _entry(content, MemoryType.INSIGHT, agent, category=category)


def test_categorize_preference():
    assert categorize_preference("envelope_count") is PreferenceCategory.BUDGETING
    assert categorize_preference("communication_style") is PreferenceCategory.COMMUNICATION
    assert categorize_preference("risk_tolerance") is PreferenceCategory.RISK_MANAGEMENT
    assert categorize_preference("timezone") is PreferenceCategory.GENERAL


def test_newest_preference_wins():
    # newest-first input
    folded = fold_preferences([_pref("budgeting_style", "strict"), _pref("budgeting_style", "loose")])
    assert folded == {"budgeting_style": "strict"}


def test_empty_log_gives_new_user():
    profile = build_profile("u1", [], [], [])
    assert profile == UserMemoryProfile.new_user("u1")


def test_profile_from_log():
    profile = build_profile(
        "u1",
        [_pref("risk_tolerance", "low"), _pref("unknown_key", "x")],
        [
            _insight("Big challenge with dining out", "challenge"),
            _insight("Weekend pattern of overspending", "spending_pattern", "transaction_analyst"),
            _insight("Paying down debt", "goal"),
        ],
        [_entry("Let's build my budget"), _entry("My goal is to buy a house")],
    )
    assert profile.is_new_user is False
    assert profile.preferences.risk_tolerance == "low"
    assert profile.learnings.challenges == ["Big challenge with dining out"]
    assert profile.learnings.spending_patterns == {
        "transaction_analyst": "Weekend pattern of overspending",
    }
    assert profile.context.financial_situation == "needs_attention"
    assert profile.context.current_focus == "budgeting"
    assert profile.context.major_goals == ["homeownership"]


def test_focus_uses_three_newest_interactions():
    entries = [_entry("hi"), _entry("hello"), _entry("thanks"), _entry("budget talk")]
    assert infer_current_focus(entries) == "general_management"
    assert infer_current_focus([]) == "getting_started"


def test_situation_on_track():
    assert infer_financial_situation([_insight("Goal progress is steady", "goal")]) == "on_track"
    assert infer_financial_situation([]) == "stable"


def test_apply_preference_returns_copy():
    profile = UserMemoryProfile.new_user("u1")
    updated = apply_preference(profile, "goal_priorities", ["house"])
    assert updated.preferences.goal_priorities == ["house"]
    assert profile.preferences.goal_priorities == []


def test_relevant_insights_by_agent():
    insights = [
        _insight("a", "budget_review"),
        _insight("b", "spending_pattern"),
        _insight("c", "goal_update"),
    ]
    assert [i.content for i in filter_relevant_insights(insights, "budget_coach", 10)] == ["a"]
    assert len(filter_relevant_insights(insights, "financial_advisor", 2)) == 2


def test_context_summary_for_new_user():
    assert build_context_summary(UserMemoryProfile.new_user("u1"), [], []) == NEW_USER_SUMMARY


def test_context_summary_mentions_focus_and_goals():
    profile = build_profile("u1", [], [], [_entry("My goal is an emergency fund")])
    summary = build_context_summary(profile, [], [])
    assert summary.startswith("User prefers detailed communication and flexible budgeting")
    assert "Currently focused on goal tracking." in summary
    assert "Main goals include: emergency_fund." in summary


def test_personalizations_per_agent():
    profile = UserMemoryProfile.new_user("u1")
    assert "reminder_frequency" in build_personalizations(profile, "budget_coach")
    assert build_personalizations(profile, "transaction_analyst")["focus_areas"] == []
    advisor = build_personalizations(profile, "financial_advisor")
    assert set(advisor) == {"communication_style", "risk_tolerance", "preferred_approach"}
