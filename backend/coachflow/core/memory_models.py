"""Memory Models — durable log entries, derived user profile, per-invocation context bundle.

Invariants:
    - MemoryEntry is frozen: the log is append-only, entries never change after write
    - UserMemoryProfile is derived data — rebuildable from the MemoryEntry log
    - AgentMemoryContext.conversation_history length ≤ MemoryLimits.history_limit
    - A user with no entries gets UserMemoryProfile.new_user() (empty collections)
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from coachflow.core.domain_types import (
    CurrentFocus, FinancialSituation, MemoryRole, MemoryType,
)


@dataclass(frozen=True)
class MemoryEntry:
    """One durable fact about a user."""
    user_id: str
    agent_name: str
    session_id: str
    type: MemoryType
    role: MemoryRole
    content: str
    metadata: dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    created_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc),
    )

    @property
    def category(self) -> str:
        return str(self.metadata.get("category", ""))


@dataclass
class UserPreferences:
    budgeting_style: str = "flexible"
    communication_style: str = "detailed"
    risk_tolerance: str = "medium"
    goal_priorities: list[str] = field(default_factory=list)
    reminder_frequency: str = "weekly"


@dataclass
class UserLearnings:
    spending_patterns: dict[str, str] = field(default_factory=dict)
    successful_strategies: list[str] = field(default_factory=list)
    challenges: list[str] = field(default_factory=list)
    improvements: list[str] = field(default_factory=list)


@dataclass
class UserContext:
    financial_situation: str = FinancialSituation.STABLE.value
    major_goals: list[str] = field(default_factory=list)
    current_focus: str = CurrentFocus.GETTING_STARTED.value
    last_interaction: datetime | None = None


@dataclass
class UserMemoryProfile:
    user_id: str
    preferences: UserPreferences = field(default_factory=UserPreferences)
    learnings: UserLearnings = field(default_factory=UserLearnings)
    context: UserContext = field(default_factory=UserContext)
    is_new_user: bool = False

    @classmethod
    def new_user(cls, user_id: str) -> "UserMemoryProfile":
        return cls(user_id=user_id, is_new_user=True)


@dataclass
class AgentMemoryContext:
    """Bundle handed to an agent for one invocation."""
    user_id: str
    agent_name: str
    session_id: str
    user_profile: UserMemoryProfile
    conversation_history: list[MemoryEntry] = field(default_factory=list)
    relevant_insights: list[MemoryEntry] = field(default_factory=list)
    context_summary: str = ""
    personalizations: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc),
    )


@dataclass(frozen=True)
class MemoryLimits:
    cache_entries_per_user: int = 50
    cache_max_users: int = 1000
    profile_ttl_seconds: int = 1800
    history_limit: int = 10
    insight_limit: int = 10
    preference_scan_limit: int = 50
    insight_scan_limit: int = 100
    profile_interaction_window: int = 5
