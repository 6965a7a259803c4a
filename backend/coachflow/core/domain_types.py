"""Domain Types — rich types that replace bare primitives across the codebase.

Invariants:
    - User and session ids are opaque caller strings; they stay plain str
    - All valid states encoded as str Enums — no raw string matching
"""

from enum import Enum


# ─── Enums ───────────────────────────────────────────────────────

class AgentType(str, Enum):
    """Built-in specialist agents."""
    FINANCIAL_ADVISOR = "financial_advisor"
    BUDGET_COACH = "budget_coach"
    TRANSACTION_ANALYST = "transaction_analyst"
    INSIGHT_GENERATOR = "insight_generator"


class RiskLevel(str, Enum):
    """Risk metadata declared by a tool at registration."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class HandoffPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class MemoryType(str, Enum):
    """Kinds of durable memory records."""
    INTERACTION = "interaction"
    PREFERENCE = "preference"
    INSIGHT = "insight"
    GOAL = "goal"
    CONTEXT = "context"


class MemoryRole(str, Enum):
    """Speaker of a memory record — part of the (user_id, session_id, role) key."""
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class PreferenceCategory(str, Enum):
    """Categories the assembler recognises when filtering preferences."""
    BUDGETING = "budgeting"
    COMMUNICATION = "communication"
    GOALS = "goals"
    RISK_MANAGEMENT = "risk_management"
    GENERAL = "general"


class CurrentFocus(str, Enum):
    GETTING_STARTED = "getting_started"
    BUDGETING = "budgeting"
    EXPENSE_ANALYSIS = "expense_analysis"
    GOAL_TRACKING = "goal_tracking"
    SAVINGS = "savings"
    GENERAL_MANAGEMENT = "general_management"


class FinancialSituation(str, Enum):
    NEEDS_ATTENTION = "needs_attention"
    ON_TRACK = "on_track"
    STABLE = "stable"
