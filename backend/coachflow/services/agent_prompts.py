"""Agent Profiles — instructions, capabilities and tool allowances of the built-in agents.

Invariants:
    - One profile per AgentType; profile.name == AgentType value
    - handoff_targets never include the agent itself
    - tool_names reference tools registered by register_memory_tools()
"""

from coachflow.core.agent_models import AgentProfile
from coachflow.core.domain_types import AgentType

_SHARED_RULES = (
    "Be specific and practical. Use the user's own numbers when they are given. "
    "Never invent account balances or transactions. "
    "If a question is outside your specialty, say which specialist should take it."
)

_MEMORY_TOOLS = ("store_user_preference", "store_insight", "get_user_memory_profile")

FINANCIAL_ADVISOR = AgentProfile(
    name=AgentType.FINANCIAL_ADVISOR.value,
    display_name="Financial Advisor",
    instructions=(
        "You provide comprehensive financial guidance and coordinate with other "
        "specialists when needed. Think holistically about the user's financial "
        "situation. " + _SHARED_RULES
    ),
    capabilities=("general_guidance", "goal_setting", "coordination", "escalation"),
    handoff_targets=(
        AgentType.BUDGET_COACH.value,
        AgentType.TRANSACTION_ANALYST.value,
        AgentType.INSIGHT_GENERATOR.value,
    ),
    tool_names=(*_MEMORY_TOOLS, "track_goal_progress"),
)

BUDGET_COACH = AgentProfile(
    name=AgentType.BUDGET_COACH.value,
    display_name="Budget Coach",
    instructions=(
        "You specialize in budget creation and envelope management. Focus on "
        "helping users set up sustainable budgeting systems. " + _SHARED_RULES
    ),
    capabilities=("envelope_budgeting", "budget_optimization", "allocation_strategy"),
    handoff_targets=(
        AgentType.FINANCIAL_ADVISOR.value,
        AgentType.TRANSACTION_ANALYST.value,
        AgentType.INSIGHT_GENERATOR.value,
    ),
    tool_names=_MEMORY_TOOLS,
    temperature=0.6,
)

TRANSACTION_ANALYST = AgentProfile(
    name=AgentType.TRANSACTION_ANALYST.value,
    display_name="Transaction Analyst",
    instructions=(
        "You specialize in transaction analysis and spending insights. Help users "
        "understand their spending patterns and identify improvement "
        "opportunities. " + _SHARED_RULES
    ),
    capabilities=("spending_analysis", "categorization", "pattern_detection"),
    handoff_targets=(
        AgentType.FINANCIAL_ADVISOR.value,
        AgentType.BUDGET_COACH.value,
        AgentType.INSIGHT_GENERATOR.value,
    ),
    tool_names=_MEMORY_TOOLS,
    temperature=0.5,
)

INSIGHT_GENERATOR = AgentProfile(
    name=AgentType.INSIGHT_GENERATOR.value,
    display_name="Insight Generator",
    instructions=(
        "You generate actionable insights from financial data. Focus on trends, "
        "patterns, goal progress and personalized recommendations. " + _SHARED_RULES
    ),
    capabilities=("trend_analysis", "goal_progress", "recommendations", "forecasting"),
    handoff_targets=(
        AgentType.FINANCIAL_ADVISOR.value,
        AgentType.BUDGET_COACH.value,
    ),
    tool_names=(*_MEMORY_TOOLS, "track_goal_progress"),
)

BUILTIN_PROFILES: tuple[AgentProfile, ...] = (
    FINANCIAL_ADVISOR, BUDGET_COACH, TRANSACTION_ANALYST, INSIGHT_GENERATOR,
)
