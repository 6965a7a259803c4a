"""Memory Tools — sandbox tools that let agents read and write the user's memory.

Invariants:
    - Every tool→handler mapping is listed in register_memory_tools(), nothing discovered
    - Parameters are pydantic models: the sandbox validates before a handler runs
    - Write tools require an authenticated user (ToolExecutionContext.user_id)
    - Handlers return JSON-friendly dicts
"""

import dataclasses
import logging
from typing import Any, Literal

from pydantic import BaseModel, Field

from coachflow.core.agent_models import RunContext
from coachflow.core.domain_types import RiskLevel
from coachflow.core.tool_models import ToolDefinition, ToolExecutionContext
from coachflow.services.goal_tracker import GoalProgressTracker
from coachflow.services.memory_assembler import MemoryAssembler
from coachflow.services.tool_sandbox import ToolSandbox

logger = logging.getLogger(__name__)

MEMORY_CATEGORY = "memory"


class StorePreferenceParams(BaseModel):
    key: str = Field(min_length=1, max_length=100)
    value: str | int | float | bool | list[str]
    category: Literal[
        "budgeting", "communication", "goals", "risk_management", "general",
    ] | None = None


class StoreInsightParams(BaseModel):
    insight: str = Field(min_length=1, max_length=2000)
    category: str = Field(min_length=1, max_length=100)
    confidence: float = Field(default=0.8, ge=0.0, le=1.0)


class MemoryProfileParams(BaseModel):
    include_learnings: bool = True


class GoalInput(BaseModel):
    id: str
    description: str = ""
    target_amount: float = Field(ge=0)
    current_amount: float = Field(default=0, ge=0)
    deadline: str | None = None


class TrackGoalsParams(BaseModel):
    goals: list[GoalInput] = Field(min_length=1)


class MemoryToolHandlers:
    """Handlers bound to one MemoryAssembler."""

    def __init__(self, memory: MemoryAssembler, goals: GoalProgressTracker):
        self.memory = memory
        self.goals = goals

    async def store_user_preference(
        self, params: dict[str, Any], ctx: ToolExecutionContext,
    ) -> dict:
        entry = await self.memory.store_preference(
            ctx.user_id, ctx.agent_name or "unknown", ctx.session_id or "",
            params["key"], params["value"], params.get("category"),
        )
        return {"stored": True, "entry_id": entry.id, "category": entry.category}

    async def store_insight(
        self, params: dict[str, Any], ctx: ToolExecutionContext,
    ) -> dict:
        entry = await self.memory.store_insight(
            ctx.user_id, ctx.agent_name or "unknown", ctx.session_id or "",
            params["insight"], params["category"], params["confidence"],
        )
        return {"stored": True, "entry_id": entry.id}

    async def get_user_memory_profile(
        self, params: dict[str, Any], ctx: ToolExecutionContext,
    ) -> dict:
        profile = await self.memory.get_user_memory_profile(ctx.user_id)
        data = {
            "is_new_user": profile.is_new_user,
            "preferences": dataclasses.asdict(profile.preferences),
            "context": {
                **dataclasses.asdict(profile.context),
                "last_interaction": (
                    profile.context.last_interaction.isoformat()
                    if profile.context.last_interaction else None
                ),
            },
        }
        if params.get("include_learnings", True):
            data["learnings"] = dataclasses.asdict(profile.learnings)
        return data

    async def track_goal_progress(
        self, params: dict[str, Any], ctx: ToolExecutionContext,
    ) -> dict:
        context = RunContext(
            user_id=ctx.user_id, session_id=ctx.session_id or "",
            goals=params["goals"],
        )
        return {"goals": await self.goals.track_goal_progress(ctx.user_id, context)}


def register_memory_tools(
    sandbox: ToolSandbox, memory: MemoryAssembler, goals: GoalProgressTracker,
) -> None:
    handlers = MemoryToolHandlers(memory, goals)
    definitions = [
        ToolDefinition(
            name="store_user_preference",
            execute=handlers.store_user_preference,
            description="Store a user preference for future personalization",
            category=MEMORY_CATEGORY,
            risk_level=RiskLevel.LOW,
            requires_auth=True,
            estimated_duration_ms=200,
            parameters=StorePreferenceParams,
        ),
        ToolDefinition(
            name="store_insight",
            execute=handlers.store_insight,
            description="Store an insight or learning about the user",
            category=MEMORY_CATEGORY,
            risk_level=RiskLevel.LOW,
            requires_auth=True,
            estimated_duration_ms=200,
            parameters=StoreInsightParams,
        ),
        ToolDefinition(
            name="get_user_memory_profile",
            execute=handlers.get_user_memory_profile,
            description="Retrieve the user's preferences, learnings and current focus",
            category=MEMORY_CATEGORY,
            risk_level=RiskLevel.LOW,
            requires_auth=True,
            estimated_duration_ms=300,
            parameters=MemoryProfileParams,
        ),
        ToolDefinition(
            name="track_goal_progress",
            execute=handlers.track_goal_progress,
            description="Compute progress, milestones and remaining amount for goals",
            category="goals",
            risk_level=RiskLevel.LOW,
            requires_auth=False,
            estimated_duration_ms=100,
            parameters=TrackGoalsParams,
        ),
    ]
    for definition in definitions:
        sandbox.register(definition)
    logger.info("Memory tools registered: %d", len(definitions))
