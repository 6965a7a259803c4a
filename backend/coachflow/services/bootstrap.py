"""Bootstrap — wires Settings into the four components and the built-in agents.

Invariants:
    - The only place Settings values are turned into SandboxLimits, MemoryLimits
      and HandoffPolicy
    - Every dependency is passed by constructor; nothing is a module-level singleton
    - build_services() accepts overrides (client, repository) so tests wire fakes
"""

import logging
from dataclasses import dataclass

from coachflow.config import Settings
from coachflow.core.handoff_models import HandoffPolicy
from coachflow.core.memory_models import MemoryLimits
from coachflow.core.repository_protocols import MemoryRepository
from coachflow.core.tool_models import SandboxLimits
from coachflow.infrastructure.anthropic_client import ResilientAnthropicClient
from coachflow.infrastructure.database import DatabaseSessionManager
from coachflow.infrastructure.memory_repository import (
    InMemoryMemoryRepository, SqlMemoryRepository,
)
from coachflow.services.agent_manager import AgentManager
from coachflow.services.agent_prompts import BUILTIN_PROFILES
from coachflow.services.agents import LanguageModelAgent
from coachflow.services.goal_tracker import GoalProgressTracker
from coachflow.services.handoff_engine import HandoffEngine
from coachflow.services.memory_assembler import MemoryAssembler
from coachflow.services.memory_tools import register_memory_tools
from coachflow.services.tool_sandbox import ToolSandbox

logger = logging.getLogger(__name__)


@dataclass
class Services:
    sandbox: ToolSandbox
    memory: MemoryAssembler
    handoffs: HandoffEngine
    manager: AgentManager
    db_manager: DatabaseSessionManager | None = None

    async def aclose(self) -> None:
        if self.db_manager is not None:
            await self.db_manager.dispose()


def sandbox_limits(settings: Settings) -> SandboxLimits:
    return SandboxLimits(
        history_size=settings.tool_history_size,
        health_min_executions=settings.tool_health_min_executions,
        health_min_success_rate=settings.tool_health_min_success_rate,
    )


def memory_limits(settings: Settings) -> MemoryLimits:
    return MemoryLimits(
        cache_entries_per_user=settings.memory_cache_entries_per_user,
        cache_max_users=settings.memory_cache_max_users,
        profile_ttl_seconds=settings.memory_profile_ttl_seconds,
        history_limit=settings.memory_history_limit,
        insight_limit=settings.memory_insight_limit,
    )


def handoff_policy(settings: Settings) -> HandoffPolicy:
    return HandoffPolicy(
        max_escalation_level=settings.handoff_max_escalation_level,
        history_limit=settings.handoff_history_limit,
        circular_window=settings.handoff_circular_window,
        escalation_window_seconds=settings.handoff_escalation_window_seconds,
        recent_handoff_threshold=settings.handoff_recent_threshold,
        failure_threshold=settings.handoff_failure_threshold,
        handoff_timeout_seconds=settings.handoff_timeout_seconds,
    )


def build_services(
    settings: Settings,
    *,
    client: ResilientAnthropicClient | None = None,
    repository: MemoryRepository | None = None,
) -> Services:
    db_manager = None
    if repository is None:
        if settings.memory_backend == "sql":
            db_manager = DatabaseSessionManager(
                settings.database_url,
                pool_size=settings.database_pool_size,
                max_overflow=settings.database_max_overflow,
            )
            repository = SqlMemoryRepository(db_manager)
        else:
            repository = InMemoryMemoryRepository()

    if client is None:
        client = ResilientAnthropicClient(
            api_key=settings.anthropic_api_key,
            max_retries=settings.anthropic_max_retries,
            base_delay_ms=settings.anthropic_base_delay_ms,
            max_delay_ms=settings.anthropic_max_delay_ms,
            timeout_seconds=settings.anthropic_timeout_seconds,
        )

    sandbox = ToolSandbox(sandbox_limits(settings))
    memory = MemoryAssembler(repository, memory_limits(settings))
    goals = GoalProgressTracker()
    register_memory_tools(sandbox, memory, goals)

    handoffs = HandoffEngine(memory, handoff_policy(settings))
    agents = [
        LanguageModelAgent(
            profile, client, sandbox,
            model=settings.agent_model,
            max_tokens=settings.agent_max_tokens,
            default_temperature=settings.agent_temperature,
            max_tool_calls=settings.agent_max_tool_calls,
            tool_timeout_seconds=settings.tool_default_timeout_seconds,
        )
        for profile in BUILTIN_PROFILES
    ]
    manager = AgentManager(
        agents, memory, handoffs, sandbox,
        goals=goals,
        default_agent=settings.default_agent,
        routing_confidence_threshold=settings.routing_confidence_threshold,
    )
    logger.info("Services built (memory repository: %s, tools: %d, agents: %d)",
        type(repository).__name__,
        sandbox.tool_count(), len(agents))
    return Services(sandbox, memory, handoffs, manager, db_manager)
