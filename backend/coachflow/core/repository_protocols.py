"""Boundary Protocols — contracts between core and shell.

Invariants:
    - Core NEVER imports from shell — dependency arrows point inward only
    - All IO operations accessed through Protocol types
    - Implementations provided by shell via dependency injection
"""

from typing import Any, Protocol

from coachflow.core.agent_models import AgentProfile, AgentRunResult, RunContext
from coachflow.core.domain_types import MemoryType
from coachflow.core.memory_models import MemoryEntry


class MemoryRepository(Protocol):
    """Append-only durable log of MemoryEntry records."""
    async def append(self, entry: MemoryEntry) -> None: ...
    async def query(
        self,
        user_id: str,
        *,
        entry_type: MemoryType | None = None,
        agent_name: str | None = None,
        session_id: str | None = None,
        limit: int = 20,
    ) -> list[MemoryEntry]: ...
    async def count(self, user_id: str) -> int: ...


class Agent(Protocol):
    """A named conversational capability. run() never raises."""
    name: str
    profile: AgentProfile

    def is_ready(self) -> bool: ...
    async def run(self, message: str, context: RunContext) -> AgentRunResult: ...


class AgentDirectory(Protocol):
    """What the handoff engine needs from the orchestrator."""
    def get_agent(self, agent_name: str) -> Agent | None: ...
    async def run_agent(
        self, agent_name: str, message: str, context: RunContext,
    ) -> str: ...


class GoalTracker(Protocol):
    """Goal-progress collaborator consulted when a context carries goals."""
    async def track_goal_progress(
        self, user_id: str, context: RunContext,
    ) -> list[dict[str, Any]]: ...
