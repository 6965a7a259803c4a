"""Agent Manager — the orchestrator: resolves an agent, assembles memory, runs it, records it.

Invariants:
    - run_agent() raises typed errors: ResourceNotFoundError (unknown agent),
      AgentNotReadyError, ParameterValidationError (empty message),
      TransitionFailureError (agent reported failure); it never retries
    - The interaction is stored only after a successful agent run
    - The caller's RunContext is never mutated (dataclasses.replace)
    - execute_handoff() returns the engine's HandoffResult unchanged
    - route_to_agent() degrades to the default agent when the advice is weak
      or names an unregistered agent
"""

import dataclasses
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from coachflow.core.agent_models import RoutedRun, RunContext
from coachflow.core.domain_types import HandoffPriority
from coachflow.core.errors import (
    AgentNotReadyError, ErrorContext, ParameterValidationError,
    ResourceNotFoundError, TransitionFailureError,
)
from coachflow.core.handoff_models import HandoffRequest, HandoffResult
from coachflow.core.repository_protocols import Agent, GoalTracker
from coachflow.core.routing import determine_agent_from_message
from coachflow.services.handoff_engine import HandoffEngine
from coachflow.services.memory_assembler import MemoryAssembler
from coachflow.services.tool_sandbox import ToolSandbox

logger = logging.getLogger(__name__)


@dataclass
class AgentRunStats:
    runs: int = 0
    failures: int = 0
    total_duration_ms: float = 0.0
    last_run: datetime | None = None

    @property
    def average_duration_ms(self) -> float:
        return self.total_duration_ms / self.runs if self.runs else 0.0


class AgentManager:
    """Single entry point for agent runs, handoffs and routing."""

    def __init__(
        self,
        agents: list[Agent],
        memory: MemoryAssembler,
        handoffs: HandoffEngine,
        sandbox: ToolSandbox,
        goals: GoalTracker | None = None,
        default_agent: str = "financial_advisor",
        routing_confidence_threshold: float = 0.5,
    ):
        self._agents: dict[str, Agent] = {}
        self._stats: dict[str, AgentRunStats] = {}
        for agent in agents:
            self.register_agent(agent)
        self.memory = memory
        self.handoffs = handoffs
        self.sandbox = sandbox
        self.goals = goals
        self.default_agent = default_agent
        self.routing_confidence_threshold = routing_confidence_threshold
        logger.info("Agent manager initialized with agents: %s",
            ", ".join(self._agents))

    def register_agent(self, agent: Agent) -> None:
        if agent.name in self._agents:
            raise ValueError(f"Agent '{agent.name}' is already registered")
        self._agents[agent.name] = agent
        self._stats[agent.name] = AgentRunStats()

    # -- Runs ------------------------------------------------------------------

    async def run_agent(
        self, agent_name: str, message: str, context: RunContext,
    ) -> str:
        err_ctx = ErrorContext(
            user_id=context.user_id, session_id=context.session_id,
            agent_name=agent_name,
        )
        agent = self._agents.get(agent_name)
        if agent is None:
            raise ResourceNotFoundError("Agent", agent_name, err_ctx)
        if not agent.is_ready():
            raise AgentNotReadyError(agent_name, err_ctx)
        if not message or not message.strip():
            raise ParameterValidationError("Message must not be empty", err_ctx)

        logger.info("Running agent (message length %d)", len(message), extra={
            "agent_name": agent_name, "user_id": context.user_id,
            "session_id": context.session_id,
        })

        memory_context = await self.memory.build_agent_memory_context(
            context.user_id, agent_name, context.session_id, True,
        )
        goal_tracking: list[dict[str, Any]] = []
        if context.goals and self.goals is not None:
            goal_tracking = await self.goals.track_goal_progress(
                context.user_id, context,
            )
        enhanced = dataclasses.replace(
            context, memory_context=memory_context, goal_tracking=goal_tracking,
        )

        started = time.monotonic()
        result = await agent.run(message, enhanced)
        self._record_run(agent_name, result.success, (time.monotonic() - started) * 1000)

        if not result.success:
            logger.error("Agent execution failed: %s", result.error, extra={
                "agent_name": agent_name, "user_id": context.user_id,
            })
            raise TransitionFailureError(
                f"Agent '{agent_name}' failed: {result.error or 'Agent execution failed'}",
                err_ctx,
            )

        await self.memory.store_interaction(
            context.user_id,
            agent_name,
            context.session_id,
            message,
            result.response,
            context.business_context(),
            {
                "duration_ms": round(result.duration_ms, 2),
                "success": True,
                "tool_calls": result.tool_calls,
                "goal_tracking_enabled": bool(goal_tracking),
                **({"routing": context.metadata["routing"]}
                   if "routing" in context.metadata else {}),
            },
        )
        return result.response

    def _record_run(self, agent_name: str, success: bool, duration_ms: float) -> None:
        stats = self._stats[agent_name]
        stats.runs += 1
        stats.total_duration_ms += duration_ms
        stats.last_run = datetime.now(timezone.utc)
        if not success:
            stats.failures += 1

    # -- Handoffs --------------------------------------------------------------

    async def execute_handoff(
        self,
        from_agent: str,
        to_agent: str,
        message: str,
        reason: str,
        context: RunContext,
        priority: HandoffPriority = HandoffPriority.MEDIUM,
        escalation_level: int = 0,
    ) -> HandoffResult:
        started = time.monotonic()
        request = HandoffRequest(
            from_agent=from_agent,
            to_agent=to_agent,
            user_id=context.user_id,
            session_id=context.session_id,
            reason=reason,
            user_message=message,
            priority=priority,
            context=context.business_context(),
            escalation_level=escalation_level,
            preserve_history=True,
            metadata={
                "original_timestamp": context.timestamp.isoformat(),
                "previous_interaction_count": len(context.previous_interactions),
            },
        )
        result = await self.handoffs.execute_handoff(request, self)

        log = logger.info if result.success else logger.warning
        log("Handoff %s -> %s finished (success=%s)", from_agent, to_agent, result.success,
            extra={
                "handoff_id": result.handoff_id, "user_id": context.user_id,
                "duration_ms": round((time.monotonic() - started) * 1000, 2),
                "error_code": result.error_kind.value if result.error_kind else None,
            })
        return result

    # -- Routing ---------------------------------------------------------------

    async def route_to_agent(self, message: str, context: RunContext) -> RoutedRun:
        decision = await self.handoffs.route_to_optimal_agent(
            self.default_agent, message, context.user_id,
        )
        target = decision.target_agent
        if (
            target not in self._agents
            or decision.confidence < self.routing_confidence_threshold
        ):
            logger.info("Routing advice %s (confidence %.2f) not usable, using %s",
                target, decision.confidence, self.default_agent,
                extra={"user_id": context.user_id})
            target = self.default_agent

        routed = dataclasses.replace(context, metadata={
            **context.metadata,
            "routing": {
                "reason": decision.reason,
                "confidence": decision.confidence,
                "original_agent": self.default_agent,
                "suggested_agent": decision.target_agent,
            },
        })
        response = await self.run_agent(target, message, routed)
        return RoutedRun(
            agent_name=target,
            response=response,
            reason=decision.reason,
            confidence=decision.confidence,
            suggested_agent=decision.target_agent,
        )

    def select_agent(self, message: str) -> str:
        """Keyword routing for a fresh conversation."""
        agent = determine_agent_from_message(message, self.default_agent)
        return agent if agent in self._agents else self.default_agent

    # -- Introspection ---------------------------------------------------------

    def get_agent(self, agent_name: str) -> Agent | None:
        return self._agents.get(agent_name)

    def agent_names(self) -> list[str]:
        return list(self._agents)

    def get_agent_capabilities(self, agent_name: str) -> list[str]:
        agent = self._agents.get(agent_name)
        return list(agent.profile.capabilities) if agent else []

    def get_agent_metrics(self) -> dict:
        metrics: dict[str, Any] = {}
        for name, agent in self._agents.items():
            stats = self._stats[name]
            metrics[name] = {
                "is_available": agent.is_ready(),
                "display_name": agent.profile.display_name,
                "capabilities": list(agent.profile.capabilities),
                "runs": stats.runs,
                "failures": stats.failures,
                "average_duration_ms": stats.average_duration_ms,
                "last_run": stats.last_run.isoformat() if stats.last_run else None,
            }

        handoff_stats = self.handoffs.get_handoff_statistics()
        metrics["handoff_system"] = {
            "total_handoffs": handoff_stats["total_handoffs"],
            "success_rate": handoff_stats["success_rate"],
            "average_duration_ms": handoff_stats["average_duration_ms"],
            "escalation_rate": handoff_stats["escalation_rate"],
            "active_handoffs": len(self.handoffs.get_active_handoffs()),
            "health_status": self.handoffs.get_health_status(),
        }
        return metrics

    def is_ready(self) -> bool:
        return bool(self._agents) and all(a.is_ready() for a in self._agents.values())
