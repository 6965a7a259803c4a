"""Handoff Engine — validates and executes transfers of control between agents.

Invariants:
    - execute_handoff() never raises: every outcome is a HandoffResult
    - Validation (agents exist and are ready, rule matches, escalation below ceiling,
      no reversal of a recent handoff) runs before any side effect; a rejected
      request writes no memory and is not recorded in the handoff history
    - Once validation passes, success or failure is recorded newest-first in the
      per-user history, capped at HandoffPolicy.history_limit
    - The recorded escalation level per user never decreases (until reset_escalation)
      and never exceeds HandoffPolicy.max_escalation_level
    - Escalation never blocks a handoff; it only raises the level
    - route_to_optimal_agent() is advice only: it reads, never writes
"""

import logging
import time
import uuid
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

from coachflow.core.agent_models import RunContext
from coachflow.core.errors import CoachflowError, ErrorKind
from coachflow.core.format_handoff import construct_handoff_message
from coachflow.core.handoff_models import (
    ContextPreservation, EscalationDecision, HandoffPolicy, HandoffRequest,
    HandoffResult, HandoffRule, RoutingDecision, ValidationOutcome,
)
from coachflow.core.handoff_rules import (
    check_escalation, default_handoff_rules, detect_circular_handoff,
    find_applicable_rule, has_catch_all,
)
from coachflow.core.handoff_stats import compute_handoff_statistics
from coachflow.core.memory_models import AgentMemoryContext
from coachflow.core.repository_protocols import AgentDirectory
from coachflow.core.routing import (
    analyze_message_for_routing, apply_routing_rules, fallback_routing,
)
from coachflow.services.memory_assembler import MemoryAssembler

logger = logging.getLogger(__name__)

HANDOFF_AGENT_NAME = "handoff_manager"
HANDOFF_INSIGHT_CATEGORY = "agent_handoff"
PRESERVATION_CATEGORY = "context_preservation"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class HandoffEngine:
    """Owns handoff history, active handoffs and per-user escalation levels."""

    def __init__(
        self,
        memory: MemoryAssembler,
        policy: HandoffPolicy | None = None,
        rules: list[HandoffRule] | None = None,
        now: Callable[[], datetime] = _utcnow,
        monotonic: Callable[[], float] = time.monotonic,
    ):
        self.memory = memory
        self.policy = policy or HandoffPolicy()
        self.rules = rules if rules is not None else default_handoff_rules()
        if not has_catch_all(self.rules):
            raise ValueError("Handoff rules must include a catch-all rule")
        self._now = now
        self._monotonic = monotonic
        self._history: dict[str, list[HandoffResult]] = {}
        self._escalation: dict[str, int] = {}
        self._active: dict[str, tuple[HandoffRequest, float]] = {}
        logger.info("Handoff rules initialized: %d", len(self.rules))

    # -- Execution -------------------------------------------------------------

    async def execute_handoff(
        self, request: HandoffRequest, agents: AgentDirectory,
    ) -> HandoffResult:
        handoff_id = f"handoff_{uuid.uuid4().hex}"
        started = self._monotonic()
        log_extra = {
            "handoff_id": handoff_id, "user_id": request.user_id,
            "session_id": request.session_id,
        }
        logger.info("Initiating agent handoff %s -> %s (%s, priority=%s)",
            request.from_agent, request.to_agent, request.reason,
            request.priority.value, extra=log_extra)

        try:
            validation = self.validate_handoff(request, agents)
        except Exception as e:
            logger.error("Handoff validation error: %s", e, exc_info=True, extra=log_extra)
            validation = ValidationOutcome.rejected(
                ErrorKind.TRANSITION_FAILURE, "Validation error occurred",
            )
        if not validation.valid:
            logger.warning("Handoff rejected: %s", validation.reason, extra={
                **log_extra, "error_code": validation.kind.value,
            })
            return HandoffResult(
                success=False,
                handoff_id=handoff_id,
                from_agent=request.from_agent,
                to_agent=request.to_agent,
                duration_ms=self._elapsed_ms(started),
                error=f"Handoff validation failed: {validation.reason}",
                error_kind=validation.kind,
                metadata={
                    "failure_reason": validation.reason,
                    "escalation_level": self._current_level(request),
                },
                created_at=self._now(),
            )

        self._active[handoff_id] = (request, started)
        level = self._current_level(request)
        metadata: dict[str, Any] = {
            "handoff_reason": request.reason,
            "priority": request.priority.value,
            "escalation_level": level,
            "rule_applied": validation.rule_applied,
        }
        try:
            memory_context = await self.memory.build_agent_memory_context(
                request.user_id, request.to_agent, request.session_id, True,
            )
            preservation = await self._preserve_context(request, level)
            metadata["preserved_items"] = preservation.preserved_items

            escalation = self._check_escalation(request, level)
            metadata.update(escalation.metadata)
            level = escalation.new_level
            metadata["escalation_level"] = level
            if escalation.escalated:
                logger.warning("Handoff escalated to level %d: %s",
                    level, escalation.reason, extra=log_extra)

            response = await self._execute_transition(
                request, agents, memory_context, preservation, level,
            )
        except Exception as e:
            kind = e.kind if isinstance(e, CoachflowError) else ErrorKind.TRANSITION_FAILURE
            message = e.message if isinstance(e, CoachflowError) else str(e)
            logger.error("Agent handoff failed: %s", message, extra={
                **log_extra, "error_code": kind.value,
            })
            failure = HandoffResult(
                success=False,
                handoff_id=handoff_id,
                from_agent=request.from_agent,
                to_agent=request.to_agent,
                duration_ms=self._elapsed_ms(started),
                error=f"Agent transition failed: {message}",
                error_kind=kind,
                metadata={**metadata, "failure_reason": message},
                created_at=self._now(),
            )
            self._record(request.user_id, failure)
            return failure
        finally:
            self._active.pop(handoff_id, None)

        result = HandoffResult(
            success=True,
            handoff_id=handoff_id,
            from_agent=request.from_agent,
            to_agent=request.to_agent,
            duration_ms=self._elapsed_ms(started),
            response=response,
            context_preserved=preservation.success,
            escalation_triggered=escalation.escalated,
            metadata=metadata,
            created_at=self._now(),
        )
        self._record(request.user_id, result)
        await self._store_handoff_insight(request)
        logger.info("Agent handoff completed", extra={
            **log_extra, "duration_ms": round(result.duration_ms, 2),
        })
        return result

    def validate_handoff(
        self, request: HandoffRequest, agents: AgentDirectory,
    ) -> ValidationOutcome:
        for role, name in (("Source", request.from_agent), ("Target", request.to_agent)):
            agent = agents.get_agent(name)
            if agent is None:
                return ValidationOutcome.rejected(
                    ErrorKind.NOT_FOUND, f"{role} agent '{name}' not found",
                )
            if not agent.is_ready():
                return ValidationOutcome.rejected(
                    ErrorKind.NOT_READY, f"{role} agent '{name}' is not ready",
                )

        rule = find_applicable_rule(self.rules, request)
        if rule is None:
            return ValidationOutcome.rejected(
                ErrorKind.RULE_MISMATCH, "No applicable handoff rule found",
            )

        if request.escalation_level >= self.policy.max_escalation_level:
            return ValidationOutcome.rejected(
                ErrorKind.ESCALATION_LIMIT_REACHED, "Maximum escalation level reached",
            )

        history = self._history.get(request.user_id, [])
        if detect_circular_handoff(history, request, self.policy.circular_window):
            return ValidationOutcome.rejected(
                ErrorKind.CIRCULAR_HANDOFF, "Circular handoff detected - potential loop",
            )

        return ValidationOutcome.passed(rule.name)

    async def _preserve_context(
        self, request: HandoffRequest, level: int,
    ) -> ContextPreservation:
        """Write the handoff notes. A write failure degrades, it does not abort."""
        if not request.preserve_history:
            return ContextPreservation(success=True, preserved_items=0)

        note_meta = {
            "handoff_type": "transition",
            "from_agent": request.from_agent,
            "to_agent": request.to_agent,
            "priority": request.priority.value,
            "escalation_level": level,
        }
        writes = (
            lambda: self.memory.store_system_note(
                request.user_id, request.from_agent, request.session_id,
                f"[Handoff to {request.to_agent}] {request.reason}",
                {**note_meta, "direction": "outgoing"},
            ),
            lambda: self.memory.store_system_note(
                request.user_id, request.to_agent, request.session_id,
                f"[Handoff from {request.from_agent}] Taking over: {request.reason}",
                {**note_meta, "direction": "incoming"},
            ),
            lambda: self.memory.store_insight(
                request.user_id, HANDOFF_AGENT_NAME, request.session_id,
                f"Conversation context preserved during handoff from "
                f"{request.from_agent} to {request.to_agent}",
                PRESERVATION_CATEGORY, 1.0,
            ),
        )
        preserved = 0
        for write in writes:
            try:
                await write()
            except Exception as e:
                logger.error("Failed to preserve conversation context: %s", e,
                    extra={"user_id": request.user_id})
                return ContextPreservation(success=False, preserved_items=preserved)
            preserved += 1
        return ContextPreservation(success=True, preserved_items=preserved)

    def _current_level(self, request: HandoffRequest) -> int:
        return max(request.escalation_level, self._escalation.get(request.user_id, 0))

    def _check_escalation(
        self, request: HandoffRequest, level: int,
    ) -> EscalationDecision:
        decision = check_escalation(
            level, request.priority,
            self._history.get(request.user_id, []),
            self._now(), self.policy,
        )
        stored = self._escalation.get(request.user_id, 0)
        self._escalation[request.user_id] = max(stored, decision.new_level)
        return decision

    async def _execute_transition(
        self,
        request: HandoffRequest,
        agents: AgentDirectory,
        memory_context: AgentMemoryContext,
        preservation: ContextPreservation,
        level: int,
    ) -> str:
        context = RunContext(
            user_id=request.user_id,
            session_id=request.session_id,
            timestamp=self._now(),
            financial=dict(request.context),
            previous_interactions=[{
                "role": "system",
                "content": (
                    f"[Handoff from {request.from_agent}] Reason: {request.reason}. "
                    f"Priority: {request.priority.value}. Escalation Level: {level}"
                ),
                "agent_name": request.from_agent,
                "metadata": {
                    "handoff_type": "transition",
                    "preserved_context": preservation.success,
                },
            }],
            metadata={
                **request.metadata,
                "handoff": {
                    "from_agent": request.from_agent,
                    "reason": request.reason,
                    "priority": request.priority.value,
                    "escalation_level": level,
                    "user_message": request.user_message,
                },
            },
        )
        message = construct_handoff_message(request, level, memory_context)
        return await agents.run_agent(request.to_agent, message, context)

    async def _store_handoff_insight(self, request: HandoffRequest) -> None:
        try:
            await self.memory.store_insight(
                request.user_id, HANDOFF_AGENT_NAME, request.session_id,
                f"Successfully handed off from {request.from_agent} to "
                f"{request.to_agent}: {request.reason}",
                HANDOFF_INSIGHT_CATEGORY, 0.9,
            )
        except Exception as e:
            logger.error("Failed to store handoff insight: %s", e,
                extra={"user_id": request.user_id})

    def _record(self, user_id: str, result: HandoffResult) -> None:
        history = self._history.setdefault(user_id, [])
        history.insert(0, result)
        del history[self.policy.history_limit:]

    def _elapsed_ms(self, started: float) -> float:
        return (self._monotonic() - started) * 1000

    # -- Routing ---------------------------------------------------------------

    async def route_to_optimal_agent(
        self, current_agent: str, user_message: str, user_id: str,
    ) -> RoutingDecision:
        try:
            analysis = analyze_message_for_routing(user_message)
            profile = await self.memory.get_user_memory_profile(user_id)
            decision = apply_routing_rules(
                current_agent, analysis, profile.context.current_focus,
            )
        except Exception as e:
            logger.error("Failed to route agent: %s", e,
                extra={"user_id": user_id, "agent_name": current_agent})
            return fallback_routing(current_agent)

        logger.info("Agent routing decision: %s -> %s (%s, confidence=%.2f)",
            current_agent, decision.target_agent, decision.reason,
            decision.confidence, extra={"user_id": user_id})
        return decision

    # -- Introspection ---------------------------------------------------------

    def get_handoff_history(self, user_id: str, limit: int = 10) -> list[HandoffResult]:
        return list(self._history.get(user_id, [])[:limit])

    def get_handoff_statistics(self, user_id: str | None = None) -> dict:
        if user_id is not None:
            results = self._history.get(user_id, [])
        else:
            results = [r for h in self._history.values() for r in h]
        return compute_handoff_statistics(results)

    def get_escalation_level(self, user_id: str) -> int:
        return self._escalation.get(user_id, 0)

    def reset_escalation(self, user_id: str) -> None:
        self._escalation.pop(user_id, None)
        logger.info("Escalation level reset", extra={"user_id": user_id})

    def get_active_handoffs(self) -> list[HandoffRequest]:
        return [request for request, _ in self._active.values()]

    def get_health_status(self) -> dict:
        now = self._monotonic()
        issues = [
            f"Handoff {handoff_id} has been active for {round(now - started)}s"
            for handoff_id, (_, started) in self._active.items()
            if now - started > self.policy.handoff_timeout_seconds
        ]
        return {
            "is_healthy": not issues,
            "active_handoffs": len(self._active),
            "handoff_rules": len(self.rules),
            "issues": issues,
        }

