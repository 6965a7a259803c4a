"""Agent Routes — run a named agent, route a message, hand off between agents.

Invariants:
    - Routes only translate HTTP ↔ AgentManager calls
    - A failed HandoffResult is raised as the typed error of its kind
    - Typed errors are rendered by the global CoachflowError handler
"""

import logging

from fastapi import APIRouter, Depends

from coachflow.core.agent_models import RunContext
from coachflow.core.errors import ErrorContext, error_for_kind
from coachflow.schemas.agent import (
    AgentRunRequest, AgentRunResponse, AgentSummary, HandoffRequestBody,
    HandoffResponse, RouteResponse, RunContextBody,
)
from coachflow.api.dependencies import get_services
from coachflow.services.bootstrap import Services

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/agents", tags=["agents"])


def _run_context(body: RunContextBody) -> RunContext:
    return RunContext(
        user_id=body.user_id,
        session_id=body.session_id,
        financial=dict(body.financial),
        goals=list(body.goals),
        previous_interactions=list(body.previous_interactions),
        metadata=dict(body.metadata),
    )


@router.get("", response_model=list[AgentSummary])
async def list_agents(services: Services = Depends(get_services)):
    manager = services.manager
    summaries = []
    for name in manager.agent_names():
        agent = manager.get_agent(name)
        summaries.append(AgentSummary(
            name=name,
            display_name=agent.profile.display_name,
            capabilities=list(agent.profile.capabilities),
            handoff_targets=list(agent.profile.handoff_targets),
            is_ready=agent.is_ready(),
        ))
    return summaries


@router.post("/route", response_model=RouteResponse)
async def route_message(
    body: AgentRunRequest, services: Services = Depends(get_services),
):
    routed = await services.manager.route_to_agent(body.message, _run_context(body))
    return RouteResponse(
        agent_name=routed.agent_name,
        response=routed.response,
        reason=routed.reason,
        confidence=routed.confidence,
        suggested_agent=routed.suggested_agent,
    )


@router.post("/handoff", response_model=HandoffResponse)
async def handoff(
    body: HandoffRequestBody, services: Services = Depends(get_services),
):
    result = await services.manager.execute_handoff(
        body.from_agent,
        body.to_agent,
        body.message,
        body.reason,
        _run_context(body),
        priority=body.priority,
        escalation_level=body.escalation_level,
    )
    if not result.success:
        raise error_for_kind(result.error_kind, result.error or "Handoff failed", ErrorContext(
            user_id=body.user_id, session_id=body.session_id,
            agent_name=body.to_agent, handoff_id=result.handoff_id,
        ))
    return HandoffResponse(
        handoff_id=result.handoff_id,
        from_agent=result.from_agent,
        to_agent=result.to_agent,
        response=result.response,
        context_preserved=result.context_preserved,
        escalation_triggered=result.escalation_triggered,
        duration_ms=result.duration_ms,
        metadata=result.metadata,
    )


@router.post("/{agent_name}/run", response_model=AgentRunResponse)
async def run_agent(
    agent_name: str, body: AgentRunRequest,
    services: Services = Depends(get_services),
):
    response = await services.manager.run_agent(
        agent_name, body.message, _run_context(body),
    )
    return AgentRunResponse(agent_name=agent_name, response=response)
