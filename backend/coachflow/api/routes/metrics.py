"""Metrics Routes — read-only snapshots of tool, handoff and agent counters.

Invariants:
    - GET only; nothing here changes component state
    - Datetimes rendered as ISO-8601 strings
"""

import dataclasses

from fastapi import APIRouter, Depends, Query

from coachflow.api.dependencies import get_services
from coachflow.services.bootstrap import Services

router = APIRouter(prefix="/api/v1/metrics", tags=["metrics"])


@router.get("/tools")
async def tool_metrics(services: Services = Depends(get_services)):
    sandbox = services.sandbox
    return {
        "tools": {
            name: {
                **dataclasses.asdict(m),
                "last_execution": m.last_execution.isoformat() if m.last_execution else None,
            }
            for name, m in sandbox.get_tool_metrics().items()
        },
        "statistics": sandbox.get_statistics(),
        "is_healthy": sandbox.is_healthy(),
    }


@router.get("/handoffs")
async def handoff_metrics(
    user_id: str | None = Query(default=None, max_length=100),
    services: Services = Depends(get_services),
):
    handoffs = services.handoffs
    return {
        "statistics": handoffs.get_handoff_statistics(user_id),
        "health": handoffs.get_health_status(),
    }


@router.get("/agents")
async def agent_metrics(services: Services = Depends(get_services)):
    return services.manager.get_agent_metrics()
