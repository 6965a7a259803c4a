"""Health & Metrics Routes — liveness, readiness and metrics snapshots."""

import pytest


@pytest.mark.asyncio
async def test_liveness(client):
    response = await client.get("/api/v1/health/")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


@pytest.mark.asyncio
async def test_readiness_ok(client):
    response = await client.get("/api/v1/health/ready")
    assert response.status_code == 200
    assert response.json()["checks"]["tool_sandbox"] == "healthy"


@pytest.mark.asyncio
async def test_readiness_fails_without_tools(client, services):
    services.sandbox.clear()
    response = await client.get("/api/v1/health/ready")
    assert response.status_code == 503
    assert response.json()["checks"]["tool_sandbox"] == "unhealthy"


@pytest.mark.asyncio
async def test_readiness_fails_when_agent_not_ready(client, fake_agents):
    fake_agents["insight_generator"].ready = False
    response = await client.get("/api/v1/health/ready")
    assert response.status_code == 503
    assert response.json()["checks"]["agents"] == "unhealthy"


@pytest.mark.asyncio
async def test_tool_metrics(client):
    await client.post("/api/v1/agents/budget_coach/run", json={
        "user_id": "u1", "session_id": "s1", "message": "hi",
    })
    response = await client.get("/api/v1/metrics/tools")
    assert response.status_code == 200
    body = response.json()
    assert "store_user_preference" in body["tools"]
    assert body["statistics"]["total_tools"] == 4
    assert body["is_healthy"] is True


@pytest.mark.asyncio
async def test_handoff_metrics(client):
    await client.post("/api/v1/agents/handoff", json={
        "user_id": "u1", "session_id": "s1", "from_agent": "financial_advisor",
        "to_agent": "budget_coach", "message": "x", "reason": "y",
    })
    response = await client.get("/api/v1/metrics/handoffs", params={"user_id": "u1"})
    body = response.json()
    assert body["statistics"]["total_handoffs"] == 1
    assert body["health"]["is_healthy"] is True


@pytest.mark.asyncio
async def test_agent_metrics(client):
    response = await client.get("/api/v1/metrics/agents")
    body = response.json()
    assert "handoff_system" in body
    assert body["budget_coach"]["runs"] == 0
