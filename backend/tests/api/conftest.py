"""API test fixtures — FastAPI app with fake-agent Services on app.state.

Invariants:
    - Lifespan is not run by ASGITransport; services are injected directly
    - Every test gets fresh services; app.state is restored afterwards
"""

import pytest
from httpx import ASGITransport, AsyncClient

from coachflow.core.domain_types import AgentType
from coachflow.infrastructure.memory_repository import InMemoryMemoryRepository
from coachflow.main import app
from coachflow.services.agent_manager import AgentManager
from coachflow.services.bootstrap import Services
from coachflow.services.goal_tracker import GoalProgressTracker
from coachflow.services.handoff_engine import HandoffEngine
from coachflow.services.memory_assembler import MemoryAssembler
from coachflow.services.memory_tools import register_memory_tools
from coachflow.services.tool_sandbox import ToolSandbox

from tests.services.fakes import FakeAgent


@pytest.fixture
def fake_agents():
    return {a.value: FakeAgent(a.value) for a in AgentType}


@pytest.fixture
def services(fake_agents):
    sandbox = ToolSandbox()
    memory = MemoryAssembler(InMemoryMemoryRepository())
    goals = GoalProgressTracker()
    register_memory_tools(sandbox, memory, goals)
    handoffs = HandoffEngine(memory)
    manager = AgentManager(
        list(fake_agents.values()), memory, handoffs, sandbox, goals=goals,
    )
    return Services(sandbox, memory, handoffs, manager)


@pytest.fixture
async def client(services):
    previous = getattr(app.state, "services", None)
    app.state.services = services
    async with AsyncClient(
        transport=ASGITransport(app=app, raise_app_exceptions=False),
        base_url="http://test",
    ) as c:
        yield c
    app.state.services = previous
