"""Service test fixtures — in-memory repository, fake agents, wired components.

Invariants:
    - Every test gets fresh components; nothing is shared between tests
    - The handoff engine runs on a FakeClock so escalation windows are exact
"""

import pytest

from coachflow.core.domain_types import AgentType
from coachflow.infrastructure.memory_repository import InMemoryMemoryRepository
from coachflow.services.agent_manager import AgentManager
from coachflow.services.goal_tracker import GoalProgressTracker
from coachflow.services.handoff_engine import HandoffEngine
from coachflow.services.memory_assembler import MemoryAssembler
from coachflow.services.tool_sandbox import ToolSandbox

from tests.services.fakes import FakeAgent, FakeClock


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def repository():
    return InMemoryMemoryRepository()


@pytest.fixture
def memory(repository):
    return MemoryAssembler(repository)


@pytest.fixture
def sandbox():
    return ToolSandbox()


@pytest.fixture
def engine(memory, clock):
    return HandoffEngine(memory, now=clock.now, monotonic=clock.monotonic)


@pytest.fixture
def fake_agents():
    return {a.value: FakeAgent(a.value) for a in AgentType}


@pytest.fixture
def manager(fake_agents, memory, engine, sandbox):
    return AgentManager(
        list(fake_agents.values()), memory, engine, sandbox,
        goals=GoalProgressTracker(),
    )
