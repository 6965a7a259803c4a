"""Tool Sandbox — tests for registration, guarded execution, metrics and health.

Tests cover:
    - Registration rules (empty name, missing execute, duplicates, overwrite)
    - Unknown tools return NotFound and record nothing
    - Invalid parameters never reach the tool function
    - Auth, timeout and tool exceptions come back as structured failures
    - Metrics, execution history ring buffer and health evaluation
"""

import asyncio

import pytest
from pydantic import BaseModel, Field

from coachflow.core.errors import ErrorKind
from coachflow.core.tool_models import (
    SandboxLimits, ToolDefinition, ToolExecutionContext,
)
from coachflow.services.tool_sandbox import ToolSandbox


class AmountParams(BaseModel):
    amount: float = Field(gt=0)
    note: str = ""


class CountingTool:
    def __init__(self, result="ok", delay=0.0, error=None):
        self.calls = []
        self.result = result
        self.delay = delay
        self.error = error

    async def __call__(self, params, ctx):
        self.calls.append((params, ctx))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.result


def _ctx(**kwargs):
    kwargs.setdefault("user_id", "user-1")
    return ToolExecutionContext(**kwargs)


def _register(sandbox, name="calc", fn=None, **kwargs):
    fn = fn or CountingTool()
    sandbox.register(ToolDefinition(name=name, execute=fn, **kwargs))
    return fn


# -- Registration --------------------------------------------------------------


def test_register_rejects_empty_name():
    with pytest.raises(ValueError):
        ToolSandbox().register(ToolDefinition(name="", execute=CountingTool()))


def test_register_rejects_missing_execute():
    with pytest.raises(ValueError):
        ToolSandbox().register(ToolDefinition(name="calc", execute=None))


def test_register_duplicate_fails_without_overwrite():
    sandbox = ToolSandbox()
    _register(sandbox)
    with pytest.raises(ValueError):
        _register(sandbox)


@pytest.mark.asyncio
async def test_register_overwrite_replaces_function():
    sandbox = ToolSandbox()
    _register(sandbox, fn=CountingTool(result="old"))
    sandbox.register(
        ToolDefinition(name="calc", execute=CountingTool(result="new")), overwrite=True,
    )
    result = await sandbox.execute("calc", {}, _ctx())
    assert result.result == "new"
    assert sandbox.tool_count() == 1


def test_unregister_and_clear():
    sandbox = ToolSandbox()
    _register(sandbox, "a")
    _register(sandbox, "b")
    assert sandbox.unregister("a") is True
    assert sandbox.unregister("a") is False
    assert sandbox.tool_names() == ["b"]
    sandbox.clear()
    assert sandbox.tool_count() == 0
    assert sandbox.get_tool_metrics() == {}


def test_anthropic_tools_skips_unregistered_names():
    sandbox = ToolSandbox()
    _register(sandbox, "calc", parameters=AmountParams, description="Add things")
    tools = sandbox.anthropic_tools(["calc", "missing"])
    assert len(tools) == 1
    assert tools[0]["name"] == "calc"
    assert tools[0]["description"] == "Add things"
    assert "amount" in tools[0]["input_schema"]["properties"]


# -- Execution -----------------------------------------------------------------


@pytest.mark.asyncio
async def test_unknown_tool_returns_not_found_without_metrics():
    sandbox = ToolSandbox()
    result = await sandbox.execute("nope", {}, _ctx())
    assert result.success is False
    assert result.error_kind is ErrorKind.NOT_FOUND
    assert "nope" in result.error
    assert sandbox.get_execution_history() == []
    assert sandbox.get_tool_metrics("nope").execution_count == 0


@pytest.mark.asyncio
async def test_invalid_parameters_never_reach_tool():
    sandbox = ToolSandbox()
    fn = _register(sandbox, parameters=AmountParams)
    result = await sandbox.execute("calc", {"amount": -5}, _ctx())
    assert result.success is False
    assert result.error_kind is ErrorKind.VALIDATION
    assert result.error.startswith("Validation failed")
    assert fn.calls == []
    assert sandbox.get_tool_metrics("calc").total_errors == 1


@pytest.mark.asyncio
async def test_valid_parameters_are_normalized():
    sandbox = ToolSandbox()
    fn = _register(sandbox, parameters=AmountParams)
    result = await sandbox.execute("calc", {"amount": "12.5"}, _ctx())
    assert result.success is True
    assert fn.calls[0][0] == {"amount": 12.5, "note": ""}


@pytest.mark.asyncio
async def test_auth_required_without_user():
    sandbox = ToolSandbox()
    fn = _register(sandbox, requires_auth=True)
    result = await sandbox.execute("calc", {}, ToolExecutionContext(user_id=""))
    assert result.error_kind is ErrorKind.AUTH_REQUIRED
    assert fn.calls == []


@pytest.mark.asyncio
async def test_timeout_returns_timeout_failure():
    sandbox = ToolSandbox()
    _register(sandbox, fn=CountingTool(delay=1.0))
    result = await sandbox.execute("calc", {}, _ctx(timeout=0.1))
    assert result.success is False
    assert result.error_kind is ErrorKind.TIMEOUT
    assert result.error == "Tool execution timeout"
    assert result.duration_ms < 1000


@pytest.mark.asyncio
async def test_timeout_does_not_wait_for_tool_that_ignores_cancellation():
    finished = asyncio.Event()

    async def stubborn(params, ctx):
        try:
            await asyncio.sleep(10)
        except asyncio.CancelledError:
            await asyncio.sleep(0.5)
        finished.set()
        return "late"

    sandbox = ToolSandbox()
    _register(sandbox, fn=stubborn)
    result = await sandbox.execute("calc", {}, _ctx(timeout=0.1))

    assert result.success is False
    assert result.error_kind is ErrorKind.TIMEOUT
    assert result.result is None
    assert result.duration_ms < 500

    await asyncio.wait_for(finished.wait(), timeout=2)
    await asyncio.sleep(0)
    metrics = sandbox.get_tool_metrics("calc")
    assert metrics.execution_count == 1
    assert metrics.total_errors == 1


@pytest.mark.asyncio
async def test_tool_exception_is_captured():
    sandbox = ToolSandbox()
    _register(sandbox, fn=CountingTool(error=RuntimeError("boom")))
    result = await sandbox.execute("calc", {}, _ctx())
    assert result.success is False
    assert result.error_kind is ErrorKind.TRANSITION_FAILURE
    assert result.error == "boom"


@pytest.mark.asyncio
async def test_sync_execute_function_is_supported():
    sandbox = ToolSandbox()
    sandbox.register(ToolDefinition(
        name="echo", execute=lambda params, ctx: {"echo": ctx.user_id},
    ))
    result = await sandbox.execute("echo", {}, _ctx(user_id="u9"))
    assert result.success is True
    assert result.result == {"echo": "u9"}


@pytest.mark.asyncio
async def test_payload_shapes():
    sandbox = ToolSandbox()
    _register(sandbox, fn=CountingTool(result={"x": 1}))
    ok = await sandbox.execute("calc", {}, _ctx())
    missing = await sandbox.execute("missing", {}, _ctx())
    assert ok.to_payload() == {"status": "ok", "result": {"x": 1}}
    assert missing.to_payload()["error_code"] == "NotFound"


# -- Metrics & health ----------------------------------------------------------


@pytest.mark.asyncio
async def test_metrics_track_count_errors_and_rate():
    sandbox = ToolSandbox()
    fn = _register(sandbox)
    await sandbox.execute("calc", {}, _ctx())
    fn.error = ValueError("bad")
    await sandbox.execute("calc", {}, _ctx())
    metrics = sandbox.get_tool_metrics("calc")
    assert metrics.execution_count == 2
    assert metrics.total_errors == 1
    assert metrics.success_rate == pytest.approx(50.0)
    assert metrics.last_execution is not None


@pytest.mark.asyncio
async def test_history_is_newest_first_and_bounded():
    sandbox = ToolSandbox(SandboxLimits(history_size=3))
    _register(sandbox, "a")
    _register(sandbox, "b")
    for name in ("a", "a", "b", "a", "b"):
        await sandbox.execute(name, {}, _ctx())
    history = sandbox.get_execution_history(limit=10)
    assert [h.tool_name for h in history] == ["b", "a", "b"]
    assert sandbox.get_execution_history(limit=1)[0].tool_name == "b"
    assert sandbox.get_execution_history(limit=0) == []


def test_empty_sandbox_is_unhealthy():
    assert ToolSandbox().is_healthy() is False


@pytest.mark.asyncio
async def test_failing_tool_makes_sandbox_unhealthy_after_enough_samples():
    sandbox = ToolSandbox(SandboxLimits(health_min_executions=5))
    _register(sandbox, fn=CountingTool(error=RuntimeError("x")))
    for _ in range(4):
        await sandbox.execute("calc", {}, _ctx())
    assert sandbox.is_healthy() is True
    await sandbox.execute("calc", {}, _ctx())
    assert sandbox.is_healthy() is False


@pytest.mark.asyncio
async def test_statistics_aggregate_all_tools():
    sandbox = ToolSandbox()
    _register(sandbox, "a")
    _register(sandbox, "b", fn=CountingTool(error=RuntimeError("x")))
    await sandbox.execute("a", {}, _ctx())
    await sandbox.execute("b", {}, _ctx())
    stats = sandbox.get_statistics()
    assert stats["total_tools"] == 2
    assert stats["total_executions"] == 2
    assert stats["overall_success_rate"] == pytest.approx(50.0)
    assert stats["healthy_tools"] == 1
