"""Tool Sandbox — registry + guarded execution of named capabilities.

Invariants:
    - Every tool→function mapping is explicit (register/unregister), no auto-discovery
    - execute() never raises: unknown tool, bad parameters, missing auth, timeout and
      tool exceptions all come back as ToolExecutionResult(success=False, error_kind=...)
    - Invalid parameters never reach the tool's execute function
    - Every execution attempt on a known tool updates its metrics and the history ring
    - No retries: retry policy belongs to the caller
    - A timed-out call returns Timeout as soon as the timer fires; the tool task is
      cancelled without being awaited and any late result is discarded
"""

import asyncio
import inspect
import logging
import time
from collections import deque
from datetime import datetime, timezone
from typing import Any

from pydantic import ValidationError

from coachflow.core.errors import ErrorKind
from coachflow.core.tool_models import (
    ExecutionRecord, SandboxLimits, ToolDefinition, ToolExecutionContext,
    ToolExecutionResult, ToolMetrics,
)

logger = logging.getLogger(__name__)


class ToolSandbox:
    """Routes tool_name → definition and runs it with validation, auth, timeout, metrics."""

    def __init__(self, limits: SandboxLimits | None = None):
        self.limits = limits or SandboxLimits()
        self._tools: dict[str, ToolDefinition] = {}
        self._metrics: dict[str, ToolMetrics] = {}
        self._history: deque[ExecutionRecord] = deque(maxlen=self.limits.history_size)

    # -- Registration ----------------------------------------------------------

    def register(self, definition: ToolDefinition, *, overwrite: bool = False) -> None:
        """Register a tool. Duplicate names fail unless overwrite=True (logged)."""
        if not definition.name:
            raise ValueError("Tool name is required for registration")
        if definition.execute is None or not callable(definition.execute):
            raise ValueError(f"Tool '{definition.name}' has no execute function")
        if definition.name in self._tools:
            if not overwrite:
                raise ValueError(f"Tool '{definition.name}' is already registered")
            logger.warning("Tool already registered - overwriting",
                extra={"tool_name": definition.name})

        self._tools[definition.name] = definition
        self._metrics.setdefault(definition.name, ToolMetrics())
        logger.debug("Tool registered: %s (category=%s, risk=%s, auth=%s)",
            definition.name, definition.category,
            definition.risk_level.value, definition.requires_auth,
            extra={"tool_name": definition.name})

    def unregister(self, name: str) -> bool:
        removed = self._tools.pop(name, None) is not None
        if removed:
            self._metrics.pop(name, None)
            logger.info("Tool unregistered", extra={"tool_name": name})
        return removed

    def clear(self) -> None:
        self._tools.clear()
        self._metrics.clear()
        self._history.clear()
        logger.info("Tool sandbox cleared")

    def has_tool(self, name: str) -> bool:
        return name in self._tools

    def get_tool(self, name: str) -> ToolDefinition | None:
        return self._tools.get(name)

    def tool_names(self) -> list[str]:
        return list(self._tools)

    def tool_count(self) -> int:
        return len(self._tools)

    def anthropic_tools(self, names: list[str] | tuple[str, ...]) -> list[dict]:
        """Tool specs for the given names, skipping any that are not registered."""
        return [
            self._tools[n].to_anthropic_tool() for n in names if n in self._tools
        ]

    # -- Execution -------------------------------------------------------------

    async def execute(
        self, name: str, parameters: dict[str, Any], context: ToolExecutionContext,
    ) -> ToolExecutionResult:
        started = time.monotonic()
        tool = self._tools.get(name)
        if tool is None:
            logger.warning("Tool not found (available: %s)", ", ".join(self._tools),
                extra={"tool_name": name, "error_code": ErrorKind.NOT_FOUND.value})
            return ToolExecutionResult.failed(
                ErrorKind.NOT_FOUND, f"Tool not found: {name}", _elapsed_ms(started),
            )

        params = parameters or {}
        if tool.parameters is not None:
            try:
                params = tool.parameters.model_validate(params).model_dump()
            except ValidationError as e:
                return self._fail(
                    name, started, ErrorKind.VALIDATION, f"Validation failed: {e}",
                )

        if tool.requires_auth and not context.user_id:
            return self._fail(
                name, started, ErrorKind.AUTH_REQUIRED,
                "Authentication required for this tool",
            )

        try:
            if context.timeout:
                task = asyncio.ensure_future(_invoke(tool, params, context))
                done, _ = await asyncio.wait({task}, timeout=context.timeout)
                if task not in done:
                    task.add_done_callback(_discard_late_result)
                    task.cancel()
                    return self._fail(
                        name, started, ErrorKind.TIMEOUT, "Tool execution timeout",
                    )
                result = task.result()
            else:
                result = await _invoke(tool, params, context)
        except Exception as e:
            logger.error("Unexpected error in tool '%s': %s", name, e,
                exc_info=True, extra={"tool_name": name})
            return self._fail(
                name, started, ErrorKind.TRANSITION_FAILURE,
                str(e) or "Unknown error occurred",
            )

        duration = _elapsed_ms(started)
        self._record(name, duration, True)
        logger.info("Tool executed successfully",
            extra={"tool_name": name, "duration_ms": round(duration, 2)})
        return ToolExecutionResult.ok(result, duration)

    def _fail(
        self, name: str, started: float, kind: ErrorKind, message: str,
    ) -> ToolExecutionResult:
        duration = _elapsed_ms(started)
        self._record(name, duration, False, message)
        logger.warning("Tool execution failed: %s", message, extra={
            "tool_name": name, "error_code": kind.value,
            "duration_ms": round(duration, 2),
        })
        return ToolExecutionResult.failed(kind, message, duration)

    def _record(
        self, name: str, duration_ms: float, success: bool, error: str | None = None,
    ) -> None:
        now = datetime.now(timezone.utc)
        self._history.append(ExecutionRecord(name, now, duration_ms, success, error))
        metrics = self._metrics.get(name)
        if metrics is not None:
            metrics.record(duration_ms, success, now)

    # -- Metrics & health ------------------------------------------------------

    def get_tool_metrics(
        self, name: str | None = None,
    ) -> ToolMetrics | dict[str, ToolMetrics]:
        """Snapshot for one tool (zeroed if unknown) or for all tools."""
        if name is not None:
            metrics = self._metrics.get(name)
            return metrics.snapshot() if metrics else ToolMetrics()
        return {n: m.snapshot() for n, m in self._metrics.items()}

    def get_execution_history(self, limit: int = 10) -> list[ExecutionRecord]:
        """Most recent executions, newest first."""
        if limit <= 0:
            return []
        return list(self._history)[-limit:][::-1]

    def is_healthy(self) -> bool:
        """Healthy iff tools exist and none with enough samples has a poor success rate."""
        if not self._tools:
            return False
        return not any(
            m.execution_count >= self.limits.health_min_executions
            and m.success_rate < self.limits.health_min_success_rate
            for m in self._metrics.values()
        )

    def get_statistics(self) -> dict:
        metrics = list(self._metrics.values())
        total = sum(m.execution_count for m in metrics)
        errors = sum(m.total_errors for m in metrics)
        return {
            "total_tools": len(self._tools),
            "total_executions": total,
            "overall_success_rate": (total - errors) / total * 100 if total else 100.0,
            "average_execution_ms": (
                sum(m.average_execution_ms for m in metrics) / len(metrics)
                if metrics else 0.0
            ),
            "healthy_tools": sum(
                1 for m in metrics
                if m.execution_count == 0
                or m.success_rate >= self.limits.health_min_success_rate
            ),
        }


async def _invoke(
    tool: ToolDefinition, params: dict[str, Any], context: ToolExecutionContext,
) -> Any:
    result = tool.execute(params, context)
    if inspect.isawaitable(result):
        result = await result
    return result


def _discard_late_result(task: asyncio.Task) -> None:
    if not task.cancelled():
        task.exception()


def _elapsed_ms(started: float) -> float:
    return (time.monotonic() - started) * 1000
