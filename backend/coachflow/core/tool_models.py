"""Tool Models — registration contract, per-call context, results and rolling metrics.

Invariants:
    - ToolDefinition.name is the registry key (uniqueness enforced by the sandbox)
    - ToolExecutionResult: success=True ⇒ error is None; success=False ⇒ error and error_kind set
    - ToolMetrics.average_execution_ms is an incremental mean over execution_count samples
    - success_rate is a percentage (0–100); a tool with no executions reports 100
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel

from coachflow.core.domain_types import RiskLevel
from coachflow.core.errors import ErrorKind


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ToolExecutionContext:
    """Identity and environment of one tool call. timeout is in seconds."""
    user_id: str = ""
    session_id: str | None = None
    agent_name: str | None = None
    timestamp: datetime = field(default_factory=_utcnow)
    timeout: float | None = None


ToolFunction = Callable[[dict[str, Any], ToolExecutionContext], Awaitable[Any]]


@dataclass(frozen=True)
class ToolDefinition:
    """A registered capability. parameters is a pydantic model used as the schema."""
    name: str
    execute: ToolFunction | None
    description: str = "No description available"
    category: str = "general"
    risk_level: RiskLevel = RiskLevel.LOW
    requires_auth: bool = False
    estimated_duration_ms: int = 1000
    parameters: type[BaseModel] | None = None

    def to_anthropic_tool(self) -> dict[str, Any]:
        """Tool spec in the shape the Messages API expects."""
        if self.parameters is not None:
            schema = self.parameters.model_json_schema()
        else:
            schema = {"type": "object", "properties": {}}
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": schema,
        }


@dataclass(frozen=True)
class ToolExecutionResult:
    success: bool
    duration_ms: float
    result: Any = None
    error: str | None = None
    error_kind: ErrorKind | None = None
    timestamp: datetime = field(default_factory=_utcnow)

    @classmethod
    def ok(cls, result: Any, duration_ms: float) -> "ToolExecutionResult":
        return cls(success=True, duration_ms=duration_ms, result=result)

    @classmethod
    def failed(
        cls, kind: ErrorKind, error: str, duration_ms: float,
    ) -> "ToolExecutionResult":
        return cls(
            success=False, duration_ms=duration_ms,
            error=error, error_kind=kind,
        )

    def to_payload(self) -> dict[str, Any]:
        """JSON-friendly form, used for tool_result blocks and the metrics API."""
        if self.success:
            return {"status": "ok", "result": self.result}
        return {
            "status": "error",
            "error_code": self.error_kind.value if self.error_kind else None,
            "message": self.error,
        }


@dataclass
class ToolMetrics:
    execution_count: int = 0
    average_execution_ms: float = 0.0
    success_rate: float = 100.0
    total_errors: int = 0
    last_execution: datetime | None = None

    def record(self, duration_ms: float, success: bool, at: datetime) -> None:
        """Fold one execution into the rolling figures."""
        self.execution_count += 1
        self.last_execution = at
        self.average_execution_ms += (
            (duration_ms - self.average_execution_ms) / self.execution_count
        )
        if not success:
            self.total_errors += 1
        self.success_rate = (
            (self.execution_count - self.total_errors)
            / self.execution_count * 100
        )

    def snapshot(self) -> "ToolMetrics":
        return ToolMetrics(
            execution_count=self.execution_count,
            average_execution_ms=self.average_execution_ms,
            success_rate=self.success_rate,
            total_errors=self.total_errors,
            last_execution=self.last_execution,
        )


@dataclass(frozen=True)
class ExecutionRecord:
    """One entry of the sandbox's execution-history ring buffer."""
    tool_name: str
    timestamp: datetime
    duration_ms: float
    success: bool
    error: str | None = None


@dataclass(frozen=True)
class SandboxLimits:
    history_size: int = 100
    health_min_executions: int = 5
    health_min_success_rate: float = 80.0
