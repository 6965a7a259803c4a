"""Error Hierarchy — typed, categorized exceptions for all orchestration failure modes.

Invariants:
    - Every error has a code (str), kind (ErrorKind), category (ErrorCategory), severity
    - ErrorKind is the closed set shared with the tagged results of the sandbox
      and the handoff engine; error_for_kind() turns one back into an exception
    - to_response() never includes tracebacks or exception reprs
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    """Failure kinds surfaced by the sandbox, handoff engine and orchestrator."""
    NOT_FOUND = "NotFound"
    VALIDATION = "Validation"
    AUTH_REQUIRED = "AuthRequired"
    TIMEOUT = "Timeout"
    NOT_READY = "NotReady"
    RULE_MISMATCH = "RuleMismatch"
    ESCALATION_LIMIT_REACHED = "EscalationLimitReached"
    CIRCULAR_HANDOFF = "CircularHandoff"
    TRANSITION_FAILURE = "TransitionFailure"


class ErrorSeverity(str, Enum):
    """Error severity for observability and client handling."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCategory(str, Enum):
    """High-level error categories for routing and handling."""
    VALIDATION = "validation"
    BUSINESS_RULE = "business_rule"
    RESOURCE_NOT_FOUND = "resource_not_found"
    AUTHORIZATION = "authorization"
    DATABASE = "database"
    EXTERNAL_API = "external_api"
    INTERNAL = "internal"
    TIMEOUT = "timeout"


@dataclass
class ErrorContext:
    """Rich context for error observability and debugging."""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    user_id: str | None = None
    session_id: str | None = None
    agent_name: str | None = None
    tool_name: str | None = None
    handoff_id: str | None = None
    debug_info: dict[str, Any] | None = None


class CoachflowError(Exception):
    """Base exception for all Coachflow errors."""

    def __init__(
        self,
        message: str,
        code: str,
        kind: ErrorKind,
        category: ErrorCategory,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        context: ErrorContext | None = None,
        http_status: int = 500,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.kind = kind
        self.category = category
        self.severity = severity
        self.context = context or ErrorContext()
        self.http_status = http_status

    def to_response(self) -> dict:
        """Convert to standardized REST error response."""
        return {
            "error": {
                "code": self.code,
                "kind": self.kind.value,
                "message": self.message,
                "category": self.category.value,
                "severity": self.severity.value,
                "timestamp": self.context.timestamp.isoformat(),
                "context": {
                    "user_id": self.context.user_id,
                    "session_id": self.context.session_id,
                    "agent_name": self.context.agent_name,
                    "tool_name": self.context.tool_name,
                    "handoff_id": self.context.handoff_id,
                },
            }
        }


# ─── Domain Errors (400-level) ──────────────────────────────────

class ResourceNotFoundError(CoachflowError):
    """Requested agent or tool does not exist."""
    def __init__(
        self, resource_type: str, resource_id: str, context: ErrorContext | None = None,
    ):
        super().__init__(
            f"{resource_type} '{resource_id}' not found",
            "RESOURCE_NOT_FOUND", ErrorKind.NOT_FOUND,
            ErrorCategory.RESOURCE_NOT_FOUND, ErrorSeverity.ERROR, context, 404,
        )
        self.resource_type = resource_type
        self.resource_id = resource_id


class ParameterValidationError(CoachflowError):
    """Request or tool parameters failed validation."""
    def __init__(self, message: str, context: ErrorContext | None = None):
        super().__init__(
            message, "VALIDATION_ERROR", ErrorKind.VALIDATION,
            ErrorCategory.VALIDATION, ErrorSeverity.ERROR, context, 400,
        )


class AuthRequiredError(CoachflowError):
    """Tool requires an authenticated user and none was supplied."""
    def __init__(self, message: str = "Authentication required for this tool",
                 context: ErrorContext | None = None):
        super().__init__(
            message, "AUTH_REQUIRED", ErrorKind.AUTH_REQUIRED,
            ErrorCategory.AUTHORIZATION, ErrorSeverity.ERROR, context, 401,
        )


class ToolTimeoutError(CoachflowError):
    """Tool did not finish before its deadline."""
    def __init__(self, message: str = "Tool execution timeout",
                 context: ErrorContext | None = None):
        super().__init__(
            message, "TIMEOUT", ErrorKind.TIMEOUT,
            ErrorCategory.TIMEOUT, ErrorSeverity.WARNING, context, 504,
        )


class AgentNotReadyError(CoachflowError):
    """Agent exists but has not finished initialising."""
    def __init__(self, agent_name: str, context: ErrorContext | None = None):
        super().__init__(
            f"Agent '{agent_name}' is not ready",
            "AGENT_NOT_READY", ErrorKind.NOT_READY,
            ErrorCategory.BUSINESS_RULE, ErrorSeverity.ERROR, context, 503,
        )


class RuleMismatchError(CoachflowError):
    """No handoff rule accepts the requested transition."""
    def __init__(self, message: str = "No applicable handoff rule found",
                 context: ErrorContext | None = None):
        super().__init__(
            message, "RULE_MISMATCH", ErrorKind.RULE_MISMATCH,
            ErrorCategory.BUSINESS_RULE, ErrorSeverity.ERROR, context, 409,
        )


class EscalationLimitError(CoachflowError):
    """Escalation level already at its ceiling."""
    def __init__(self, message: str = "Maximum escalation level reached",
                 context: ErrorContext | None = None):
        super().__init__(
            message, "ESCALATION_LIMIT_REACHED", ErrorKind.ESCALATION_LIMIT_REACHED,
            ErrorCategory.BUSINESS_RULE, ErrorSeverity.ERROR, context, 409,
        )


class CircularHandoffError(CoachflowError):
    """Requested transition reverses one of the user's recent handoffs."""
    def __init__(self, message: str = "Circular handoff detected - potential loop",
                 context: ErrorContext | None = None):
        super().__init__(
            message, "CIRCULAR_HANDOFF", ErrorKind.CIRCULAR_HANDOFF,
            ErrorCategory.BUSINESS_RULE, ErrorSeverity.ERROR, context, 409,
        )


# ─── Downstream / Infrastructure Errors (500-level) ─────────────

class TransitionFailureError(CoachflowError):
    """Downstream agent invocation failed."""
    def __init__(self, message: str, context: ErrorContext | None = None):
        super().__init__(
            message, "TRANSITION_FAILURE", ErrorKind.TRANSITION_FAILURE,
            ErrorCategory.INTERNAL, ErrorSeverity.CRITICAL, context, 502,
        )


class DatabaseError(CoachflowError):
    """Database operation failed."""
    def __init__(self, message: str, operation: str, context: ErrorContext | None = None):
        super().__init__(
            f"Database {operation} failed: {message}",
            "DATABASE_ERROR", ErrorKind.TRANSITION_FAILURE,
            ErrorCategory.DATABASE, ErrorSeverity.CRITICAL, context, 503,
        )
        self.operation = operation


class AnthropicAPIError(CoachflowError):
    """Anthropic API call failed."""
    def __init__(
        self,
        message: str,
        api_error_type: str,
        retry_after_ms: int | None = None,
        context: ErrorContext | None = None,
    ):
        super().__init__(
            f"Anthropic API error ({api_error_type}): {message}",
            "ANTHROPIC_API_ERROR", ErrorKind.TRANSITION_FAILURE,
            ErrorCategory.EXTERNAL_API, ErrorSeverity.CRITICAL, context, 503,
        )
        self.api_error_type = api_error_type
        self.retry_after_ms = retry_after_ms


_KIND_TO_ERROR = {
    ErrorKind.VALIDATION: ParameterValidationError,
    ErrorKind.AUTH_REQUIRED: AuthRequiredError,
    ErrorKind.TIMEOUT: ToolTimeoutError,
    ErrorKind.RULE_MISMATCH: RuleMismatchError,
    ErrorKind.ESCALATION_LIMIT_REACHED: EscalationLimitError,
    ErrorKind.CIRCULAR_HANDOFF: CircularHandoffError,
    ErrorKind.TRANSITION_FAILURE: TransitionFailureError,
}


def error_for_kind(
    kind: ErrorKind | None, message: str, context: ErrorContext | None = None,
) -> CoachflowError:
    """Rebuild a typed exception from a structured failure (kind + message)."""
    if kind is ErrorKind.NOT_FOUND:
        return CoachflowError(
            message, "RESOURCE_NOT_FOUND", ErrorKind.NOT_FOUND,
            ErrorCategory.RESOURCE_NOT_FOUND, ErrorSeverity.ERROR, context, 404,
        )
    if kind is ErrorKind.NOT_READY:
        return CoachflowError(
            message, "AGENT_NOT_READY", ErrorKind.NOT_READY,
            ErrorCategory.BUSINESS_RULE, ErrorSeverity.ERROR, context, 503,
        )
    error_cls = _KIND_TO_ERROR.get(kind, TransitionFailureError)
    return error_cls(message, context=context)
