"""Language Model Agent — the Agent capability backed by the Anthropic Messages API.

Invariants:
    - run() never raises: API errors, tool errors and bugs all come back as
      AgentRunResult(success=False) with an apology response and the error text
    - At most max_tool_calls tool executions per run; extra tool_use blocks get an
      error tool_result instead of being executed
    - Tools outside profile.tool_names are refused even when registered
    - Every tool call goes through the ToolSandbox with tool_timeout_seconds
"""

import json
import logging
import time
from typing import Any

from coachflow.core.agent_models import AgentProfile, AgentRunResult, RunContext
from coachflow.core.domain_types import MemoryRole
from coachflow.core.errors import CoachflowError, ErrorContext, ErrorKind
from coachflow.core.tool_models import ToolExecutionContext
from coachflow.infrastructure.anthropic_client import ResilientAnthropicClient
from coachflow.services.tool_sandbox import ToolSandbox

logger = logging.getLogger(__name__)

APOLOGY_RESPONSE = (
    "I'm sorry, I ran into a problem while working on your request. "
    "Please try again in a moment."
)
TOOL_LIMIT_RESPONSE = (
    "I've gathered as much as I can for now. Could you narrow the question down?"
)


# -- Prompt and message assembly ---------------------------------------------

def build_system_prompt(profile: AgentProfile, context: RunContext) -> str:
    sections = [f"You are the {profile.display_name}.", profile.instructions]

    if context.context_summary:
        sections.append(f"USER CONTEXT:\n{context.context_summary}")

    if context.personalization:
        notes = "\n".join(f"- {k}: {v}" for k, v in context.personalization.items())
        sections.append(f"PERSONALIZATION NOTES:\n{notes}")

    business = context.business_context()
    if business:
        sections.append(
            "FINANCIAL CONTEXT (JSON):\n"
            + json.dumps(business, ensure_ascii=False, default=str)
        )

    if context.goal_tracking:
        lines = [
            f"- {g.get('description') or g.get('goal_id')}: "
            f"{g['progress']['percentage']}% complete"
            for g in context.goal_tracking
        ]
        sections.append("GOAL PROGRESS:\n" + "\n".join(lines))

    notes = [
        p.get("content", "") for p in context.previous_interactions
        if p.get("role") == "system" and p.get("content")
    ]
    if notes:
        sections.append("NOTES:\n" + "\n".join(notes))

    if profile.handoff_targets:
        sections.append(
            "Specialists available for handoff: "
            + ", ".join(profile.handoff_targets)
        )
    return "\n\n".join(sections)


def build_messages(context: RunContext, message: str) -> list[dict]:
    """Replay remembered turns as alternating user/assistant messages, then the new one."""
    turns: list[tuple[str, str]] = []
    if context.memory_context:
        for entry in context.memory_context.conversation_history:
            if entry.role is MemoryRole.USER:
                turns.append(("user", entry.content))
            elif entry.role is MemoryRole.ASSISTANT:
                turns.append(("assistant", entry.content))
    for item in context.previous_interactions:
        if item.get("role") in ("user", "assistant") and item.get("content"):
            turns.append((item["role"], item["content"]))
    turns.append(("user", message))

    messages: list[dict] = []
    for role, text in turns:
        if not messages and role != "user":
            continue
        if messages and messages[-1]["role"] == role:
            messages[-1]["content"] += "\n\n" + text
        else:
            messages.append({"role": role, "content": text})
    return messages


def extract_text(response: Any) -> str:
    return "".join(
        b.text for b in response.content if getattr(b, "type", None) == "text"
    ).strip()


def tool_use_blocks(response: Any) -> list[Any]:
    return [b for b in response.content if getattr(b, "type", None) == "tool_use"]


def serialize_content(response: Any) -> list[dict]:
    return [b.model_dump(exclude_none=True) for b in response.content]


# -- Agent ---------------------------------------------------------------------

class LanguageModelAgent:
    """One specialist: an AgentProfile plus the model client and the tool sandbox."""

    def __init__(
        self,
        profile: AgentProfile,
        client: ResilientAnthropicClient,
        sandbox: ToolSandbox,
        *,
        model: str,
        max_tokens: int = 2000,
        default_temperature: float = 0.7,
        max_tool_calls: int = 5,
        tool_timeout_seconds: float | None = 30.0,
    ):
        self.name = profile.name
        self.profile = profile
        self.client = client
        self.sandbox = sandbox
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = (
            profile.temperature if profile.temperature is not None
            else default_temperature
        )
        self.max_tool_calls = max_tool_calls
        self.tool_timeout_seconds = tool_timeout_seconds
        self._ready = True

    def is_ready(self) -> bool:
        return self._ready

    async def run(self, message: str, context: RunContext) -> AgentRunResult:
        started = time.monotonic()
        ctx = ErrorContext(
            user_id=context.user_id, session_id=context.session_id,
            agent_name=self.name,
        )
        try:
            text, tool_calls = await self._tool_loop(message, context, ctx)
        except CoachflowError as e:
            logger.error("Agent run failed: %s", e.message, extra={
                "agent_name": self.name, "user_id": context.user_id,
                "error_code": e.code,
            })
            return self._failure(e.message, started)
        except Exception as e:
            logger.error("Unexpected error in agent '%s': %s", self.name, e,
                exc_info=True, extra={"agent_name": self.name})
            return self._failure(str(e) or type(e).__name__, started)

        duration = (time.monotonic() - started) * 1000
        logger.info("Agent run completed", extra={
            "agent_name": self.name, "user_id": context.user_id,
            "session_id": context.session_id, "duration_ms": round(duration, 2),
        })
        return AgentRunResult(
            success=True, response=text, agent_name=self.name,
            duration_ms=duration, tool_calls=tool_calls,
        )

    async def _tool_loop(
        self, message: str, context: RunContext, ctx: ErrorContext,
    ) -> tuple[str, int]:
        system = build_system_prompt(self.profile, context)
        messages = build_messages(context, message)
        tools = self.sandbox.anthropic_tools(self.profile.tool_names)
        tool_calls = 0
        last_text = ""

        for _ in range(self.max_tool_calls + 1):
            response = await self.client.create_message(
                model=self.model,
                max_tokens=self.max_tokens,
                system=system,
                messages=messages,
                tools=tools,
                temperature=self.temperature,
                context=ctx,
            )
            last_text = extract_text(response) or last_text
            blocks = tool_use_blocks(response)
            if not blocks:
                return last_text, tool_calls

            messages.append({"role": "assistant", "content": serialize_content(response)})
            results = []
            for block in blocks:
                if tool_calls >= self.max_tool_calls:
                    payload = {
                        "status": "error", "error_code": "TOOL_LIMIT",
                        "message": "Tool call limit reached; answer with what you have",
                    }
                else:
                    tool_calls += 1
                    payload = await self._execute_tool(block.name, block.input, context)
                results.append({
                    "type": "tool_result",
                    "tool_use_id": block.id,
                    "content": json.dumps(payload, ensure_ascii=False, default=str),
                    "is_error": payload.get("status") == "error",
                })
            messages.append({"role": "user", "content": results})

        return last_text or TOOL_LIMIT_RESPONSE, tool_calls

    async def _execute_tool(
        self, tool_name: str, tool_input: dict, context: RunContext,
    ) -> dict:
        if tool_name not in self.profile.tool_names:
            logger.warning("Agent requested a tool it may not use",
                extra={"agent_name": self.name, "tool_name": tool_name})
            return {
                "status": "error", "error_code": ErrorKind.NOT_FOUND.value,
                "message": f"Tool not available: {tool_name}",
            }
        result = await self.sandbox.execute(
            tool_name,
            tool_input or {},
            ToolExecutionContext(
                user_id=context.user_id,
                session_id=context.session_id,
                agent_name=self.name,
                timeout=self.tool_timeout_seconds,
            ),
        )
        return result.to_payload()

    def _failure(self, error: str, started: float) -> AgentRunResult:
        return AgentRunResult(
            success=False,
            response=APOLOGY_RESPONSE,
            agent_name=self.name,
            duration_ms=(time.monotonic() - started) * 1000,
            error=error,
        )
