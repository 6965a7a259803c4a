"""Format Handoff — builds the annotated message a target agent receives on handoff.

Invariants:
    - Header always names source, target, reason and priority
    - Escalation line only when level > 0
    - USER MESSAGE section always present, even for an empty message
"""

from coachflow.core.handoff_models import HandoffRequest
from coachflow.core.memory_models import AgentMemoryContext


def construct_handoff_message(
    request: HandoffRequest,
    escalation_level: int,
    memory_context: AgentMemoryContext | None,
) -> str:
    parts = [
        f"[AGENT HANDOFF: {request.from_agent.upper()} → {request.to_agent.upper()}]",
        f"Reason: {request.reason}",
        f"Priority: {request.priority.value.upper()}",
    ]
    if escalation_level > 0:
        parts.append(f"ESCALATION LEVEL {escalation_level}")
    parts.append("")

    if memory_context and memory_context.context_summary:
        parts.append("USER CONTEXT:")
        parts.append(memory_context.context_summary)
        parts.append("")

    parts.append("USER MESSAGE:")
    parts.append(request.user_message)

    if memory_context and memory_context.personalizations:
        parts.append("")
        parts.append("PERSONALIZATION NOTES:")
        for key, value in memory_context.personalizations.items():
            parts.append(f"- {key}: {value}")

    return "\n".join(parts)
