"""Handoff Stats — pure aggregation of recorded HandoffResults.

Invariants:
    - Empty input returns all-zero statistics (never divides by zero)
    - Rates are percentages (0–100); durations are milliseconds
    - most_common_routes holds at most 5 (from, to) pairs, by count descending,
      first-seen order breaking ties
"""

from collections import Counter

from coachflow.core.handoff_models import HandoffResult

TOP_ROUTES = 5


def compute_handoff_statistics(results: list[HandoffResult]) -> dict:
    if not results:
        return {
            "total_handoffs": 0,
            "success_rate": 0.0,
            "average_duration_ms": 0.0,
            "escalation_rate": 0.0,
            "most_common_routes": [],
        }

    total = len(results)
    successes = sum(1 for r in results if r.success)
    escalated = sum(1 for r in results if r.escalation_triggered)
    routes = Counter((r.from_agent, r.to_agent) for r in results)

    return {
        "total_handoffs": total,
        "success_rate": successes / total * 100,
        "average_duration_ms": sum(r.duration_ms for r in results) / total,
        "escalation_rate": escalated / total * 100,
        "most_common_routes": [
            {"from": src, "to": dst, "count": count}
            for (src, dst), count in routes.most_common(TOP_ROUTES)
        ],
    }
