"""Goal Progress Tracker — progress figures for the goals a caller attaches to a RunContext.

Invariants:
    - Goals are plain dicts: id, description, target_amount, current_amount, deadline
    - percentage is 0 for a non-positive target; rounded to 2 decimals
    - Milestones are always 25/50/75/90/100 %, in that order
    - Malformed goals are skipped with a warning, never raised
"""

import logging
from typing import Any

from coachflow.core.agent_models import RunContext

logger = logging.getLogger(__name__)

MILESTONE_PERCENTAGES = (25, 50, 75, 90, 100)


def goal_progress(goal: dict[str, Any]) -> dict[str, Any]:
    target = float(goal.get("target_amount") or 0)
    current = float(goal.get("current_amount") or 0)
    percentage = current / target * 100 if target > 0 else 0.0

    milestones = [
        {
            "percentage": p,
            "amount": round(target * p / 100, 2),
            "achieved": percentage >= p,
        }
        for p in MILESTONE_PERCENTAGES
    ]
    upcoming = next((m for m in milestones if not m["achieved"]), None)

    return {
        "goal_id": goal.get("id"),
        "description": goal.get("description", ""),
        "target_amount": target,
        "current_amount": current,
        "deadline": goal.get("deadline"),
        "progress": {
            "percentage": round(percentage, 2),
            "milestones": milestones,
            "next_milestone": upcoming,
            "remaining_amount": round(max(target - current, 0.0), 2),
        },
    }


def crossed_milestones(previous: float, current: float, target: float) -> list[int]:
    """Milestone percentages passed when an amount moves from previous to current."""
    if target <= 0:
        return []
    before = previous / target * 100
    after = current / target * 100
    return [p for p in MILESTONE_PERCENTAGES if before < p <= after]


class GoalProgressTracker:
    """Built-in GoalTracker: computes progress without persisting anything."""

    async def track_goal_progress(
        self, user_id: str, context: RunContext,
    ) -> list[dict[str, Any]]:
        tracked = []
        for goal in context.goals:
            try:
                tracked.append(goal_progress(goal))
            except (TypeError, ValueError) as e:
                logger.warning("Skipping malformed goal %r: %s", goal.get("id"), e,
                    extra={"user_id": user_id})
        if tracked:
            logger.info("Goal progress tracked for %d goals", len(tracked),
                extra={"user_id": user_id})
        return tracked
