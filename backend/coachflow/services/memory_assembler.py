"""Memory Assembler — owns the memory log writes, the per-user cache and profile synthesis.

Invariants:
    - The durable log is append-only; the assembler never edits or deletes entries
    - Per-user cache holds the newest cache_entries_per_user entries (oldest evicted);
      at most cache_max_users users, the oldest-inserted user evicted wholesale
    - Profiles are derived data: cached with a TTL, rebuilt deterministically on miss
    - Callers only ever receive deep copies of a cached profile
    - A preference written while a profile is cached is applied to the cached copy;
      a new insight drops the cached profile (learnings derive from insights)
    - build_agent_memory_context never fails for an unknown user: new-user profile,
      empty history, empty insights
"""

import copy
import logging
import time
from collections import OrderedDict, deque
from collections.abc import Callable
from typing import Any

from coachflow.core.domain_types import MemoryRole, MemoryType
from coachflow.core.memory_models import (
    AgentMemoryContext, MemoryEntry, MemoryLimits, UserMemoryProfile,
)
from coachflow.core.profile_builder import (
    apply_preference, build_context_summary, build_personalizations,
    build_profile, categorize_preference, filter_relevant_insights,
)
from coachflow.core.repository_protocols import MemoryRepository

logger = logging.getLogger(__name__)


class MemoryAssembler:
    """Reads and writes the memory log; synthesizes AgentMemoryContext."""

    def __init__(
        self,
        repository: MemoryRepository,
        limits: MemoryLimits | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.repository = repository
        self.limits = limits or MemoryLimits()
        self._clock = clock
        self._cache: OrderedDict[str, deque[MemoryEntry]] = OrderedDict()
        self._profiles: dict[str, tuple[UserMemoryProfile, float]] = {}

    # -- Writes ----------------------------------------------------------------

    async def store_interaction(
        self,
        user_id: str,
        agent_name: str,
        session_id: str,
        user_message: str,
        agent_response: str,
        context: dict[str, Any] | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> list[MemoryEntry]:
        """Append the user turn and the assistant turn as two entries."""
        shared = {"context": dict(context or {}), **(metadata or {})}
        entries = [
            MemoryEntry(
                user_id=user_id, agent_name=agent_name, session_id=session_id,
                type=MemoryType.INTERACTION, role=MemoryRole.USER,
                content=user_message, metadata={**shared, "turn": "user"},
            ),
            MemoryEntry(
                user_id=user_id, agent_name=agent_name, session_id=session_id,
                type=MemoryType.INTERACTION, role=MemoryRole.ASSISTANT,
                content=agent_response, metadata={**shared, "turn": "assistant"},
            ),
        ]
        for entry in entries:
            await self._append(entry)
        logger.info("Interaction stored", extra={
            "user_id": user_id, "agent_name": agent_name, "session_id": session_id,
        })
        return entries

    async def store_preference(
        self,
        user_id: str,
        agent_name: str,
        session_id: str,
        key: str,
        value: Any,
        category: str | None = None,
    ) -> MemoryEntry:
        category = category or categorize_preference(key).value
        entry = MemoryEntry(
            user_id=user_id, agent_name=agent_name, session_id=session_id,
            type=MemoryType.PREFERENCE, role=MemoryRole.SYSTEM,
            content=f"User preference: {key} = {value}",
            metadata={"key": key, "value": value, "category": category},
        )
        await self._append(entry)

        cached = self._profiles.get(user_id)
        if cached is not None:
            profile, stored_at = cached
            updated = apply_preference(profile, key, value)
            updated.is_new_user = False
            self._profiles[user_id] = (updated, stored_at)

        logger.info("Preference stored: %s (%s)", key, category,
            extra={"user_id": user_id, "agent_name": agent_name})
        return entry

    async def store_insight(
        self,
        user_id: str,
        agent_name: str,
        session_id: str,
        insight: str,
        category: str,
        confidence: float = 1.0,
        metadata: dict[str, Any] | None = None,
    ) -> MemoryEntry:
        entry = MemoryEntry(
            user_id=user_id, agent_name=agent_name, session_id=session_id,
            type=MemoryType.INSIGHT, role=MemoryRole.SYSTEM, content=insight,
            metadata={
                **(metadata or {}),
                "category": category, "confidence": confidence,
            },
        )
        await self._append(entry)
        self._profiles.pop(user_id, None)
        logger.info("Insight stored: %s", category,
            extra={"user_id": user_id, "agent_name": agent_name})
        return entry

    async def store_system_note(
        self,
        user_id: str,
        agent_name: str,
        session_id: str,
        content: str,
        metadata: dict[str, Any] | None = None,
    ) -> MemoryEntry:
        """Single system-role interaction entry (handoff bookkeeping)."""
        entry = MemoryEntry(
            user_id=user_id, agent_name=agent_name, session_id=session_id,
            type=MemoryType.INTERACTION, role=MemoryRole.SYSTEM,
            content=content, metadata=dict(metadata or {}),
        )
        await self._append(entry)
        return entry

    async def _append(self, entry: MemoryEntry) -> None:
        await self.repository.append(entry)
        self._cache_entry(entry)

    def _cache_entry(self, entry: MemoryEntry) -> None:
        bucket = self._cache.get(entry.user_id)
        if bucket is None:
            bucket = deque(maxlen=self.limits.cache_entries_per_user)
            self._cache[entry.user_id] = bucket
            while len(self._cache) > self.limits.cache_max_users:
                evicted, _ = self._cache.popitem(last=False)
                self._profiles.pop(evicted, None)
                logger.debug("Evicted memory cache for user",
                    extra={"user_id": evicted})
        bucket.append(entry)

    # -- Reads -----------------------------------------------------------------

    async def get_interaction_history(
        self,
        user_id: str,
        agent_name: str | None = None,
        session_id: str | None = None,
        limit: int = 20,
    ) -> list[MemoryEntry]:
        """Most recent interaction entries, oldest first."""
        entries = await self.repository.query(
            user_id, entry_type=MemoryType.INTERACTION,
            agent_name=agent_name, session_id=session_id, limit=limit,
        )
        return list(reversed(entries))

    async def get_user_memory_profile(self, user_id: str) -> UserMemoryProfile:
        cached = self._profiles.get(user_id)
        if cached is not None:
            profile, stored_at = cached
            if self._clock() - stored_at < self.limits.profile_ttl_seconds:
                return copy.deepcopy(profile)
            del self._profiles[user_id]

        profile = await self._rebuild_profile(user_id)
        self._profiles[user_id] = (profile, self._clock())
        return copy.deepcopy(profile)

    async def _rebuild_profile(self, user_id: str) -> UserMemoryProfile:
        preferences = await self.repository.query(
            user_id, entry_type=MemoryType.PREFERENCE,
            limit=self.limits.preference_scan_limit,
        )
        insights = await self.repository.query(
            user_id, entry_type=MemoryType.INSIGHT,
            limit=self.limits.insight_scan_limit,
        )
        interactions = await self.repository.query(
            user_id, entry_type=MemoryType.INTERACTION,
            limit=self.limits.profile_interaction_window,
        )
        profile = build_profile(user_id, preferences, insights, interactions)
        logger.debug(
            "Profile rebuilt (prefs=%d, insights=%d, interactions=%d)",
            len(preferences), len(insights), len(interactions),
            extra={"user_id": user_id},
        )
        return profile

    async def build_agent_memory_context(
        self,
        user_id: str,
        agent_name: str,
        session_id: str,
        include_history: bool = True,
    ) -> AgentMemoryContext:
        profile = await self.get_user_memory_profile(user_id)

        history: list[MemoryEntry] = []
        if include_history:
            history = await self.get_interaction_history(
                user_id, agent_name=agent_name, session_id=session_id,
                limit=self.limits.history_limit,
            )

        insights = await self.repository.query(
            user_id, entry_type=MemoryType.INSIGHT,
            limit=self.limits.insight_scan_limit,
        )
        relevant = filter_relevant_insights(
            insights, agent_name, self.limits.insight_limit,
        )

        return AgentMemoryContext(
            user_id=user_id,
            agent_name=agent_name,
            session_id=session_id,
            user_profile=profile,
            conversation_history=history,
            relevant_insights=relevant,
            context_summary=build_context_summary(profile, history, relevant),
            personalizations=build_personalizations(profile, agent_name),
        )

    # -- Cache management ------------------------------------------------------

    def clear_user_cache(self, user_id: str) -> None:
        self._cache.pop(user_id, None)
        self._profiles.pop(user_id, None)
        logger.info("Memory cache cleared", extra={"user_id": user_id})

    def get_cached_entries(self, user_id: str) -> list[MemoryEntry]:
        return list(self._cache.get(user_id, ()))

    def get_cache_stats(self) -> dict:
        return {
            "cached_users": len(self._cache),
            "cached_entries": sum(len(b) for b in self._cache.values()),
            "cached_profiles": len(self._profiles),
            "max_users": self.limits.cache_max_users,
            "entries_per_user": self.limits.cache_entries_per_user,
        }
