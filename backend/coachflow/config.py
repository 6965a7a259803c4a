"""Application Configuration — environment-driven settings via pydantic-settings.

Invariants:
    - All secrets come from environment variables (never hardcoded)
    - get_settings() is cached (lru_cache) — single instance per process
    - Components never read Settings directly; bootstrap.py converts it into
      the limit/policy dataclasses each component takes in its constructor
"""

from functools import lru_cache
from typing import Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    # Database
    database_url: str = (
        "postgresql+asyncpg://coachflow:coachflow@db:5432/coachflow"
    )

    @field_validator("database_url", mode="before")
    @classmethod
    def convert_postgres_url(cls, v: str) -> str:
        """Hosted providers hand out postgresql:// but asyncpg needs postgresql+asyncpg://."""
        if isinstance(v, str) and v.startswith("postgresql://"):
            return v.replace("postgresql://", "postgresql+asyncpg://", 1)
        return v

    database_pool_size: int = 20
    database_max_overflow: int = 10
    memory_backend: Literal["memory", "sql"] = "memory"

    # Anthropic
    anthropic_api_key: str = "sk-ant-placeholder"
    anthropic_max_retries: int = 3
    anthropic_timeout_seconds: int = 120
    anthropic_base_delay_ms: int = 1000
    anthropic_max_delay_ms: int = 60_000

    # Agents
    agent_model: str = "claude-sonnet-4-5"
    agent_max_tokens: int = 2000
    agent_temperature: float = 0.7
    agent_max_tool_calls: int = 5
    default_agent: str = "financial_advisor"
    routing_confidence_threshold: float = 0.5

    # Tool sandbox
    tool_history_size: int = 100
    tool_default_timeout_seconds: float = 30.0
    tool_health_min_executions: int = 5
    tool_health_min_success_rate: float = 80.0

    # Memory
    memory_cache_entries_per_user: int = 50
    memory_cache_max_users: int = 1000
    memory_profile_ttl_seconds: int = 1800
    memory_history_limit: int = 10
    memory_insight_limit: int = 10

    # Handoffs
    handoff_max_escalation_level: int = 3
    handoff_history_limit: int = 50
    handoff_circular_window: int = 3
    handoff_escalation_window_seconds: int = 600
    handoff_recent_threshold: int = 3
    handoff_failure_threshold: int = 2
    handoff_timeout_seconds: int = 30

    # API
    cors_origins: list[str] = ["http://localhost:5173"]

    # Observability
    log_level: str = "INFO"
    log_format: str = "json"


@lru_cache
def get_settings() -> Settings:
    return Settings()
