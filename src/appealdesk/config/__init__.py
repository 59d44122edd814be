"""
Configuration Module
====================

Application settings and configuration management using Pydantic.
"""

from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import List, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Uses Pydantic for validation and type safety.
    """

    # ========== Application ==========
    app_name: str = Field(default="appealdesk", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    environment: str = Field(default="development", description="Environment name")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Root log level")

    # ========== Server ==========
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port", ge=1, le=65535)

    # ========== Storage ==========
    storage_backend: Literal["postgres", "memory"] = Field(
        default="postgres",
        description="Repository backend: PostgreSQL or in-process memory"
    )
    database_url: str = Field(
        default="postgresql+asyncpg://localhost:5432/appeals",
        description="PostgreSQL connection URL (async)"
    )
    db_pool_size: int = Field(default=5, description="Database connection pool size", ge=1)
    db_max_overflow: int = Field(default=10, description="Max overflow connections", ge=0)

    # ========== Assignment Policy ==========
    policy_config_path: Path = Field(
        default=Path("assignment_policy.yaml"),
        description="Path to scoring / rate limit / escalation policy YAML"
    )
    watch_policy_config: bool = Field(
        default=True,
        description="Hot-reload the policy file when it changes"
    )

    # ========== Escalation ==========
    escalation_enabled: bool = Field(
        default=True,
        description="Run the overdue ticket sweeper in the background"
    )
    escalation_interval_seconds: int = Field(
        default=300,
        description="Seconds between escalation sweeps",
        ge=10
    )

    # ========== Rate Limiting ==========
    rate_limit_cleanup_interval_seconds: int = Field(
        default=3600,
        description="Seconds between sweeps dropping idle rate limit windows",
        ge=10
    )

    # ========== CORS ==========
    cors_origins: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:8080"],
        description="Allowed CORS origins"
    )

    model_config = SettingsConfigDict(
        env_prefix="APPEALDESK_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Ensure environment is one of allowed values."""
        allowed = {"development", "staging", "production", "test"}
        if v not in allowed:
            raise ValueError(f"environment must be one of {allowed}")
        return v


@lru_cache()
def get_settings() -> Settings:
    """Returns cached Settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()


# ========== Ticket text policy ==========

SUBJECT_MIN_LENGTH = 5
SUBJECT_MAX_LENGTH = 200
BODY_MIN_LENGTH = 10
BODY_MAX_LENGTH = 4000
MESSAGE_MAX_LENGTH = 4000


# ========== Constants ==========

class TicketCategory(str, Enum):
    """Ticket categories used for routing and operator expertise."""
    SCHOLARSHIP = "scholarship"
    DORMITORY = "dormitory"
    EVENTS = "events"
    PROPOSAL = "proposal"
    COMPLAINT = "complaint"
    BILLING = "billing"
    TECHNICAL = "technical"
    OTHER = "other"


class TicketPriority(str, Enum):
    """Ticket priority levels."""
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


class TicketStatus(str, Enum):
    """Ticket lifecycle statuses."""
    NEW = "new"
    IN_PROGRESS = "in_progress"
    CLOSED = "closed"


class RateLimitedAction(str, Enum):
    """Actions guarded by the sliding-window rate limiter."""
    CREATE_TICKET = "create_ticket"
    SEND_MESSAGE = "send_message"
    CREATE_ANNOUNCEMENT = "create_announcement"
    REGISTER_FOR_EVENT = "register_for_event"

