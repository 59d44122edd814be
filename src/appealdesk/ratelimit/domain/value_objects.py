"""
Rate Limit Value Objects
========================

Policy table for the sliding-window limiter. Loaded from the policy YAML
(``rate_limits`` section) or built from defaults.
"""

from datetime import timedelta
from typing import Dict, Optional

from pydantic import BaseModel, Field, field_validator

from appealdesk.config import RateLimitedAction


class RateLimitRule(BaseModel):
    """Admission rule for one action: at most N attempts per trailing window."""

    max_attempts: int = Field(ge=1, description="Attempts allowed inside the window")
    window_seconds: int = Field(ge=1, description="Trailing window length in seconds")

    model_config = {"frozen": True}

    @property
    def window(self) -> timedelta:
        return timedelta(seconds=self.window_seconds)


DEFAULT_RATE_LIMITS: Dict[str, RateLimitRule] = {
    RateLimitedAction.CREATE_TICKET.value: RateLimitRule(max_attempts=5, window_seconds=30 * 60),
    RateLimitedAction.SEND_MESSAGE.value: RateLimitRule(max_attempts=20, window_seconds=60),
    RateLimitedAction.CREATE_ANNOUNCEMENT.value: RateLimitRule(max_attempts=10, window_seconds=60 * 60),
    RateLimitedAction.REGISTER_FOR_EVENT.value: RateLimitRule(max_attempts=5, window_seconds=10 * 60),
}


class RateLimitPolicy(BaseModel):
    """
    Action name -> rule mapping.

    Actions missing from the table are unconfigured and always admitted.
    """

    rules: Dict[str, RateLimitRule] = Field(
        default_factory=lambda: dict(DEFAULT_RATE_LIMITS),
        description="Rate limit rules by action name"
    )

    @field_validator("rules", mode="before")
    @classmethod
    def normalize_action_names(cls, v: dict) -> dict:
        """Accept enum members as keys."""
        return {getattr(k, "value", k): rule for k, rule in (v or {}).items()}

    def get_rule(self, action: str) -> Optional[RateLimitRule]:
        return self.rules.get(getattr(action, "value", action))
