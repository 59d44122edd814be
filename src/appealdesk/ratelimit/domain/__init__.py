"""
Rate Limit Domain Layer
=======================

Value objects describing the admission policy. Pure Python, no I/O.
"""

from appealdesk.ratelimit.domain.value_objects import (
    RateLimitRule,
    RateLimitPolicy,
    DEFAULT_RATE_LIMITS,
)

__all__ = [
    "RateLimitRule",
    "RateLimitPolicy",
    "DEFAULT_RATE_LIMITS",
]
