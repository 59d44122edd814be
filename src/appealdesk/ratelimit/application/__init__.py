"""
Rate Limit Application Layer
============================

The in-memory sliding-window limiter guarding ticket creation and replies.
"""

from appealdesk.ratelimit.application.services import RateLimiter, UNLIMITED

__all__ = [
    "RateLimiter",
    "UNLIMITED",
]
