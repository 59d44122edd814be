"""
Rate Limiter Service
====================

In-memory sliding-window admission control keyed by (subject, action).

The limiter is a UX guard, not a security boundary: unconfigured actions and
internal failures both admit the request. Windows are never persisted; losing
them only resets limits.
"""

import sys
import threading
from collections import deque
from datetime import datetime, timedelta
from typing import Deque, Dict, Optional, Tuple

from appealdesk.ratelimit.domain import RateLimitPolicy
from appealdesk.shared.infrastructure.clock import Clock, utc_now
from appealdesk.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

UNLIMITED = sys.maxsize

WindowKey = Tuple[str, str]


class _AttemptWindow:
    """
    Attempt timestamps for one key, oldest first.

    ``retired`` is set under ``lock`` when the window leaves the registry;
    a caller still holding it must fetch a fresh one.
    """

    __slots__ = ("lock", "attempts", "retired")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.attempts: Deque[datetime] = deque()
        self.retired = False

    def evict_before(self, window_start: datetime) -> None:
        while self.attempts and self.attempts[0] < window_start:
            self.attempts.popleft()


class RateLimiter:
    """
    Sliding-window rate limiter.

    Each (subject, action) window has its own lock, so traffic for different
    subjects or actions never contends. The registry lock is held only to
    look up or create a window.
    """

    def __init__(
        self,
        policy: Optional[RateLimitPolicy] = None,
        clock: Clock = utc_now,
    ):
        self._policy = policy or RateLimitPolicy()
        self._clock = clock
        self._windows: Dict[WindowKey, _AttemptWindow] = {}
        self._registry_lock = threading.Lock()

    @property
    def policy(self) -> RateLimitPolicy:
        return self._policy

    def update_policy(self, policy: RateLimitPolicy) -> None:
        """Swap the policy table. Existing windows are kept."""
        self._policy = policy
        logger.info(
            "Rate limit policy updated",
            extra={"actions": sorted(policy.rules)}
        )

    def allow(self, subject_id: int, action: str) -> bool:
        """
        Record an attempt and report whether it is admitted.

        Denies when the window already holds ``max_attempts`` entries; a
        denied attempt is not recorded.
        """
        try:
            rule = self._policy.get_rule(action)
            if rule is None:
                logger.warning(
                    "No rate limit configured for action, allowing",
                    extra={"action": _action_name(action)}
                )
                return True

            while True:
                now = self._clock()
                window = self._get_or_create_window(subject_id, action)
                with window.lock:
                    if window.retired:
                        continue
                    window.evict_before(now - rule.window)
                    if len(window.attempts) >= rule.max_attempts:
                        logger.warning(
                            "Rate limit exceeded",
                            extra={
                                "subject_id": subject_id,
                                "action": _action_name(action),
                                "attempts": len(window.attempts),
                                "max_attempts": rule.max_attempts,
                            }
                        )
                        return False
                    window.attempts.append(now)
                    return True
        except Exception:
            logger.exception(
                "Rate limiter failure, failing open",
                extra={"subject_id": subject_id, "action": _action_name(action)}
            )
            return True

    def reset(self, subject_id: int, action: str) -> None:
        """Forget every recorded attempt for the key."""
        with self._registry_lock:
            window = self._windows.pop(_key(subject_id, action), None)
            if window is not None:
                with window.lock:
                    window.retired = True
        logger.info(
            "Rate limit reset",
            extra={"subject_id": subject_id, "action": _action_name(action)}
        )

    def remaining_attempts(self, subject_id: int, action: str) -> int:
        """Attempts still admissible in the current window. Does not consume one."""
        rule = self._policy.get_rule(action)
        if rule is None:
            return UNLIMITED

        window = self._get_window(subject_id, action)
        if window is None:
            return rule.max_attempts

        with window.lock:
            window.evict_before(self._clock() - rule.window)
            return max(0, rule.max_attempts - len(window.attempts))

    def time_until_reset(self, subject_id: int, action: str) -> Optional[timedelta]:
        """Time until the oldest attempt leaves the window, or None if nothing is pending."""
        rule = self._policy.get_rule(action)
        if rule is None:
            return None

        window = self._get_window(subject_id, action)
        if window is None:
            return None

        with window.lock:
            now = self._clock()
            window.evict_before(now - rule.window)
            if not window.attempts:
                return None
            remaining = window.attempts[0] + rule.window - now
            return remaining if remaining > timedelta(0) else None

    def cleanup(self, max_age: timedelta = timedelta(hours=24)) -> int:
        """
        Drop stale attempts and empty windows.

        Run on an interval by the application scheduler. Returns the number
        of windows removed.
        """
        cutoff = self._clock() - max_age
        removed = 0
        with self._registry_lock:
            for key in list(self._windows):
                window = self._windows[key]
                with window.lock:
                    rule = self._policy.get_rule(key[1])
                    horizon = cutoff
                    if rule is not None:
                        horizon = max(cutoff, self._clock() - rule.window)
                    window.evict_before(horizon)
                    if not window.attempts:
                        window.retired = True
                        del self._windows[key]
                        removed += 1

        if removed:
            logger.info(
                "Rate limit windows cleaned up",
                extra={"removed": removed, "remaining": len(self._windows)}
            )
        return removed

    def _get_window(self, subject_id: int, action: str) -> Optional[_AttemptWindow]:
        with self._registry_lock:
            return self._windows.get(_key(subject_id, action))

    def _get_or_create_window(self, subject_id: int, action: str) -> _AttemptWindow:
        key = _key(subject_id, action)
        with self._registry_lock:
            window = self._windows.get(key)
            if window is None:
                window = _AttemptWindow()
                self._windows[key] = window
            return window


def _action_name(action: str) -> str:
    return getattr(action, "value", action)


def _key(subject_id: int, action: str) -> WindowKey:
    return str(subject_id), _action_name(action)
