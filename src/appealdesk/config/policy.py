"""
Assignment Policy Configuration
===============================

Scoring weights, rate limit rules and escalation thresholds loaded from a
YAML file and hot-reloaded with watchdog.

Example ``assignment_policy.yaml``::

    scoring:
      expertise_weight: 10
      load_penalty: 20
    rate_limits:
      create_ticket: {max_attempts: 5, window_seconds: 1800}
    escalation:
      overdue_after_hours: 24

Rate limit actions missing from the file keep their default rules.
"""

import threading
from pathlib import Path
from typing import Callable, Dict, List, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator
from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from appealdesk.assignment.domain import ScoringWeights
from appealdesk.core import ConfigurationException
from appealdesk.escalation.domain import EscalationPolicy
from appealdesk.ratelimit.domain import DEFAULT_RATE_LIMITS, RateLimitPolicy, RateLimitRule
from appealdesk.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

PolicySubscriber = Callable[["PolicyConfig"], None]


class PolicyConfig(BaseModel):
    """Root of the policy YAML document."""

    scoring: ScoringWeights = Field(default_factory=ScoringWeights)
    rate_limits: Dict[str, RateLimitRule] = Field(default_factory=lambda: dict(DEFAULT_RATE_LIMITS))
    escalation: EscalationPolicy = Field(default_factory=EscalationPolicy)

    @field_validator("rate_limits", mode="before")
    @classmethod
    def merge_with_defaults(cls, v: Optional[dict]) -> dict:
        merged = dict(DEFAULT_RATE_LIMITS)
        merged.update(v or {})
        return merged

    @property
    def rate_limit_policy(self) -> RateLimitPolicy:
        return RateLimitPolicy(rules=self.rate_limits)


class PolicyFileHandler(FileSystemEventHandler):
    """Watchdog event handler for policy file changes."""

    def __init__(self, manager: "PolicyConfigManager", path: Path):
        self.manager = manager
        self.path = path
        super().__init__()

    def on_modified(self, event):
        if event.is_directory:
            return
        if Path(event.src_path).resolve() == self.path.resolve():
            logger.info("Policy file changed", extra={"path": str(event.src_path)})
            self.manager.reload()


class PolicyConfigManager:
    """
    Thread-safe policy holder with hot-reload support.

    Subscribers are called with the new ``PolicyConfig`` after every
    successful load. A broken file on reload keeps the previous policy.
    """

    def __init__(self):
        self._config: Optional[PolicyConfig] = None
        self._lock = threading.Lock()
        self._path: Optional[Path] = None
        self._observer = None
        self._subscribers: List[PolicySubscriber] = []

    def subscribe(self, callback: PolicySubscriber) -> None:
        self._subscribers.append(callback)

    def load(self, path: Path) -> PolicyConfig:
        """
        Initial load. A missing file yields the defaults.

        Raises:
            ConfigurationException: file exists but is not a valid policy
        """
        self._path = Path(path)
        try:
            config = self._load_from_file(self._path)
        except (yaml.YAMLError, ValidationError, TypeError) as e:
            raise ConfigurationException(
                f"Invalid policy file: {self._path}",
                {"error": str(e)}
            ) from e
        self._apply(config)
        return config

    def reload(self) -> bool:
        """Reload from the current path. Returns False and keeps the old policy on error."""
        if self._path is None:
            return False

        try:
            config = self._load_from_file(self._path)
        except (OSError, yaml.YAMLError, ValidationError, TypeError) as e:
            logger.error(
                "Failed to reload policy file",
                extra={"path": str(self._path), "error": str(e)}
            )
            return False

        self._apply(config)
        logger.info("Policy configuration reloaded", extra={"path": str(self._path)})
        return True

    def start_watching(self) -> None:
        """Watch the policy file for changes. Skipped when the file does not exist."""
        if self._path is None:
            raise RuntimeError("Policy not loaded. Call load() first.")

        if not self._path.exists():
            logger.info(
                "Policy file doesn't exist, skipping file watch",
                extra={"path": str(self._path)}
            )
            return

        try:
            self._observer = Observer()
            self._observer.schedule(
                PolicyFileHandler(self, self._path),
                str(self._path.parent.resolve()),
                recursive=False
            )
            self._observer.start()
            logger.info("Started watching policy file", extra={"path": str(self._path)})
        except OSError as e:
            logger.warning(
                "File watching not available, using static policy",
                extra={"error": str(e)}
            )
            self._observer = None

    def stop_watching(self) -> None:
        """Stop watching (safe to call even if not watching)."""
        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout=5)
            self._observer = None

    @property
    def is_watching(self) -> bool:
        return self._observer is not None

    @property
    def config(self) -> PolicyConfig:
        with self._lock:
            if self._config is None:
                raise RuntimeError("Policy configuration not loaded")
            return self._config

    def _load_from_file(self, path: Path) -> PolicyConfig:
        if not path.exists():
            logger.warning("Policy file not found, using defaults", extra={"path": str(path)})
            return PolicyConfig()

        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}

        return PolicyConfig(**data)

    def _apply(self, config: PolicyConfig) -> None:
        with self._lock:
            self._config = config
            subscribers = list(self._subscribers)

        for callback in subscribers:
            try:
                callback(config)
            except Exception:
                logger.exception(
                    "Policy subscriber failed",
                    extra={"subscriber": getattr(callback, "__qualname__", repr(callback))}
                )
