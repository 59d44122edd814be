"""
Service Wiring
==============

Builds the long-lived service graph once per application and exposes it to
route handlers through FastAPI dependencies.
"""

from dataclasses import dataclass
from typing import Optional

from fastapi import HTTPException, Request, status

from appealdesk.assignment.application import AssignmentEngine, WorkloadTracker
from appealdesk.config import Settings
from appealdesk.config.policy import PolicyConfig, PolicyConfigManager
from appealdesk.escalation.application import EscalationSweeper
from appealdesk.ratelimit.application import RateLimiter
from appealdesk.shared.infrastructure.clock import Clock, utc_now
from appealdesk.shared.infrastructure.logging import get_logger
from appealdesk.tickets.application import IAuthorizationService, TicketLifecycleService

logger = get_logger(__name__)


@dataclass
class ServiceContainer:
    """Everything the routers and background jobs share."""

    settings: Settings
    policy: PolicyConfigManager
    rate_limiter: RateLimiter
    tracker: WorkloadTracker
    engine: AssignmentEngine
    lifecycle: TicketLifecycleService
    sweeper: EscalationSweeper

    def apply_policy(self, config: PolicyConfig) -> None:
        """Push a freshly loaded policy into the running services."""
        self.engine.update_weights(config.scoring)
        self.rate_limiter.update_policy(config.rate_limit_policy)
        self.sweeper.update_policy(config.escalation)


def build_services(
    config: Settings,
    authorization: Optional[IAuthorizationService] = None,
    clock: Clock = utc_now,
) -> ServiceContainer:
    """
    Wire repositories and services for the configured storage backend.

    The policy file is loaded here; watching it is started by the caller.
    """
    if config.storage_backend == "memory":
        from appealdesk.assignment.infrastructure import InMemoryOperatorWorkloadRepository
        from appealdesk.tickets.infrastructure import InMemoryTicketRepository

        workload_repo = InMemoryOperatorWorkloadRepository()
        ticket_repo = InMemoryTicketRepository()
    else:
        from appealdesk.assignment.infrastructure import SQLAlchemyOperatorWorkloadRepository
        from appealdesk.tickets.infrastructure import SQLAlchemyTicketRepository

        workload_repo = SQLAlchemyOperatorWorkloadRepository()
        ticket_repo = SQLAlchemyTicketRepository()

    policy_manager = PolicyConfigManager()
    policy = policy_manager.load(config.policy_config_path)

    rate_limiter = RateLimiter(policy.rate_limit_policy, clock=clock)
    tracker = WorkloadTracker(workload_repo, clock=clock)
    engine = AssignmentEngine(tracker, policy.scoring, clock=clock)
    lifecycle = TicketLifecycleService(
        ticket_repo, tracker, engine, authorization=authorization, clock=clock
    )
    sweeper = EscalationSweeper(ticket_repo, lifecycle, policy.escalation, clock=clock)

    container = ServiceContainer(
        settings=config,
        policy=policy_manager,
        rate_limiter=rate_limiter,
        tracker=tracker,
        engine=engine,
        lifecycle=lifecycle,
        sweeper=sweeper,
    )
    policy_manager.subscribe(container.apply_policy)

    logger.info(
        "Services wired",
        extra={"storage_backend": config.storage_backend, "policy_path": str(config.policy_config_path)}
    )
    return container


# ========== Dependencies ==========

def get_services(request: Request) -> ServiceContainer:
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Services not initialized"
        )
    return services


def get_lifecycle(request: Request) -> TicketLifecycleService:
    return get_services(request).lifecycle


def get_tracker(request: Request) -> WorkloadTracker:
    return get_services(request).tracker


def get_engine(request: Request) -> AssignmentEngine:
    return get_services(request).engine


def get_rate_limiter(request: Request) -> RateLimiter:
    return get_services(request).rate_limiter


def get_sweeper(request: Request) -> EscalationSweeper:
    return get_services(request).sweeper


def enforce_rate_limit(limiter: RateLimiter, subject_id: int, action: str) -> None:
    """
    Consume one attempt or reject the request with 429.

    Raises:
        HTTPException: 429 with Retry-After when the window is full
    """
    if limiter.allow(subject_id, action):
        return

    retry_after = limiter.time_until_reset(subject_id, action)
    seconds = max(1, int(retry_after.total_seconds()) + 1) if retry_after else 1
    raise HTTPException(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        detail="Too many requests, please try again later",
        headers={"Retry-After": str(seconds)},
    )
