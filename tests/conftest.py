"""
Shared fixtures: a controllable clock and services over in-memory repositories.
"""

from datetime import datetime, timedelta, timezone

import pytest

from appealdesk.assignment.application import AssignmentEngine, WorkloadTracker
from appealdesk.assignment.infrastructure import InMemoryOperatorWorkloadRepository
from appealdesk.escalation.application import EscalationSweeper
from appealdesk.ratelimit.application import RateLimiter
from appealdesk.tickets.application import IAuthorizationService, TicketLifecycleService
from appealdesk.tickets.infrastructure import InMemoryTicketRepository

T0 = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime = T0):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class DenyAllAuthorization(IAuthorizationService):
    async def can_assign_tickets(self, user_id: int) -> bool:
        return False


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def workload_repo():
    return InMemoryOperatorWorkloadRepository()


@pytest.fixture
def ticket_repo():
    return InMemoryTicketRepository()


@pytest.fixture
def tracker(workload_repo, clock):
    return WorkloadTracker(workload_repo, clock=clock)


@pytest.fixture
def engine(tracker, clock):
    return AssignmentEngine(tracker, clock=clock)


@pytest.fixture
def lifecycle(ticket_repo, tracker, engine, clock):
    return TicketLifecycleService(ticket_repo, tracker, engine, clock=clock)


@pytest.fixture
def sweeper(ticket_repo, lifecycle, clock):
    return EscalationSweeper(ticket_repo, lifecycle, clock=clock)


@pytest.fixture
def limiter(clock):
    return RateLimiter(clock=clock)


@pytest.fixture
def make_ticket(lifecycle):
    """Open a valid ticket with sensible defaults."""

    async def _make(requester_id=100, category="billing", priority="normal",
                    subject="Need help", body="Please assist me"):
        return await lifecycle.create_ticket(requester_id, category, priority, subject, body)

    return _make
