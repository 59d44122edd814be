"""
Tests for TicketLifecycleService.
"""

import asyncio

import pytest

from appealdesk.assignment.application import AssignmentEngine, WorkloadTracker
from appealdesk.assignment.infrastructure import InMemoryOperatorWorkloadRepository
from appealdesk.config import TicketCategory, TicketPriority, TicketStatus
from appealdesk.core import (
    ConflictException,
    ForbiddenException,
    NoEligibleOperatorException,
    RepositoryException,
    ResourceNotFoundException,
    ValidationException,
)
from appealdesk.tickets.application import TicketLifecycleService
from appealdesk.tickets.infrastructure import InMemoryTicketRepository
from tests.conftest import DenyAllAuthorization

ADMIN = 900


async def _active(tracker, operator_id):
    workload = await tracker.get_by_operator(operator_id)
    return workload.active_ticket_count if workload else 0


# ========== Creation ==========

async def test_create_ticket(make_ticket, clock):
    ticket = await make_ticket(subject="Need help", body="Please assist me")

    assert ticket.id is not None
    assert ticket.status == TicketStatus.NEW
    assert ticket.assigned_operator_id is None
    assert ticket.created_at == clock.now
    assert len(ticket.messages) == 1
    assert ticket.messages[0].text == "Please assist me"
    assert ticket.messages[0].is_from_operator is False
    assert ticket.unread_count == 1


@pytest.mark.parametrize("subject,body", [
    ("Hi", "Please assist me"),
    ("x" * 201, "Please assist me"),
    ("Need help", "too short"),
    ("Need help", "y" * 4001),
    ("   Hi    ", "Please assist me"),
])
async def test_create_ticket_validates_lengths(make_ticket, subject, body):
    with pytest.raises(ValidationException):
        await make_ticket(subject=subject, body=body)


async def test_get_missing_ticket(lifecycle):
    with pytest.raises(ResourceNotFoundException):
        await lifecycle.get_ticket(12345)


# ========== Assignment ==========

async def test_assign_ticket(lifecycle, tracker, make_ticket):
    ticket = await make_ticket()

    ticket = await lifecycle.assign_ticket(ticket.id, 1, ADMIN, note="billing expert")

    assert ticket.status == TicketStatus.IN_PROGRESS
    assert ticket.assigned_operator_id == 1
    assert await _active(tracker, 1) == 1


async def test_assign_to_other_operator_moves_load(lifecycle, tracker, make_ticket):
    ticket = await make_ticket()
    await lifecycle.assign_ticket(ticket.id, 1, ADMIN)

    ticket = await lifecycle.assign_ticket(ticket.id, 2, ADMIN)

    assert ticket.assigned_operator_id == 2
    assert ticket.status == TicketStatus.IN_PROGRESS
    assert await _active(tracker, 1) == 0
    assert await _active(tracker, 2) == 1


async def test_assign_same_operator_twice_is_noop(lifecycle, tracker, make_ticket):
    ticket = await make_ticket()
    await lifecycle.assign_ticket(ticket.id, 1, ADMIN)
    await lifecycle.assign_ticket(ticket.id, 1, ADMIN)

    assert await _active(tracker, 1) == 1


async def test_assign_missing_ticket(lifecycle):
    with pytest.raises(ResourceNotFoundException):
        await lifecycle.assign_ticket(404, 1, ADMIN)


async def test_assign_forbidden(ticket_repo, tracker, engine, clock):
    lifecycle = TicketLifecycleService(
        ticket_repo, tracker, engine, authorization=DenyAllAuthorization(), clock=clock
    )
    ticket = await lifecycle.create_ticket(100, "billing", "normal", "Need help", "Please assist me")

    with pytest.raises(ForbiddenException):
        await lifecycle.assign_ticket(ticket.id, 1, ADMIN)

    assert (await lifecycle.get_ticket(ticket.id)).status == TicketStatus.NEW
    assert await _active(tracker, 1) == 0


async def test_assign_unavailable_operator(lifecycle, tracker, make_ticket):
    ticket = await make_ticket()
    await tracker.set_availability(1, False)

    with pytest.raises(ConflictException):
        await lifecycle.assign_ticket(ticket.id, 1, ADMIN)

    assert (await lifecycle.get_ticket(ticket.id)).assigned_operator_id is None


async def test_assign_closed_ticket(lifecycle, make_ticket):
    ticket = await make_ticket()
    await lifecycle.close_ticket(ticket.id, 100, False, "solved myself")

    with pytest.raises(ConflictException):
        await lifecycle.assign_ticket(ticket.id, 1, ADMIN)


async def test_auto_assign_picks_best_operator(lifecycle, tracker, make_ticket):
    await tracker.set_expertise(1, TicketCategory.BILLING, 1)
    await tracker.set_expertise(2, TicketCategory.BILLING, 5)
    ticket = await make_ticket(category="billing", priority="high")

    operator_id = await lifecycle.auto_assign_ticket(ticket.id)

    assert operator_id == 2
    assert (await lifecycle.get_ticket(ticket.id)).assigned_operator_id == 2
    assert await _active(tracker, 2) == 1


async def test_auto_assign_without_operators_leaves_ticket_new(lifecycle, make_ticket):
    ticket = await make_ticket()

    with pytest.raises(NoEligibleOperatorException):
        await lifecycle.auto_assign_ticket(ticket.id)

    assert (await lifecycle.get_ticket(ticket.id)).status == TicketStatus.NEW


async def test_auto_assign_keeps_existing_assignment(lifecycle, tracker, make_ticket):
    await tracker.set_availability(2, True)
    ticket = await make_ticket()
    await lifecycle.assign_ticket(ticket.id, 1, ADMIN)

    assert await lifecycle.auto_assign_ticket(ticket.id) == 1
    assert await _active(tracker, 2) == 0


# ========== Unassignment ==========

async def test_unassign_returns_ticket_to_new(lifecycle, tracker, make_ticket):
    ticket = await make_ticket()
    await lifecycle.assign_ticket(ticket.id, 1, ADMIN)

    ticket = await lifecycle.unassign_ticket(ticket.id, ADMIN)

    assert ticket.status == TicketStatus.NEW
    assert ticket.assigned_operator_id is None
    assert await _active(tracker, 1) == 0


async def test_unassign_unassigned_ticket_is_noop(lifecycle, make_ticket):
    ticket = await make_ticket()

    ticket = await lifecycle.unassign_ticket(ticket.id, ADMIN)

    assert ticket.status == TicketStatus.NEW


async def test_unassign_closed_ticket(lifecycle, make_ticket):
    ticket = await make_ticket()
    await lifecycle.assign_ticket(ticket.id, 1, ADMIN)
    await lifecycle.close_ticket(ticket.id, 1, True, "done")

    with pytest.raises(ConflictException):
        await lifecycle.unassign_ticket(ticket.id, ADMIN)


# ========== Reassignment ==========

async def test_reassign_moves_to_better_operator(lifecycle, tracker, make_ticket):
    await tracker.set_availability(1, True)
    await tracker.set_expertise(2, TicketCategory.BILLING, 4)
    ticket = await make_ticket(category="billing")
    await lifecycle.assign_ticket(ticket.id, 1, ADMIN)

    operator_id = await lifecycle.reassign_ticket(ticket.id, "manual")

    ticket = await lifecycle.get_ticket(ticket.id)
    assert operator_id == 2
    assert ticket.assigned_operator_id == 2
    assert ticket.status == TicketStatus.IN_PROGRESS
    assert await _active(tracker, 1) == 0
    assert await _active(tracker, 2) == 1


async def test_reassign_unassigned_ticket(lifecycle, tracker, make_ticket):
    await tracker.set_availability(3, True)
    ticket = await make_ticket()

    assert await lifecycle.reassign_ticket(ticket.id, "overdue") == 3
    assert (await lifecycle.get_ticket(ticket.id)).status == TicketStatus.IN_PROGRESS
    assert await _active(tracker, 3) == 1


async def test_reassign_without_candidates_keeps_previous_assignment(lifecycle, tracker, make_ticket):
    ticket = await make_ticket()
    await lifecycle.assign_ticket(ticket.id, 1, ADMIN)
    await tracker.set_availability(1, False)

    with pytest.raises(NoEligibleOperatorException):
        await lifecycle.reassign_ticket(ticket.id, "overdue")

    ticket = await lifecycle.get_ticket(ticket.id)
    assert ticket.assigned_operator_id == 1
    assert ticket.status == TicketStatus.IN_PROGRESS
    assert await _active(tracker, 1) == 1


async def test_reassign_keeps_operator_who_is_still_best(lifecycle, tracker, make_ticket):
    await tracker.set_expertise(1, TicketCategory.BILLING, 5)
    await tracker.set_availability(2, True)
    ticket = await make_ticket(category="billing")
    await lifecycle.assign_ticket(ticket.id, 1, ADMIN)

    assert await lifecycle.reassign_ticket(ticket.id, "manual") == 1
    assert await _active(tracker, 1) == 1
    assert await _active(tracker, 2) == 0


async def test_reassign_closed_ticket(lifecycle, tracker, make_ticket):
    await tracker.set_availability(1, True)
    ticket = await make_ticket()
    await lifecycle.close_ticket(ticket.id, 100, False, "never mind")

    with pytest.raises(ConflictException):
        await lifecycle.reassign_ticket(ticket.id, "overdue")


class GatedWorkloadRepository(InMemoryOperatorWorkloadRepository):
    """Blocks saves while ``gate`` is set and not yet opened."""

    def __init__(self):
        super().__init__()
        self.gate = None
        self.save_started = asyncio.Event()

    async def save(self, workload):
        if self.gate is not None:
            self.save_started.set()
            await self.gate.wait()
        return await super().save(workload)


async def test_cancelled_reassign_still_commits_swap(ticket_repo, clock):
    repo = GatedWorkloadRepository()
    tracker = WorkloadTracker(repo, clock=clock)
    engine = AssignmentEngine(tracker, clock=clock)
    lifecycle = TicketLifecycleService(ticket_repo, tracker, engine, clock=clock)

    await tracker.set_availability(1, True)
    await tracker.set_expertise(2, TicketCategory.BILLING, 4)
    ticket = await lifecycle.create_ticket(100, "billing", "normal", "Need help", "Please assist me")
    await lifecycle.assign_ticket(ticket.id, 1, ADMIN)

    repo.gate = asyncio.Event()
    task = asyncio.create_task(lifecycle.reassign_ticket(ticket.id, "manual"))
    await repo.save_started.wait()
    task.cancel()
    await asyncio.sleep(0)
    repo.gate.set()

    with pytest.raises(asyncio.CancelledError):
        await task

    ticket = await lifecycle.get_ticket(ticket.id)
    assert ticket.assigned_operator_id == 2
    assert await _active(tracker, 1) == 0
    assert await _active(tracker, 2) == 1


# ========== Messages ==========

async def test_operator_reply_sets_first_response_once(lifecycle, make_ticket, clock):
    ticket = await make_ticket()
    await lifecycle.assign_ticket(ticket.id, 1, ADMIN)

    clock.advance(minutes=10)
    first_reply_at = clock.now
    await lifecycle.append_message(ticket.id, 1, True, "Looking into it")
    clock.advance(minutes=10)
    await lifecycle.append_message(ticket.id, 1, True, "Fixed")

    ticket = await lifecycle.get_ticket(ticket.id)
    assert ticket.first_response_at == first_reply_at
    assert ticket.status == TicketStatus.IN_PROGRESS
    assert len(ticket.messages) == 3


async def test_requester_follow_up_keeps_assigned_ticket_in_progress(lifecycle, make_ticket):
    ticket = await make_ticket()
    await lifecycle.assign_ticket(ticket.id, 1, ADMIN)

    message = await lifecycle.append_message(ticket.id, 100, False, "Any news?")

    ticket = await lifecycle.get_ticket(ticket.id)
    assert ticket.status == TicketStatus.IN_PROGRESS
    assert ticket.first_response_at is None
    assert message.is_read_by_operator is False


async def test_requester_follow_up_on_unassigned_ticket_stays_new(lifecycle, make_ticket):
    ticket = await make_ticket()

    await lifecycle.append_message(ticket.id, 100, False, "Any news?")

    assert (await lifecycle.get_ticket(ticket.id)).status == TicketStatus.NEW


async def test_operator_reply_claims_unassigned_ticket(lifecycle, tracker, make_ticket):
    ticket = await make_ticket()

    await lifecycle.append_message(ticket.id, 5, True, "I'll take this one")

    ticket = await lifecycle.get_ticket(ticket.id)
    assert ticket.assigned_operator_id == 5
    assert ticket.status == TicketStatus.IN_PROGRESS
    assert ticket.first_response_at is not None
    assert await _active(tracker, 5) == 1


async def test_operator_reply_refreshes_activity(lifecycle, tracker, make_ticket, clock):
    ticket = await make_ticket()
    await lifecycle.assign_ticket(ticket.id, 1, ADMIN)
    clock.advance(hours=6)

    await lifecycle.append_message(ticket.id, 1, True, "On it")

    assert (await tracker.get_by_operator(1)).last_activity_at == clock.now


@pytest.mark.parametrize("text", ["", "   ", "z" * 4001])
async def test_append_message_validates_text(lifecycle, make_ticket, text):
    ticket = await make_ticket()

    with pytest.raises(ValidationException):
        await lifecycle.append_message(ticket.id, 100, False, text)

    assert len((await lifecycle.get_ticket(ticket.id)).messages) == 1


async def test_append_message_to_closed_ticket(lifecycle, make_ticket):
    ticket = await make_ticket()
    await lifecycle.close_ticket(ticket.id, 100, False, "resolved")

    with pytest.raises(ConflictException):
        await lifecycle.append_message(ticket.id, 100, False, "One more thing")


async def test_mark_read_by_operator(lifecycle, make_ticket):
    ticket = await make_ticket()
    await lifecycle.append_message(ticket.id, 100, False, "Any news?")

    assert await lifecycle.mark_read_by_operator(ticket.id) == 2
    assert await lifecycle.mark_read_by_operator(ticket.id) == 0
    assert (await lifecycle.get_ticket(ticket.id)).unread_count == 0


# ========== Priority ==========

async def test_update_priority(lifecycle, make_ticket):
    ticket = await make_ticket(priority="low")

    ticket = await lifecycle.update_priority(ticket.id, TicketPriority.URGENT)

    assert ticket.priority == TicketPriority.URGENT


async def test_update_priority_on_closed_ticket(lifecycle, make_ticket):
    ticket = await make_ticket()
    await lifecycle.close_ticket(ticket.id, 100, False, "resolved")

    with pytest.raises(ConflictException):
        await lifecycle.update_priority(ticket.id, "high")


# ========== Closing ==========

async def test_close_ticket(lifecycle, tracker, make_ticket, clock):
    ticket = await make_ticket()
    await lifecycle.assign_ticket(ticket.id, 1, ADMIN)
    clock.advance(hours=1)

    ticket = await lifecycle.close_ticket(ticket.id, 1, True, "Refund issued")

    assert ticket.status == TicketStatus.CLOSED
    assert ticket.closed_at == clock.now
    assert ticket.closed_reason == "Refund issued"
    assert ticket.closed_by == 1
    assert ticket.messages[-1].is_system is True
    assert "Refund issued" in ticket.messages[-1].text
    assert await _active(tracker, 1) == 0


async def test_close_new_ticket(lifecycle, make_ticket):
    ticket = await make_ticket()

    ticket = await lifecycle.close_ticket(ticket.id, 100, False, "Solved it myself")

    assert ticket.status == TicketStatus.CLOSED


async def test_second_close_conflicts_without_double_decrement(lifecycle, tracker, make_ticket):
    first = await make_ticket()
    second = await make_ticket()
    await lifecycle.assign_ticket(first.id, 1, ADMIN)
    await lifecycle.assign_ticket(second.id, 1, ADMIN)

    await lifecycle.close_ticket(first.id, 1, True, "done")
    with pytest.raises(ConflictException):
        await lifecycle.close_ticket(first.id, 1, True, "done again")

    assert await _active(tracker, 1) == 1


async def test_concurrent_close_decrements_once(lifecycle, tracker, make_ticket):
    first = await make_ticket()
    second = await make_ticket()
    await lifecycle.assign_ticket(first.id, 1, ADMIN)
    await lifecycle.assign_ticket(second.id, 1, ADMIN)

    results = await asyncio.gather(
        lifecycle.close_ticket(first.id, 1, True, "done"),
        lifecycle.close_ticket(first.id, ADMIN, True, "duplicate"),
        return_exceptions=True,
    )

    assert sum(isinstance(r, ConflictException) for r in results) == 1
    assert await _active(tracker, 1) == 1


async def test_close_requires_reason(lifecycle, make_ticket):
    ticket = await make_ticket()

    with pytest.raises(ValidationException):
        await lifecycle.close_ticket(ticket.id, 100, False, "  ")

    assert (await lifecycle.get_ticket(ticket.id)).status == TicketStatus.NEW


async def test_reassign_survives_repeated_cancellation(ticket_repo, clock):
    repo = GatedWorkloadRepository()
    tracker = WorkloadTracker(repo, clock=clock)
    engine = AssignmentEngine(tracker, clock=clock)
    lifecycle = TicketLifecycleService(ticket_repo, tracker, engine, clock=clock)

    await tracker.set_availability(1, True)
    await tracker.set_expertise(2, TicketCategory.BILLING, 4)
    ticket = await lifecycle.create_ticket(100, "billing", "normal", "Need help", "Please assist me")
    await lifecycle.assign_ticket(ticket.id, 1, ADMIN)

    repo.gate = asyncio.Event()
    task = asyncio.create_task(lifecycle.reassign_ticket(ticket.id, "manual"))
    await repo.save_started.wait()
    for _ in range(3):
        task.cancel()
        await asyncio.sleep(0)
    repo.gate.set()

    with pytest.raises(asyncio.CancelledError):
        await task

    assert (await lifecycle.get_ticket(ticket.id)).assigned_operator_id == 2
    assert await _active(tracker, 1) == 0
    assert await _active(tracker, 2) == 1


# ========== Storage failures ==========

class FlakyTicketRepository(InMemoryTicketRepository):
    """Fails the next ``fail_saves`` saves with a driver-style error."""

    def __init__(self):
        super().__init__()
        self.fail_saves = 0

    async def save(self, ticket):
        if self.fail_saves:
            self.fail_saves -= 1
            raise ConnectionError("database connection lost")
        return await super().save(ticket)


@pytest.fixture
def flaky_repo():
    return FlakyTicketRepository()


@pytest.fixture
def flaky_lifecycle(flaky_repo, tracker, engine, clock):
    return TicketLifecycleService(flaky_repo, tracker, engine, clock=clock)


async def _open(lifecycle):
    return await lifecycle.create_ticket(100, "billing", "normal", "Need help", "Please assist me")


async def test_failed_close_keeps_load_and_retry_decrements_once(flaky_lifecycle, flaky_repo, tracker):
    first = await _open(flaky_lifecycle)
    second = await _open(flaky_lifecycle)
    await flaky_lifecycle.assign_ticket(first.id, 7, ADMIN)
    await flaky_lifecycle.assign_ticket(second.id, 7, ADMIN)

    flaky_repo.fail_saves = 1
    with pytest.raises(RepositoryException):
        await flaky_lifecycle.close_ticket(first.id, 7, True, "done")

    assert (await flaky_lifecycle.get_ticket(first.id)).status == TicketStatus.IN_PROGRESS
    assert await _active(tracker, 7) == 2

    await flaky_lifecycle.close_ticket(first.id, 7, True, "done")

    assert await _active(tracker, 7) == 1


async def test_failed_reassign_save_leaves_loads_untouched(flaky_lifecycle, flaky_repo, tracker):
    ticket = await _open(flaky_lifecycle)
    await flaky_lifecycle.assign_ticket(ticket.id, 7, ADMIN)
    await tracker.set_expertise(8, TicketCategory.BILLING, 5)

    flaky_repo.fail_saves = 1
    with pytest.raises(RepositoryException):
        await flaky_lifecycle.reassign_ticket(ticket.id, "manual")

    assert (await flaky_lifecycle.get_ticket(ticket.id)).assigned_operator_id == 7
    assert await _active(tracker, 7) == 1
    assert await _active(tracker, 8) == 0


async def test_failed_manual_reassign_save_leaves_loads_untouched(flaky_lifecycle, flaky_repo, tracker):
    ticket = await _open(flaky_lifecycle)
    await flaky_lifecycle.assign_ticket(ticket.id, 7, ADMIN)

    flaky_repo.fail_saves = 1
    with pytest.raises(RepositoryException):
        await flaky_lifecycle.assign_ticket(ticket.id, 8, ADMIN)

    assert (await flaky_lifecycle.get_ticket(ticket.id)).assigned_operator_id == 7
    assert await _active(tracker, 7) == 1
    assert await _active(tracker, 8) == 0


async def test_failed_claim_save_leaves_load_untouched(flaky_lifecycle, flaky_repo, tracker):
    ticket = await _open(flaky_lifecycle)

    flaky_repo.fail_saves = 1
    with pytest.raises(RepositoryException):
        await flaky_lifecycle.append_message(ticket.id, 5, True, "Taking this one")

    assert (await flaky_lifecycle.get_ticket(ticket.id)).assigned_operator_id is None
    assert await _active(tracker, 5) == 0
