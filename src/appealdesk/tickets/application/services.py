"""
Ticket Application Services
===========================

Orchestrates the ticket state machine and keeps operator workloads in step
with it.

Lock order is always ticket lock first, then the operator lock taken inside
``WorkloadTracker``. Nothing acquires them the other way round.

The ticket is saved before any operator counter moves, so a failed save
leaves both the stored ticket and every workload as they were.
"""

import asyncio
from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional

from appealdesk.assignment.application import AssignmentEngine, WorkloadTracker
from appealdesk.config import TicketCategory, TicketPriority
from appealdesk.core import (
    ApplicationException,
    ConflictException,
    ForbiddenException,
    NoEligibleOperatorException,
    ResourceNotFoundException,
    storage_boundary,
)
from appealdesk.shared.infrastructure.clock import Clock, utc_now
from appealdesk.shared.infrastructure.locking import KeyedLock
from appealdesk.shared.infrastructure.logging import get_logger
from appealdesk.tickets.domain import Ticket, TicketMessage

logger = get_logger(__name__)


# ========== Repository Interfaces (Dependency Inversion) ==========

class ITicketRepository(ABC):
    """Interface for ticket data access."""

    @abstractmethod
    async def get_by_id(self, ticket_id: int) -> Optional[Ticket]:
        """Get ticket with its messages."""

    @abstractmethod
    async def save(self, ticket: Ticket) -> Ticket:
        """Insert or update a ticket. Assigns ``id`` on first save."""

    @abstractmethod
    async def list_overdue(self, threshold: datetime) -> List[Ticket]:
        """
        Tickets created before ``threshold`` still waiting for an operator:
        status NEW, or IN_PROGRESS without a first response.
        """


class IAuthorizationService(ABC):
    """Hook deciding who may hand tickets to operators."""

    @abstractmethod
    async def can_assign_tickets(self, user_id: int) -> bool:
        """Whether the user holds the ticket-assignment capability."""


class AllowAllAuthorizationService(IAuthorizationService):
    """Grants every user the assignment capability. Used when no role store is wired."""

    async def can_assign_tickets(self, user_id: int) -> bool:
        return True


# ========== Application Services ==========

class TicketLifecycleService:
    """
    Application service for the ticket lifecycle.

    Responsibilities:
    - Create, assign, unassign, reassign and close tickets
    - Append conversation messages
    - Increment and decrement operator load alongside each transition
    """

    def __init__(
        self,
        tickets: ITicketRepository,
        tracker: WorkloadTracker,
        engine: AssignmentEngine,
        authorization: Optional[IAuthorizationService] = None,
        locks: Optional[KeyedLock] = None,
        clock: Clock = utc_now,
    ):
        self._tickets = tickets
        self._tracker = tracker
        self._engine = engine
        self._authorization = authorization or AllowAllAuthorizationService()
        self._locks = locks or KeyedLock()
        self._clock = clock

    async def create_ticket(
        self,
        requester_id: int,
        category: TicketCategory,
        priority: TicketPriority,
        subject: str,
        body: str,
    ) -> Ticket:
        """
        Open a new ticket.

        Raises:
            ValidationException: subject or body outside the length bounds
        """
        ticket = Ticket.create(requester_id, category, priority, subject, body, self._clock())
        ticket = await self._save(ticket)

        logger.info(
            "Ticket created",
            extra={
                "ticket_id": ticket.id,
                "requester_id": requester_id,
                "category": ticket.category.value,
                "priority": ticket.priority.value,
            }
        )
        return ticket

    async def get_ticket(self, ticket_id: int) -> Ticket:
        return await self._load(ticket_id)

    async def assign_ticket(
        self,
        ticket_id: int,
        operator_id: int,
        acting_user_id: int,
        note: Optional[str] = None,
    ) -> Ticket:
        """
        Assign a ticket to a specific operator.

        Assigning to a different operator than the current one moves the load
        from the old operator to the new one.

        Raises:
            ResourceNotFoundException: ticket does not exist
            ConflictException: ticket closed, or operator marked unavailable
            ForbiddenException: acting user may not assign tickets
        """
        async with self._locks.hold(ticket_id):
            ticket = await self._load(ticket_id)
            self._ensure_open(ticket, "assign")

            if not await self._authorization.can_assign_tickets(acting_user_id):
                raise ForbiddenException(
                    "User is not allowed to assign tickets",
                    {"user_id": acting_user_id, "ticket_id": ticket_id}
                )

            if ticket.assigned_operator_id == operator_id:
                return ticket

            workload = await self._tracker.get_by_operator(operator_id)
            if workload is not None and not workload.is_available:
                raise ConflictException(
                    "Operator is not available",
                    {"operator_id": operator_id, "ticket_id": ticket_id}
                )

            previous = ticket.assign_to(operator_id, self._clock())
            ticket = await self._save(ticket)
            await self._move_load(previous, operator_id)

        logger.info(
            "Ticket assigned",
            extra={
                "ticket_id": ticket_id,
                "operator_id": operator_id,
                "previous_operator_id": previous,
                "acting_user_id": acting_user_id,
                "note": note,
            }
        )
        return ticket

    async def auto_assign_ticket(self, ticket_id: int) -> int:
        """
        Assign an unassigned ticket to the best available operator.

        Already-assigned tickets keep their operator.

        Returns:
            The assigned operator id

        Raises:
            NoEligibleOperatorException: nobody is available
        """
        async with self._locks.hold(ticket_id):
            ticket = await self._load(ticket_id)
            self._ensure_open(ticket, "assign")
            if ticket.is_assigned:
                return ticket.assigned_operator_id

            best = await self._engine.find_best_operator(ticket.category, ticket.priority)
            ticket.assign_to(best.operator_id, self._clock())
            await self._save(ticket)
            await self._tracker.assign_ticket(best.operator_id)

        logger.info(
            "Ticket auto-assigned",
            extra={"ticket_id": ticket_id, "operator_id": best.operator_id}
        )
        return best.operator_id

    async def unassign_ticket(self, ticket_id: int, acting_user_id: int) -> Ticket:
        """Release the current operator and put the ticket back to NEW."""
        async with self._locks.hold(ticket_id):
            ticket = await self._load(ticket_id)
            self._ensure_open(ticket, "unassign")

            if not await self._authorization.can_assign_tickets(acting_user_id):
                raise ForbiddenException(
                    "User is not allowed to unassign tickets",
                    {"user_id": acting_user_id, "ticket_id": ticket_id}
                )

            if not ticket.is_assigned:
                return ticket

            previous = ticket.unassign(self._clock())
            ticket = await self._save(ticket)
            await self._tracker.complete_ticket(previous)

        logger.info(
            "Ticket unassigned",
            extra={"ticket_id": ticket_id, "operator_id": previous, "acting_user_id": acting_user_id}
        )
        return ticket

    async def reassign_ticket(self, ticket_id: int, reason: str) -> int:
        """
        Move a ticket to the best available operator.

        The replacement is found before anything changes. When nobody is
        available the ticket keeps its current operator (or stays NEW).
        Once a replacement is picked, the swap runs to completion even if
        the caller is cancelled.

        Returns:
            The operator now holding the ticket

        Raises:
            NoEligibleOperatorException: nobody is available; ticket untouched
        """
        async with self._locks.hold(ticket_id):
            ticket = await self._load(ticket_id)
            self._ensure_open(ticket, "reassign")
            outgoing = ticket.assigned_operator_id

            try:
                best = await self._engine.find_best_operator(
                    ticket.category, ticket.priority, released_operator_id=outgoing
                )
            except NoEligibleOperatorException:
                logger.warning(
                    "Reassignment found no operator, keeping current assignment",
                    extra={"ticket_id": ticket_id, "operator_id": outgoing, "reason": reason}
                )
                raise

            if best.operator_id == outgoing:
                logger.info(
                    "Current operator is still the best fit",
                    extra={"ticket_id": ticket_id, "operator_id": outgoing, "reason": reason}
                )
                return outgoing

            swap = asyncio.ensure_future(self._swap(ticket, outgoing, best.operator_id))
            try:
                await asyncio.shield(swap)
            except asyncio.CancelledError:
                # Hold the ticket lock until the commit lands, however often we are cancelled.
                while not swap.done():
                    try:
                        await asyncio.shield(swap)
                    except asyncio.CancelledError:
                        continue
                    except ApplicationException:
                        logger.error(
                            "Reassignment failed after caller was cancelled",
                            extra={"ticket_id": ticket_id, "to_operator_id": best.operator_id}
                        )
                raise

        logger.info(
            "Ticket reassigned",
            extra={
                "ticket_id": ticket_id,
                "from_operator_id": outgoing,
                "to_operator_id": best.operator_id,
                "reason": reason,
            }
        )
        return best.operator_id

    async def append_message(
        self,
        ticket_id: int,
        sender_id: int,
        is_from_operator: bool,
        text: str,
    ) -> TicketMessage:
        """
        Add a message to the ticket conversation.

        An operator replying to an unassigned ticket takes it over.

        Raises:
            ConflictException: ticket closed
            ValidationException: empty or oversized text
        """
        async with self._locks.hold(ticket_id):
            ticket = await self._load(ticket_id)
            self._ensure_open(ticket, "add a message to")

            now = self._clock()
            message = TicketMessage.create(sender_id, is_from_operator, text, now)

            claimed = False
            if is_from_operator and not ticket.is_assigned:
                ticket.assign_to(sender_id, now)
                claimed = True

            ticket.add_message(message)
            await self._save(ticket)

            if claimed:
                await self._tracker.assign_ticket(sender_id)
            elif is_from_operator:
                await self._tracker.touch(sender_id)

        logger.info(
            "Message appended",
            extra={
                "ticket_id": ticket_id,
                "sender_id": sender_id,
                "is_from_operator": is_from_operator,
                "claimed": claimed,
            }
        )
        return message

    async def close_ticket(
        self,
        ticket_id: int,
        closed_by: int,
        is_operator: bool,
        reason: str,
    ) -> Ticket:
        """
        Close a ticket. Terminal.

        Raises:
            ConflictException: already closed; operator load is not touched again
            ValidationException: blank reason
        """
        async with self._locks.hold(ticket_id):
            ticket = await self._load(ticket_id)
            ticket.close(closed_by, reason, self._clock())
            ticket = await self._save(ticket)

            if ticket.assigned_operator_id is not None:
                await self._tracker.complete_ticket(ticket.assigned_operator_id)

        logger.info(
            "Ticket closed",
            extra={
                "ticket_id": ticket_id,
                "closed_by": closed_by,
                "is_operator": is_operator,
                "operator_id": ticket.assigned_operator_id,
            }
        )
        return ticket

    async def update_priority(self, ticket_id: int, priority: TicketPriority) -> Ticket:
        async with self._locks.hold(ticket_id):
            ticket = await self._load(ticket_id)
            old_priority = ticket.priority
            ticket.update_priority(priority, self._clock())
            ticket = await self._save(ticket)

        logger.info(
            "Ticket priority updated",
            extra={
                "ticket_id": ticket_id,
                "old_priority": old_priority.value,
                "new_priority": ticket.priority.value,
            }
        )
        return ticket

    async def mark_read_by_operator(self, ticket_id: int) -> int:
        """Mark all requester messages as read. Returns how many changed."""
        async with self._locks.hold(ticket_id):
            ticket = await self._load(ticket_id)
            changed = ticket.mark_read_by_operator(self._clock())
            if changed:
                await self._save(ticket)
        return changed

    # ========== Internals ==========

    async def _swap(self, ticket: Ticket, outgoing: Optional[int], incoming: int) -> None:
        ticket.assign_to(incoming, self._clock())
        await self._save(ticket)
        await self._move_load(outgoing, incoming)

    async def _move_load(self, outgoing: Optional[int], incoming: int) -> None:
        """Shift one ticket of load. Only called once the ticket itself is persisted."""
        if outgoing is not None:
            await self._tracker.complete_ticket(outgoing)
        await self._tracker.assign_ticket(incoming)

    async def _load(self, ticket_id: int) -> Ticket:
        with storage_boundary(logger, "get_ticket", ticket_id=ticket_id):
            ticket = await self._tickets.get_by_id(ticket_id)
        if ticket is None:
            raise ResourceNotFoundException("Ticket", ticket_id)
        return ticket

    async def _save(self, ticket: Ticket) -> Ticket:
        with storage_boundary(logger, "save_ticket", ticket_id=ticket.id):
            return await self._tickets.save(ticket)

    @staticmethod
    def _ensure_open(ticket: Ticket, action: str) -> None:
        if ticket.is_closed:
            raise ConflictException(
                f"Cannot {action} a closed ticket",
                {"ticket_id": ticket.id}
            )
