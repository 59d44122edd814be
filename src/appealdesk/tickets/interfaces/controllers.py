"""
Ticket Controllers (API Routes)
===============================

FastAPI routes for the ticket lifecycle.

Controllers are thin - they delegate to TicketLifecycleService. Ticket
creation and message posting are rate limited per user.
"""

from fastapi import APIRouter, Depends, status

from appealdesk.config import RateLimitedAction
from appealdesk.core import NoEligibleOperatorException
from appealdesk.ratelimit.application import RateLimiter
from appealdesk.shared.api.dependencies import enforce_rate_limit, get_lifecycle, get_rate_limiter
from appealdesk.shared.infrastructure.logging import get_logger
from appealdesk.tickets.application import TicketLifecycleService
from appealdesk.tickets.application.dto import (
    AppendMessageRequest,
    AssignTicketRequest,
    CloseTicketRequest,
    CreateTicketRequest,
    MarkReadResponse,
    OperatorAssignmentResponse,
    ReassignTicketRequest,
    TicketMessageResponse,
    TicketResponse,
    UnassignTicketRequest,
    UpdatePriorityRequest,
)

logger = get_logger(__name__)
tickets_router = APIRouter(prefix="/tickets", tags=["Tickets"])


@tickets_router.post(
    "",
    response_model=TicketResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Open a ticket",
)
async def create_ticket(
    request: CreateTicketRequest,
    lifecycle: TicketLifecycleService = Depends(get_lifecycle),
    limiter: RateLimiter = Depends(get_rate_limiter),
):
    """
    Open a ticket and, by default, route it to the best available operator.

    When nobody is available the ticket stays NEW and is picked up by the
    escalation sweep later.
    """
    enforce_rate_limit(limiter, request.requester_id, RateLimitedAction.CREATE_TICKET)

    ticket = await lifecycle.create_ticket(
        request.requester_id,
        request.category,
        request.priority,
        request.subject,
        request.body,
    )

    if request.auto_assign:
        try:
            await lifecycle.auto_assign_ticket(ticket.id)
            ticket = await lifecycle.get_ticket(ticket.id)
        except NoEligibleOperatorException:
            logger.info("Ticket left unassigned, no operator available", extra={"ticket_id": ticket.id})

    return TicketResponse.from_entity(ticket)


@tickets_router.get("/{ticket_id}", response_model=TicketResponse, summary="Get a ticket")
async def get_ticket(
    ticket_id: int,
    lifecycle: TicketLifecycleService = Depends(get_lifecycle),
):
    return TicketResponse.from_entity(await lifecycle.get_ticket(ticket_id))


@tickets_router.post("/{ticket_id}/assign", response_model=TicketResponse, summary="Assign to an operator")
async def assign_ticket(
    ticket_id: int,
    request: AssignTicketRequest,
    lifecycle: TicketLifecycleService = Depends(get_lifecycle),
):
    ticket = await lifecycle.assign_ticket(
        ticket_id, request.operator_id, request.acting_user_id, request.note
    )
    return TicketResponse.from_entity(ticket)


@tickets_router.post(
    "/{ticket_id}/auto-assign",
    response_model=OperatorAssignmentResponse,
    summary="Assign to the best available operator",
)
async def auto_assign_ticket(
    ticket_id: int,
    lifecycle: TicketLifecycleService = Depends(get_lifecycle),
):
    operator_id = await lifecycle.auto_assign_ticket(ticket_id)
    return OperatorAssignmentResponse(ticket_id=ticket_id, operator_id=operator_id)


@tickets_router.post("/{ticket_id}/unassign", response_model=TicketResponse, summary="Release the operator")
async def unassign_ticket(
    ticket_id: int,
    request: UnassignTicketRequest,
    lifecycle: TicketLifecycleService = Depends(get_lifecycle),
):
    return TicketResponse.from_entity(
        await lifecycle.unassign_ticket(ticket_id, request.acting_user_id)
    )


@tickets_router.post(
    "/{ticket_id}/reassign",
    response_model=OperatorAssignmentResponse,
    summary="Move to the best available operator",
)
async def reassign_ticket(
    ticket_id: int,
    request: ReassignTicketRequest,
    lifecycle: TicketLifecycleService = Depends(get_lifecycle),
):
    operator_id = await lifecycle.reassign_ticket(ticket_id, request.reason)
    return OperatorAssignmentResponse(ticket_id=ticket_id, operator_id=operator_id)


@tickets_router.post(
    "/{ticket_id}/messages",
    response_model=TicketMessageResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Post a message",
)
async def append_message(
    ticket_id: int,
    request: AppendMessageRequest,
    lifecycle: TicketLifecycleService = Depends(get_lifecycle),
    limiter: RateLimiter = Depends(get_rate_limiter),
):
    enforce_rate_limit(limiter, request.sender_id, RateLimitedAction.SEND_MESSAGE)

    message = await lifecycle.append_message(
        ticket_id, request.sender_id, request.is_from_operator, request.text
    )
    return TicketMessageResponse.from_entity(message)


@tickets_router.post("/{ticket_id}/read", response_model=MarkReadResponse, summary="Mark messages read")
async def mark_read(
    ticket_id: int,
    lifecycle: TicketLifecycleService = Depends(get_lifecycle),
):
    changed = await lifecycle.mark_read_by_operator(ticket_id)
    return MarkReadResponse(ticket_id=ticket_id, marked_read=changed)


@tickets_router.put("/{ticket_id}/priority", response_model=TicketResponse, summary="Change priority")
async def update_priority(
    ticket_id: int,
    request: UpdatePriorityRequest,
    lifecycle: TicketLifecycleService = Depends(get_lifecycle),
):
    return TicketResponse.from_entity(
        await lifecycle.update_priority(ticket_id, request.priority)
    )


@tickets_router.post("/{ticket_id}/close", response_model=TicketResponse, summary="Close a ticket")
async def close_ticket(
    ticket_id: int,
    request: CloseTicketRequest,
    lifecycle: TicketLifecycleService = Depends(get_lifecycle),
):
    ticket = await lifecycle.close_ticket(
        ticket_id, request.closed_by, request.is_operator, request.reason
    )
    return TicketResponse.from_entity(ticket)
