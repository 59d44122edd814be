"""
Ticket Application DTOs
=======================

Data Transfer Objects for the ticket API layer.

Text length bounds are enforced by the domain entity, so requests only
check shape here.
"""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from appealdesk.tickets.domain import Ticket, TicketMessage


# ========== Type Aliases for Literals ==========
CategoryStr = Literal[
    "scholarship", "dormitory", "events", "proposal",
    "complaint", "billing", "technical", "other",
]
PriorityStr = Literal["low", "normal", "high", "urgent"]
TicketStatusStr = Literal["new", "in_progress", "closed"]


# ========== Request DTOs ==========

class CreateTicketRequest(BaseModel):
    """Request model for opening a ticket."""
    requester_id: int = Field(..., description="User submitting the ticket")
    category: CategoryStr = Field(default="other", description="Ticket category")
    priority: PriorityStr = Field(default="normal", description="Ticket priority")
    subject: str = Field(..., description="Short summary")
    body: str = Field(..., description="Full description, stored as the first message")
    auto_assign: bool = Field(default=True, description="Route to the best operator right away")


class AssignTicketRequest(BaseModel):
    """Request model for manual assignment."""
    operator_id: int
    acting_user_id: int
    note: Optional[str] = Field(None, max_length=500)


class UnassignTicketRequest(BaseModel):
    acting_user_id: int


class ReassignTicketRequest(BaseModel):
    reason: str = Field(default="manual", min_length=1, max_length=200)


class AppendMessageRequest(BaseModel):
    """Request model for a conversation message."""
    sender_id: int
    is_from_operator: bool = False
    text: str


class CloseTicketRequest(BaseModel):
    closed_by: int
    is_operator: bool = True
    reason: str


class UpdatePriorityRequest(BaseModel):
    priority: PriorityStr


# ========== Response DTOs ==========

class TicketMessageResponse(BaseModel):
    """Response model for one conversation message."""
    sender_id: int
    is_from_operator: bool
    is_system: bool
    is_read_by_operator: bool
    text: str
    sent_at: datetime

    @classmethod
    def from_entity(cls, message: TicketMessage) -> "TicketMessageResponse":
        return cls(
            sender_id=message.sender_id,
            is_from_operator=message.is_from_operator,
            is_system=message.is_system,
            is_read_by_operator=message.is_read_by_operator,
            text=message.text,
            sent_at=message.sent_at,
        )


class TicketResponse(BaseModel):
    """Response model for a ticket with its conversation."""
    id: int = Field(..., description="Ticket ID")
    requester_id: int
    category: CategoryStr
    priority: PriorityStr
    status: TicketStatusStr
    subject: str
    assigned_operator_id: Optional[int] = None
    created_at: datetime
    updated_at: datetime
    first_response_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    closed_reason: Optional[str] = None
    unread_count: int = Field(..., description="Messages not yet read by an operator")
    messages: List[TicketMessageResponse] = Field(default_factory=list)

    @classmethod
    def from_entity(cls, ticket: Ticket) -> "TicketResponse":
        return cls(
            id=ticket.id,
            requester_id=ticket.requester_id,
            category=ticket.category.value,
            priority=ticket.priority.value,
            status=ticket.status.value,
            subject=ticket.subject,
            assigned_operator_id=ticket.assigned_operator_id,
            created_at=ticket.created_at,
            updated_at=ticket.updated_at,
            first_response_at=ticket.first_response_at,
            closed_at=ticket.closed_at,
            closed_reason=ticket.closed_reason,
            unread_count=ticket.unread_count,
            messages=[TicketMessageResponse.from_entity(m) for m in ticket.messages],
        )


class OperatorAssignmentResponse(BaseModel):
    """Response model for automatic assignment and reassignment."""
    ticket_id: int
    operator_id: int


class MarkReadResponse(BaseModel):
    ticket_id: int
    marked_read: int = Field(..., description="Number of messages marked read")
