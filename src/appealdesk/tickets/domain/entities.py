"""
Ticket Domain Entities
======================

Pure Python domain entities for the ticket lifecycle.

Following Domain-Driven Design principles, these entities contain
business logic and are free of infrastructure concerns. State-changing
methods enforce the status invariants:

- NEW          -> no assigned operator
- IN_PROGRESS  -> assigned operator set
- CLOSED       -> closed_at set, terminal
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from appealdesk.config import (
    TicketCategory,
    TicketPriority,
    TicketStatus,
    SUBJECT_MIN_LENGTH,
    SUBJECT_MAX_LENGTH,
    BODY_MIN_LENGTH,
    BODY_MAX_LENGTH,
    MESSAGE_MAX_LENGTH,
)
from appealdesk.core import ConflictException, ValidationException


@dataclass
class TicketMessage:
    """One entry in a ticket's conversation. Append-only."""

    sender_id: int
    is_from_operator: bool
    text: str
    sent_at: datetime
    is_read_by_operator: bool = False
    is_system: bool = False
    id: Optional[int] = None

    @classmethod
    def create(
        cls,
        sender_id: int,
        is_from_operator: bool,
        text: str,
        sent_at: datetime,
    ) -> "TicketMessage":
        if not text or not text.strip():
            raise ValidationException("Message text cannot be empty")
        if len(text) > MESSAGE_MAX_LENGTH:
            raise ValidationException(
                f"Message is too long (maximum {MESSAGE_MAX_LENGTH} characters)",
                {"length": len(text)}
            )
        return cls(
            sender_id=sender_id,
            is_from_operator=is_from_operator,
            text=text,
            sent_at=sent_at,
            # Operators do not need to read their own replies.
            is_read_by_operator=is_from_operator,
        )


@dataclass
class Ticket:
    """
    Ticket entity representing a support request.

    ``id`` is None until the repository persists the ticket.
    """

    requester_id: int
    category: TicketCategory
    priority: TicketPriority
    subject: str
    body: str
    created_at: datetime
    updated_at: datetime
    status: TicketStatus = TicketStatus.NEW
    assigned_operator_id: Optional[int] = None
    first_response_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    closed_by: Optional[int] = None
    closed_reason: Optional[str] = None
    messages: List[TicketMessage] = field(default_factory=list)
    id: Optional[int] = None

    def __post_init__(self):
        self.category = TicketCategory(self.category)
        self.priority = TicketPriority(self.priority)
        self.status = TicketStatus(self.status)

    @classmethod
    def create(
        cls,
        requester_id: int,
        category: TicketCategory,
        priority: TicketPriority,
        subject: str,
        body: str,
        now: datetime,
    ) -> "Ticket":
        """Validate text bounds and open a NEW ticket carrying the body as first message."""
        subject = (subject or "").strip()
        body = (body or "").strip()

        if not SUBJECT_MIN_LENGTH <= len(subject) <= SUBJECT_MAX_LENGTH:
            raise ValidationException(
                f"Subject must be between {SUBJECT_MIN_LENGTH} and {SUBJECT_MAX_LENGTH} characters",
                {"field": "subject", "length": len(subject)}
            )
        if not BODY_MIN_LENGTH <= len(body) <= BODY_MAX_LENGTH:
            raise ValidationException(
                f"Body must be between {BODY_MIN_LENGTH} and {BODY_MAX_LENGTH} characters",
                {"field": "body", "length": len(body)}
            )

        ticket = cls(
            requester_id=requester_id,
            category=category,
            priority=priority,
            subject=subject,
            body=body,
            created_at=now,
            updated_at=now,
        )
        ticket.messages.append(TicketMessage.create(requester_id, False, body, now))
        return ticket

    @property
    def is_closed(self) -> bool:
        return self.status == TicketStatus.CLOSED

    @property
    def is_assigned(self) -> bool:
        return self.assigned_operator_id is not None

    @property
    def unread_count(self) -> int:
        return sum(1 for m in self.messages if not m.is_read_by_operator)

    def _ensure_open(self, action: str) -> None:
        if self.is_closed:
            raise ConflictException(
                f"Cannot {action} a closed ticket",
                {"ticket_id": self.id, "status": self.status.value}
            )

    def assign_to(self, operator_id: int, now: datetime) -> Optional[int]:
        """
        Hand the ticket to an operator.

        Returns:
            The previously assigned operator id, if any
        """
        self._ensure_open("assign")
        previous = self.assigned_operator_id
        self.assigned_operator_id = operator_id
        self.status = TicketStatus.IN_PROGRESS
        self.updated_at = now
        return previous

    def unassign(self, now: datetime) -> Optional[int]:
        """Clear the assignment and fall back to NEW. Returns the released operator id."""
        self._ensure_open("unassign")
        previous = self.assigned_operator_id
        self.assigned_operator_id = None
        self.status = TicketStatus.NEW
        self.updated_at = now
        return previous

    def add_message(self, message: TicketMessage) -> None:
        """
        Append a message.

        Any message keeps an assigned ticket IN_PROGRESS; the first operator
        message records the first response time.
        """
        self._ensure_open("add a message to")
        self.messages.append(message)
        self.updated_at = message.sent_at

        if self.is_assigned:
            self.status = TicketStatus.IN_PROGRESS
        if message.is_from_operator and self.first_response_at is None:
            self.first_response_at = message.sent_at

    def update_priority(self, priority: TicketPriority, now: datetime) -> None:
        self._ensure_open("reprioritize")
        self.priority = TicketPriority(priority)
        self.updated_at = now

    def mark_read_by_operator(self, now: datetime) -> int:
        """Mark requester messages read. Returns how many changed."""
        changed = 0
        for message in self.messages:
            if not message.is_read_by_operator:
                message.is_read_by_operator = True
                changed += 1
        if changed:
            self.updated_at = now
        return changed

    def close(self, closed_by: int, reason: str, now: datetime) -> None:
        """Terminal transition. Appends a system message recording the closure."""
        if self.is_closed:
            raise ConflictException(
                "Ticket is already closed",
                {"ticket_id": self.id, "closed_at": self.closed_at.isoformat() if self.closed_at else None}
            )
        if not reason or not reason.strip():
            raise ValidationException("Closing reason is required")

        self.messages.append(TicketMessage(
            sender_id=closed_by,
            is_from_operator=False,
            text=f"Ticket closed: {reason.strip()}",
            sent_at=now,
            is_read_by_operator=True,
            is_system=True,
        ))
        self.status = TicketStatus.CLOSED
        self.closed_by = closed_by
        self.closed_reason = reason.strip()
        self.closed_at = now
        self.updated_at = now
