"""
Ticket Infrastructure Models
============================

SQLAlchemy ORM models for tickets and their conversation.
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import BigInteger, Boolean, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from appealdesk.config import TicketCategory, TicketPriority, TicketStatus
from appealdesk.infrastructure.database import Base


class TicketModel(Base):
    """
    Database model for Ticket entity.

    Maps to the 'tickets' table.
    """
    __tablename__ = "tickets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    requester_id: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)

    # Routing attributes
    category: Mapped[TicketCategory] = mapped_column(String(50), nullable=False)
    priority: Mapped[TicketPriority] = mapped_column(String(50), nullable=False, default=TicketPriority.NORMAL)
    status: Mapped[TicketStatus] = mapped_column(String(50), nullable=False, default=TicketStatus.NEW)
    assigned_operator_id: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True, index=True)

    # Content
    subject: Mapped[str] = mapped_column(String(200), nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    first_response_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # Closure
    closed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    closed_by: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    closed_reason: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    messages: Mapped[List["TicketMessageModel"]] = relationship(
        back_populates="ticket",
        cascade="all, delete-orphan",
        order_by="TicketMessageModel.id",
        lazy="selectin",
    )

    __table_args__ = (
        # Overdue sweep: status + created_at
        Index("ix_tickets_status_created_at", "status", "created_at"),
    )


class TicketMessageModel(Base):
    """
    Database model for TicketMessage.

    Maps to the 'ticket_messages' table. Rows are only ever appended.
    """
    __tablename__ = "ticket_messages"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    ticket_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False, index=True
    )
    sender_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    is_from_operator: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_system: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_read_by_operator: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    text: Mapped[str] = mapped_column(Text, nullable=False)
    sent_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    ticket: Mapped[TicketModel] = relationship(back_populates="messages")
