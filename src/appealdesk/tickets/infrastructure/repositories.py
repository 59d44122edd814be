"""
Ticket Infrastructure Repositories
==================================

SQLAlchemy implementation of the ticket repository.

Each call runs in its own session so the repository can be shared by
long-lived services.
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import and_, or_, select

from appealdesk.config import TicketStatus
from appealdesk.core import RepositoryException
from appealdesk.infrastructure.database import SessionFactory, get_session_context
from appealdesk.tickets.application import ITicketRepository
from appealdesk.tickets.domain import Ticket, TicketMessage
from appealdesk.tickets.infrastructure.models import TicketMessageModel, TicketModel


class SQLAlchemyTicketRepository(ITicketRepository):
    """Persists Ticket entities and their messages with async SQLAlchemy."""

    def __init__(self, session_factory: SessionFactory = get_session_context):
        self._session_factory = session_factory

    async def get_by_id(self, ticket_id: int) -> Optional[Ticket]:
        async with self._session_factory() as session:
            model = await session.get(TicketModel, ticket_id)
            return self._to_entity(model) if model else None

    async def save(self, ticket: Ticket) -> Ticket:
        async with self._session_factory() as session:
            if ticket.id is None:
                model = TicketModel()
                session.add(model)
            else:
                model = await session.get(TicketModel, ticket.id)
                if model is None:
                    raise RepositoryException(f"Ticket {ticket.id} not found")

            model.requester_id = ticket.requester_id
            model.category = ticket.category.value
            model.priority = ticket.priority.value
            model.status = ticket.status.value
            model.assigned_operator_id = ticket.assigned_operator_id
            model.subject = ticket.subject
            model.body = ticket.body
            model.created_at = ticket.created_at
            model.updated_at = ticket.updated_at
            model.first_response_at = ticket.first_response_at
            model.closed_at = ticket.closed_at
            model.closed_by = ticket.closed_by
            model.closed_reason = ticket.closed_reason

            # Messages are append-only; only the read flag changes on existing rows
            stored = {m.id: m for m in model.messages}
            new_messages = []
            for message in ticket.messages:
                row = stored.get(message.id) if message.id is not None else None
                if row is not None:
                    row.is_read_by_operator = message.is_read_by_operator
                    continue
                row = TicketMessageModel(
                    sender_id=message.sender_id,
                    is_from_operator=message.is_from_operator,
                    is_system=message.is_system,
                    is_read_by_operator=message.is_read_by_operator,
                    text=message.text,
                    sent_at=message.sent_at,
                )
                model.messages.append(row)
                new_messages.append((message, row))

            await session.flush()

            ticket.id = model.id
            for message, row in new_messages:
                message.id = row.id
        return ticket

    async def list_overdue(self, threshold: datetime) -> List[Ticket]:
        stmt = (
            select(TicketModel)
            .where(
                and_(
                    TicketModel.created_at < threshold,
                    or_(
                        TicketModel.status == TicketStatus.NEW.value,
                        and_(
                            TicketModel.status == TicketStatus.IN_PROGRESS.value,
                            TicketModel.first_response_at.is_(None),
                        ),
                    ),
                )
            )
            .order_by(TicketModel.created_at)
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return [self._to_entity(m) for m in result.scalars().all()]

    @staticmethod
    def _to_entity(model: TicketModel) -> Ticket:
        return Ticket(
            id=model.id,
            requester_id=model.requester_id,
            category=model.category,
            priority=model.priority,
            status=model.status,
            subject=model.subject,
            body=model.body,
            assigned_operator_id=model.assigned_operator_id,
            created_at=model.created_at,
            updated_at=model.updated_at,
            first_response_at=model.first_response_at,
            closed_at=model.closed_at,
            closed_by=model.closed_by,
            closed_reason=model.closed_reason,
            messages=[
                TicketMessage(
                    id=m.id,
                    sender_id=m.sender_id,
                    is_from_operator=m.is_from_operator,
                    is_system=m.is_system,
                    is_read_by_operator=m.is_read_by_operator,
                    text=m.text,
                    sent_at=m.sent_at,
                )
                for m in model.messages
            ],
        )
