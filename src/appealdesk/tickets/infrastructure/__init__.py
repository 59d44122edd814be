"""
Tickets Infrastructure Layer
============================

Infrastructure implementations for tickets:
- Models: SQLAlchemy ORM models
- Repositories: PostgreSQL and in-memory data access
"""

from appealdesk.tickets.infrastructure.memory import InMemoryTicketRepository
from appealdesk.tickets.infrastructure.repositories import SQLAlchemyTicketRepository

__all__ = [
    "SQLAlchemyTicketRepository",
    "InMemoryTicketRepository",
]
