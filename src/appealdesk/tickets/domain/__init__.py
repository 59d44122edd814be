"""
Tickets Domain Layer
====================

Contains:
- Entities: Ticket, TicketMessage

This layer has no dependencies on infrastructure - pure Python business logic.
"""

from appealdesk.tickets.domain.entities import Ticket, TicketMessage

__all__ = [
    "Ticket",
    "TicketMessage",
]
