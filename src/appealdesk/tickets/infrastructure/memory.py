"""
In-Memory Ticket Repository
===========================

Process-local repository for development and tests. Returns copies so
callers never share mutable state with the store.
"""

import copy
import itertools
from datetime import datetime
from typing import Dict, List, Optional

from appealdesk.config import TicketStatus
from appealdesk.tickets.application import ITicketRepository
from appealdesk.tickets.domain import Ticket


class InMemoryTicketRepository(ITicketRepository):

    def __init__(self):
        self._tickets: Dict[int, Ticket] = {}
        self._ids = itertools.count(1)

    async def get_by_id(self, ticket_id: int) -> Optional[Ticket]:
        ticket = self._tickets.get(ticket_id)
        return copy.deepcopy(ticket) if ticket else None

    async def save(self, ticket: Ticket) -> Ticket:
        if ticket.id is None:
            ticket.id = next(self._ids)
        self._tickets[ticket.id] = copy.deepcopy(ticket)
        return ticket

    async def list_overdue(self, threshold: datetime) -> List[Ticket]:
        overdue = [
            t for t in self._tickets.values()
            if t.created_at < threshold and (
                t.status == TicketStatus.NEW
                or (t.status == TicketStatus.IN_PROGRESS and t.first_response_at is None)
            )
        ]
        return [copy.deepcopy(t) for t in sorted(overdue, key=lambda t: t.created_at)]
