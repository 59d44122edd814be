"""
Tickets Application Layer
=========================

Contains:
- Services: TicketLifecycleService
- Repository and authorization interfaces
- DTOs for the API layer
"""

from appealdesk.tickets.application.services import (
    AllowAllAuthorizationService,
    IAuthorizationService,
    ITicketRepository,
    TicketLifecycleService,
)

__all__ = [
    # Services
    "TicketLifecycleService",
    # Interfaces
    "ITicketRepository",
    "IAuthorizationService",
    "AllowAllAuthorizationService",
]
