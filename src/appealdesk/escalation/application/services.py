"""
Escalation Application Services
===============================

Periodic sweep over overdue tickets.
"""

import asyncio
from datetime import datetime
from typing import Optional

from appealdesk.core import ApplicationException, storage_boundary
from appealdesk.escalation.domain import EscalationPolicy
from appealdesk.shared.infrastructure.clock import Clock, utc_now
from appealdesk.shared.infrastructure.logging import get_logger
from appealdesk.tickets.application import ITicketRepository, TicketLifecycleService

logger = get_logger(__name__)


class EscalationSweeper:
    """
    Reassigns tickets that have waited too long for an operator.

    A ticket is overdue when it was created more than
    ``policy.overdue_after`` ago and is either NEW or IN_PROGRESS without a
    first response. One failing ticket never stops the rest of the sweep.
    Sweeps do not overlap: a call made while another sweep is running
    returns 0 immediately.
    """

    def __init__(
        self,
        tickets: ITicketRepository,
        lifecycle: TicketLifecycleService,
        policy: Optional[EscalationPolicy] = None,
        clock: Clock = utc_now,
    ):
        self._tickets = tickets
        self._lifecycle = lifecycle
        self._policy = policy or EscalationPolicy()
        self._clock = clock
        self._running = asyncio.Lock()

    @property
    def policy(self) -> EscalationPolicy:
        return self._policy

    @property
    def is_running(self) -> bool:
        return self._running.locked()

    def update_policy(self, policy: EscalationPolicy) -> None:
        self._policy = policy
        logger.info("Escalation policy updated", extra=policy.model_dump())

    async def run_once(self, now: Optional[datetime] = None) -> int:
        """
        Run one sweep.

        Args:
            now: Evaluation time, defaults to the clock

        Returns:
            Number of tickets moved to a different operator. Tickets whose
            current operator is still the best pick are not counted.
        """
        if self._running.locked():
            logger.info("Escalation sweep already in progress, skipping")
            return 0

        async with self._running:
            now = now or self._clock()
            policy = self._policy
            threshold = now - policy.overdue_after

            with storage_boundary(logger, "list_overdue_tickets", threshold=threshold.isoformat()):
                overdue = await self._tickets.list_overdue(threshold)

            escalated = 0
            unchanged = 0
            failed = 0
            for ticket in overdue:
                try:
                    operator_id = await self._lifecycle.reassign_ticket(ticket.id, policy.reason)
                except ApplicationException as e:
                    failed += 1
                    logger.warning(
                        "Failed to escalate ticket",
                        extra={
                            "ticket_id": ticket.id,
                            "error": e.message,
                            "error_type": type(e).__name__,
                        }
                    )
                    continue

                if operator_id == ticket.assigned_operator_id:
                    unchanged += 1
                else:
                    escalated += 1

            logger.info(
                "Escalation sweep finished",
                extra={
                    "candidates": len(overdue),
                    "escalated": escalated,
                    "unchanged": unchanged,
                    "failed": failed,
                }
            )
            return escalated
