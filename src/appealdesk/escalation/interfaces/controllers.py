"""
Escalation Controllers (API Routes)
===================================

Manual trigger for the overdue sweep.
"""

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from appealdesk.escalation.application import EscalationSweeper
from appealdesk.shared.api.dependencies import get_sweeper
from appealdesk.shared.infrastructure.logging import get_logger, log_latency

logger = get_logger(__name__)
escalation_router = APIRouter(prefix="/escalations", tags=["Escalation"])


class SweepResponse(BaseModel):
    escalated: int
    overdue_after_hours: float


@escalation_router.post("/run", response_model=SweepResponse, summary="Run the overdue sweep now")
async def run_sweep(sweeper: EscalationSweeper = Depends(get_sweeper)):
    """Returns 0 escalations when a sweep is already running."""
    with log_latency(logger, "manual_escalation_sweep"):
        escalated = await sweeper.run_once()
    return SweepResponse(
        escalated=escalated,
        overdue_after_hours=sweeper.policy.overdue_after_hours,
    )
