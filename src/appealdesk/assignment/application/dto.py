"""
Assignment Application DTOs
===========================

Data Transfer Objects for the operator API layer.
"""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from appealdesk.assignment.application.services import WorkloadStats
from appealdesk.assignment.domain import OperatorScore, OperatorWorkload
from appealdesk.tickets.application.dto import CategoryStr


# ========== Request DTOs ==========

class AvailabilityRequest(BaseModel):
    is_available: bool


class ExpertiseRequest(BaseModel):
    category: CategoryStr
    experience_level: int = Field(..., ge=1, le=5, description="1 (novice) to 5 (expert)")


# ========== Response DTOs ==========

class OperatorWorkloadResponse(BaseModel):
    """Response model for one operator's workload."""
    operator_id: int
    active_ticket_count: int
    total_ticket_count: int
    is_available: bool
    last_activity_at: datetime
    last_assigned_at: Optional[datetime] = None
    expertise: Dict[str, int] = Field(default_factory=dict, description="Category -> experience level")

    @classmethod
    def from_entity(cls, workload: OperatorWorkload) -> "OperatorWorkloadResponse":
        return cls(
            operator_id=workload.operator_id,
            active_ticket_count=workload.active_ticket_count,
            total_ticket_count=workload.total_ticket_count,
            is_available=workload.is_available,
            last_activity_at=workload.last_activity_at,
            last_assigned_at=workload.last_assigned_at,
            expertise={c.value: e.experience_level for c, e in workload.expertise.items()},
        )


class OperatorScoreResponse(BaseModel):
    """Score breakdown for one candidate."""
    operator_id: int
    score: int
    tie_break: int
    expertise_points: int
    load_penalty: int
    recency_bonus: int
    affinity_bonus: int

    @classmethod
    def from_score(cls, score: OperatorScore) -> "OperatorScoreResponse":
        return cls(
            operator_id=score.operator_id,
            score=score.score,
            tie_break=score.tie_break,
            expertise_points=score.expertise_points,
            load_penalty=score.load_penalty,
            recency_bonus=score.recency_bonus,
            affinity_bonus=score.affinity_bonus,
        )


class RankingResponse(BaseModel):
    category: CategoryStr
    priority: str
    candidates: List[OperatorScoreResponse]


class WorkloadStatsResponse(BaseModel):
    """Aggregate workload across operators."""
    total_operators: int
    available_operators: int
    total_active_tickets: int
    average_active_tickets: float
    most_loaded_operator_id: Optional[int] = None
    least_loaded_available_operator_id: Optional[int] = None

    @classmethod
    def from_stats(cls, stats: WorkloadStats) -> "WorkloadStatsResponse":
        return cls(
            total_operators=stats.total_operators,
            available_operators=stats.available_operators,
            total_active_tickets=stats.total_active_tickets,
            average_active_tickets=round(stats.average_active_tickets, 2),
            most_loaded_operator_id=stats.most_loaded.operator_id if stats.most_loaded else None,
            least_loaded_available_operator_id=(
                stats.least_loaded_available.operator_id if stats.least_loaded_available else None
            ),
        )
