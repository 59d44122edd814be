"""
Assignment Value Objects
========================

Scoring weights, the score value type, and the pure scoring function.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from pydantic import BaseModel, Field

from appealdesk.assignment.domain.entities import OperatorWorkload
from appealdesk.config import TicketCategory, TicketPriority


class ScoringWeights(BaseModel):
    """
    Tunable constants for operator scoring.

    Loaded from the ``scoring`` section of the policy YAML.
    """

    base_score: int = Field(default=100, description="Starting score for every candidate")
    expertise_weight: int = Field(default=10, ge=0, description="Points per experience level in the ticket category")
    load_penalty: int = Field(default=20, ge=0, description="Points removed per active ticket")
    recency_bonus: int = Field(default=30, ge=0, description="Bonus when the operator was recently active")
    recency_window_hours: float = Field(default=4.0, gt=0, description="How recent counts as recently active")
    priority_affinity_bonus: int = Field(default=50, ge=0, description="Bonus for experts on high priority tickets")
    priority_affinity_min_level: int = Field(default=4, ge=1, le=5, description="Experience level that earns the affinity bonus")

    model_config = {"frozen": True}

    @property
    def recency_window(self) -> timedelta:
        return timedelta(hours=self.recency_window_hours)


@dataclass(frozen=True)
class OperatorScore:
    """Breakdown of one candidate's score for a ticket."""

    operator_id: int
    score: int
    tie_break: int
    expertise_points: int = 0
    load_penalty: int = 0
    recency_bonus: int = 0
    affinity_bonus: int = 0

    @property
    def sort_key(self) -> tuple:
        """Score descending, then tie-break ascending, then operator id ascending."""
        return (-self.score, self.tie_break, self.operator_id)


class AssignmentScorer:
    """
    Pure functions for operator scoring.

    Stateless utility class - all scoring logic in one place.
    """

    @staticmethod
    def expertise_points(experience_level: int, weights: ScoringWeights) -> int:
        """Monotonic in experience level."""
        return experience_level * weights.expertise_weight

    @staticmethod
    def score(
        workload: OperatorWorkload,
        category: TicketCategory,
        priority: TicketPriority,
        now: datetime,
        weights: Optional[ScoringWeights] = None,
    ) -> OperatorScore:
        """
        Score a candidate operator for a ticket.

        Args:
            workload: Candidate's workload snapshot
            category: Ticket category
            priority: Ticket priority
            now: Evaluation time
            weights: Scoring constants (defaults when omitted)

        Returns:
            OperatorScore with the final score floored at 0
        """
        weights = weights or ScoringWeights()

        expertise = workload.expertise_for(category)
        level = expertise.experience_level if expertise else 0

        expertise_points = AssignmentScorer.expertise_points(level, weights) if expertise else 0
        load_penalty = workload.active_ticket_count * weights.load_penalty

        recency_bonus = 0
        if now - workload.last_activity_at < weights.recency_window:
            recency_bonus = weights.recency_bonus

        # Affinity applies to HIGH only, not URGENT.
        affinity_bonus = 0
        if priority == TicketPriority.HIGH and level >= weights.priority_affinity_min_level:
            affinity_bonus = weights.priority_affinity_bonus

        total = weights.base_score + expertise_points - load_penalty + recency_bonus + affinity_bonus

        return OperatorScore(
            operator_id=workload.operator_id,
            score=max(0, total),
            tie_break=workload.assignment_priority(now),
            expertise_points=expertise_points,
            load_penalty=load_penalty,
            recency_bonus=recency_bonus,
            affinity_bonus=affinity_bonus,
        )
