"""
Assignment Application Services
===============================

Application services for operator workload tracking and assignment.

Following SOLID principles:
- Single Responsibility: WorkloadTracker mutates counters, AssignmentEngine ranks
- Dependency Inversion: both depend on the repository abstraction
"""

import dataclasses
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional

from appealdesk.assignment.domain import (
    AssignmentScorer,
    OperatorScore,
    OperatorWorkload,
    ScoringWeights,
)
from appealdesk.config import TicketCategory, TicketPriority
from appealdesk.core import NoEligibleOperatorException, storage_boundary
from appealdesk.shared.infrastructure.clock import Clock, utc_now
from appealdesk.shared.infrastructure.locking import KeyedLock
from appealdesk.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


# ========== Repository Interfaces (Dependency Inversion) ==========

class IOperatorWorkloadRepository(ABC):
    """Interface for operator workload data access."""

    @abstractmethod
    async def get_by_operator(self, operator_id: int) -> Optional[OperatorWorkload]:
        """Get workload record for an operator."""

    @abstractmethod
    async def save(self, workload: OperatorWorkload) -> OperatorWorkload:
        """Insert or update a workload record, including expertise."""

    @abstractmethod
    async def list_available(self) -> List[OperatorWorkload]:
        """Workloads with is_available set."""

    @abstractmethod
    async def list_by_category(self, category: TicketCategory) -> List[OperatorWorkload]:
        """Workloads having an expertise record for the category."""

    @abstractmethod
    async def list_all(self) -> List[OperatorWorkload]:
        """Every workload record."""


# ========== Read Models ==========

@dataclass
class WorkloadStats:
    """Aggregate workload figures across all operators."""

    total_operators: int
    available_operators: int
    total_active_tickets: int
    average_active_tickets: float
    most_loaded: Optional[OperatorWorkload] = None
    least_loaded_available: Optional[OperatorWorkload] = None


# ========== Application Services ==========

class WorkloadTracker:
    """
    Single writer for operator workload counters.

    Every read-modify-write on a workload record runs under that operator's
    lock, so concurrent assignments to the same operator serialize while
    different operators proceed independently.
    """

    def __init__(
        self,
        repository: IOperatorWorkloadRepository,
        locks: Optional[KeyedLock] = None,
        clock: Clock = utc_now,
    ):
        self._repo = repository
        self._locks = locks or KeyedLock()
        self._clock = clock

    async def get_by_operator(self, operator_id: int) -> Optional[OperatorWorkload]:
        with storage_boundary(logger, "get_operator_workload", operator_id=operator_id):
            return await self._repo.get_by_operator(operator_id)

    async def get_available_ordered_by_load(self) -> List[OperatorWorkload]:
        """Available operators, least loaded first."""
        with storage_boundary(logger, "list_available_operators"):
            workloads = await self._repo.list_available()
        return sorted(
            (w for w in workloads if w.is_available),
            key=lambda w: (w.active_ticket_count, w.operator_id)
        )

    async def get_by_category_expertise(self, category: TicketCategory) -> List[OperatorWorkload]:
        """Operators with expertise in the category, most experienced first."""
        category = TicketCategory(category)
        with storage_boundary(logger, "list_operators_by_category", category=category.value):
            workloads = await self._repo.list_by_category(category)
        return sorted(
            workloads,
            key=lambda w: (-w.expertise_for(category).experience_level, w.active_ticket_count, w.operator_id)
        )

    async def assign_ticket(self, operator_id: int) -> OperatorWorkload:
        """Active count +1, total count +1, activity timestamp refreshed."""
        async with self._locks.hold(operator_id):
            workload = await self._load_or_create(operator_id)
            workload.assign_ticket(self._clock())
            await self._save(workload)

        logger.info(
            "Operator load incremented",
            extra={"operator_id": operator_id, "active_tickets": workload.active_ticket_count}
        )
        return workload

    async def complete_ticket(self, operator_id: int) -> Optional[OperatorWorkload]:
        """Active count -1, floored at 0. No-op for operators without a record."""
        async with self._locks.hold(operator_id):
            workload = await self.get_by_operator(operator_id)
            if workload is None:
                logger.warning(
                    "Completing ticket for operator without workload record",
                    extra={"operator_id": operator_id}
                )
                return None
            workload.complete_ticket(self._clock())
            await self._save(workload)

        logger.info(
            "Operator load decremented",
            extra={"operator_id": operator_id, "active_tickets": workload.active_ticket_count}
        )
        return workload

    async def set_availability(self, operator_id: int, is_available: bool) -> OperatorWorkload:
        async with self._locks.hold(operator_id):
            workload = await self._load_or_create(operator_id)
            workload.set_availability(is_available, self._clock())
            await self._save(workload)

        logger.info(
            "Operator availability changed",
            extra={"operator_id": operator_id, "is_available": is_available}
        )
        return workload

    async def touch(self, operator_id: int) -> OperatorWorkload:
        """Refresh last activity without touching counters."""
        async with self._locks.hold(operator_id):
            workload = await self._load_or_create(operator_id)
            workload.touch(self._clock())
            await self._save(workload)
        return workload

    async def set_expertise(
        self,
        operator_id: int,
        category: TicketCategory,
        experience_level: int
    ) -> OperatorWorkload:
        async with self._locks.hold(operator_id):
            workload = await self._load_or_create(operator_id)
            workload.set_expertise(category, experience_level)
            await self._save(workload)

        logger.info(
            "Operator expertise updated",
            extra={
                "operator_id": operator_id,
                "category": TicketCategory(category).value,
                "experience_level": experience_level,
            }
        )
        return workload

    async def get_stats(self) -> WorkloadStats:
        with storage_boundary(logger, "list_operator_workloads"):
            workloads = await self._repo.list_all()

        available = [w for w in workloads if w.is_available]
        total_active = sum(w.active_ticket_count for w in workloads)

        return WorkloadStats(
            total_operators=len(workloads),
            available_operators=len(available),
            total_active_tickets=total_active,
            average_active_tickets=(total_active / len(workloads)) if workloads else 0.0,
            most_loaded=max(
                workloads,
                key=lambda w: (w.active_ticket_count, -w.operator_id),
                default=None
            ),
            least_loaded_available=min(
                available,
                key=lambda w: (w.active_ticket_count, w.operator_id),
                default=None
            ),
        )

    async def _load_or_create(self, operator_id: int) -> OperatorWorkload:
        workload = await self.get_by_operator(operator_id)
        if workload is None:
            workload = OperatorWorkload.create(operator_id, self._clock())
            logger.info("Created workload record", extra={"operator_id": operator_id})
        return workload

    async def _save(self, workload: OperatorWorkload) -> None:
        with storage_boundary(logger, "save_operator_workload", operator_id=workload.operator_id):
            await self._repo.save(workload)


class AssignmentEngine:
    """
    Ranks available operators for a ticket.

    Scoring works on an unlocked snapshot; under contention a score may be
    based on slightly stale load figures. The engine never mutates workloads:
    callers commit the pick through ``WorkloadTracker.assign_ticket``.
    """

    def __init__(
        self,
        tracker: WorkloadTracker,
        weights: Optional[ScoringWeights] = None,
        clock: Clock = utc_now,
    ):
        self._tracker = tracker
        self._weights = weights or ScoringWeights()
        self._clock = clock

    @property
    def weights(self) -> ScoringWeights:
        return self._weights

    def update_weights(self, weights: ScoringWeights) -> None:
        self._weights = weights
        logger.info("Scoring weights updated", extra=weights.model_dump())

    async def rank_operators(
        self,
        category: TicketCategory,
        priority: TicketPriority,
        released_operator_id: Optional[int] = None,
    ) -> List[OperatorScore]:
        """
        Score every available operator, best first.

        Args:
            category: Ticket category
            priority: Ticket priority
            released_operator_id: Operator about to give up the ticket being
                placed; scored as if that ticket were already off their load

        Returns:
            Scores sorted by score desc, assignment priority asc, operator id asc
        """
        candidates = await self._tracker.get_available_ordered_by_load()
        return self._rank(candidates, category, priority, released_operator_id)

    async def find_best_operator(
        self,
        category: TicketCategory,
        priority: TicketPriority,
        released_operator_id: Optional[int] = None,
    ) -> OperatorWorkload:
        """
        Pick the best available operator for a ticket.

        Raises:
            NoEligibleOperatorException: when nobody is available
        """
        category = TicketCategory(category)
        priority = TicketPriority(priority)

        candidates = await self._tracker.get_available_ordered_by_load()
        if not candidates:
            logger.warning(
                "No available operators",
                extra={"category": category.value, "priority": priority.value}
            )
            raise NoEligibleOperatorException(category, priority)

        best = self._rank(candidates, category, priority, released_operator_id)[0]
        logger.info(
            "Selected best operator",
            extra={
                "operator_id": best.operator_id,
                "category": category.value,
                "priority": priority.value,
                "score": best.score,
                "candidates": len(candidates),
            }
        )
        return next(w for w in candidates if w.operator_id == best.operator_id)

    async def operators_for_category(self, category: TicketCategory) -> List[OperatorWorkload]:
        """Available operators with expertise in the category."""
        workloads = await self._tracker.get_by_category_expertise(category)
        return [w for w in workloads if w.is_available]

    def _rank(
        self,
        candidates: List[OperatorWorkload],
        category: TicketCategory,
        priority: TicketPriority,
        released_operator_id: Optional[int],
    ) -> List[OperatorScore]:
        category = TicketCategory(category)
        priority = TicketPriority(priority)
        now = self._clock()
        weights = self._weights

        scores = []
        for workload in candidates:
            if workload.operator_id == released_operator_id and workload.active_ticket_count > 0:
                workload = dataclasses.replace(
                    workload, active_ticket_count=workload.active_ticket_count - 1
                )
            scores.append(AssignmentScorer.score(workload, category, priority, now, weights))

        scores.sort(key=lambda s: s.sort_key)
        return scores
