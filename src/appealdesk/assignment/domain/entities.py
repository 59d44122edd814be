"""
Assignment Domain Entities
==========================

Operator workload records used for automatic ticket assignment.

Counters on ``OperatorWorkload`` change only through ``assign_ticket``,
``complete_ticket``, ``set_availability`` and ``touch``; the application
layer calls them while holding the operator's lock.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, Optional

from appealdesk.config import TicketCategory
from appealdesk.core import ValidationException

MIN_EXPERIENCE_LEVEL = 1
MAX_EXPERIENCE_LEVEL = 5


@dataclass
class CategoryExpertise:
    """Operator experience in one ticket category, level 1 (novice) to 5."""

    category: TicketCategory
    experience_level: int = MIN_EXPERIENCE_LEVEL

    def __post_init__(self):
        self.category = TicketCategory(self.category)
        if not MIN_EXPERIENCE_LEVEL <= self.experience_level <= MAX_EXPERIENCE_LEVEL:
            raise ValidationException(
                f"experience_level must be between {MIN_EXPERIENCE_LEVEL} and {MAX_EXPERIENCE_LEVEL}",
                {"experience_level": self.experience_level}
            )


@dataclass
class OperatorWorkload:
    """
    Workload entity, one per operator.

    Created lazily the first time an operator is assigned a ticket or changes
    availability.
    """

    operator_id: int
    last_activity_at: datetime
    active_ticket_count: int = 0
    total_ticket_count: int = 0
    is_available: bool = True
    last_assigned_at: Optional[datetime] = None
    expertise: Dict[TicketCategory, CategoryExpertise] = field(default_factory=dict)

    def __post_init__(self):
        if self.active_ticket_count < 0 or self.total_ticket_count < 0:
            raise ValidationException("ticket counters cannot be negative")

    @classmethod
    def create(cls, operator_id: int, now: datetime) -> "OperatorWorkload":
        return cls(operator_id=operator_id, last_activity_at=now)

    def expertise_for(self, category: TicketCategory) -> Optional[CategoryExpertise]:
        return self.expertise.get(TicketCategory(category))

    def set_expertise(self, category: TicketCategory, experience_level: int) -> CategoryExpertise:
        record = CategoryExpertise(category=category, experience_level=experience_level)
        self.expertise[record.category] = record
        return record

    def assign_ticket(self, now: datetime) -> None:
        self.active_ticket_count += 1
        self.total_ticket_count += 1
        self.last_assigned_at = now
        self.last_activity_at = now

    def complete_ticket(self, now: datetime) -> None:
        if self.active_ticket_count > 0:
            self.active_ticket_count -= 1

    def set_availability(self, is_available: bool, now: datetime) -> None:
        self.is_available = is_available
        self.last_activity_at = now

    def touch(self, now: datetime) -> None:
        self.last_activity_at = now

    def assignment_priority(self, now: datetime) -> int:
        """
        Secondary ordering key for assignment (lower value = assign sooner).

        Load dominates; operators active in the last 24h get a small boost,
        operators idle for more than 72h are pushed back.
        """
        if not self.is_available:
            return 2 ** 31 - 1

        priority = self.active_ticket_count * 100

        idle = now - self.last_activity_at
        if idle < timedelta(hours=24):
            priority -= 50
        if idle > timedelta(hours=72):
            priority += 200

        return max(0, priority)
