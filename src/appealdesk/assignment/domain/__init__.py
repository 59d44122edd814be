"""
Assignment Domain Layer
=======================

Domain layer for operator assignment.

Contains:
- Entities: OperatorWorkload, CategoryExpertise
- Value Objects: ScoringWeights, OperatorScore
- Domain Services: AssignmentScorer (stateless scoring)

This layer has no dependencies on infrastructure - pure Python business logic.
"""

from appealdesk.assignment.domain.entities import (
    OperatorWorkload,
    CategoryExpertise,
    MIN_EXPERIENCE_LEVEL,
    MAX_EXPERIENCE_LEVEL,
)
from appealdesk.assignment.domain.value_objects import (
    ScoringWeights,
    OperatorScore,
    AssignmentScorer,
)

__all__ = [
    # Entities
    "OperatorWorkload",
    "CategoryExpertise",
    "MIN_EXPERIENCE_LEVEL",
    "MAX_EXPERIENCE_LEVEL",
    # Value Objects & Services
    "ScoringWeights",
    "OperatorScore",
    "AssignmentScorer",
]
