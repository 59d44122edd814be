"""
Assignment Infrastructure Layer
===============================

Infrastructure implementations for operator workloads:
- Models: SQLAlchemy ORM models
- Repositories: PostgreSQL and in-memory data access
"""

from appealdesk.assignment.infrastructure.memory import InMemoryOperatorWorkloadRepository
from appealdesk.assignment.infrastructure.repositories import SQLAlchemyOperatorWorkloadRepository

__all__ = [
    "SQLAlchemyOperatorWorkloadRepository",
    "InMemoryOperatorWorkloadRepository",
]
