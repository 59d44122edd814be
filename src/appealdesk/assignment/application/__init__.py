"""
Assignment Application Layer
============================

Contains:
- Services: WorkloadTracker (single writer for operator counters),
  AssignmentEngine (scores and picks operators)
- Repository interface for operator workloads

This layer depends on the domain layer and repository interfaces,
but not on concrete infrastructure implementations.
"""

from appealdesk.assignment.application.services import (
    AssignmentEngine,
    IOperatorWorkloadRepository,
    WorkloadStats,
    WorkloadTracker,
)

__all__ = [
    # Services
    "AssignmentEngine",
    "WorkloadTracker",
    "WorkloadStats",
    # Repository Interfaces
    "IOperatorWorkloadRepository",
]
