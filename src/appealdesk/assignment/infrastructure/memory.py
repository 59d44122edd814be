"""
In-Memory Workload Repository
=============================

Process-local repository for development and tests. Returns copies so
callers never share mutable state with the store.
"""

import copy
from typing import Dict, List, Optional

from appealdesk.assignment.application import IOperatorWorkloadRepository
from appealdesk.assignment.domain import OperatorWorkload
from appealdesk.config import TicketCategory


class InMemoryOperatorWorkloadRepository(IOperatorWorkloadRepository):

    def __init__(self):
        self._workloads: Dict[int, OperatorWorkload] = {}

    async def get_by_operator(self, operator_id: int) -> Optional[OperatorWorkload]:
        workload = self._workloads.get(operator_id)
        return copy.deepcopy(workload) if workload else None

    async def save(self, workload: OperatorWorkload) -> OperatorWorkload:
        self._workloads[workload.operator_id] = copy.deepcopy(workload)
        return workload

    async def list_available(self) -> List[OperatorWorkload]:
        return [copy.deepcopy(w) for w in self._workloads.values() if w.is_available]

    async def list_by_category(self, category: TicketCategory) -> List[OperatorWorkload]:
        category = TicketCategory(category)
        return [copy.deepcopy(w) for w in self._workloads.values() if category in w.expertise]

    async def list_all(self) -> List[OperatorWorkload]:
        return [copy.deepcopy(w) for w in self._workloads.values()]
