"""
Assignment Infrastructure Repositories
======================================

SQLAlchemy implementation of the operator workload repository.

Each call runs in its own session so the repository can be shared by
long-lived services.
"""

from typing import List, Optional

from sqlalchemy import select

from appealdesk.assignment.application import IOperatorWorkloadRepository
from appealdesk.assignment.domain import CategoryExpertise, OperatorWorkload
from appealdesk.assignment.infrastructure.models import CategoryExpertiseModel, OperatorWorkloadModel
from appealdesk.config import TicketCategory
from appealdesk.infrastructure.database import SessionFactory, get_session_context


class SQLAlchemyOperatorWorkloadRepository(IOperatorWorkloadRepository):
    """Persists OperatorWorkload entities with async SQLAlchemy."""

    def __init__(self, session_factory: SessionFactory = get_session_context):
        self._session_factory = session_factory

    async def get_by_operator(self, operator_id: int) -> Optional[OperatorWorkload]:
        async with self._session_factory() as session:
            model = await session.get(OperatorWorkloadModel, operator_id)
            return self._to_entity(model) if model else None

    async def save(self, workload: OperatorWorkload) -> OperatorWorkload:
        async with self._session_factory() as session:
            model = await session.get(OperatorWorkloadModel, workload.operator_id)
            if model is None:
                model = OperatorWorkloadModel(operator_id=workload.operator_id)
                session.add(model)

            model.active_ticket_count = workload.active_ticket_count
            model.total_ticket_count = workload.total_ticket_count
            model.is_available = workload.is_available
            model.last_activity_at = workload.last_activity_at
            model.last_assigned_at = workload.last_assigned_at

            # Sync expertise rows in place so the unique constraint holds
            existing = {TicketCategory(row.category): row for row in model.expertise}
            for category, record in workload.expertise.items():
                row = existing.pop(category, None)
                if row is None:
                    model.expertise.append(CategoryExpertiseModel(
                        category=category.value,
                        experience_level=record.experience_level,
                    ))
                else:
                    row.experience_level = record.experience_level
            for row in existing.values():
                model.expertise.remove(row)

            await session.flush()
        return workload

    async def list_available(self) -> List[OperatorWorkload]:
        stmt = (
            select(OperatorWorkloadModel)
            .where(OperatorWorkloadModel.is_available.is_(True))
            .order_by(OperatorWorkloadModel.active_ticket_count, OperatorWorkloadModel.operator_id)
        )
        return await self._list(stmt)

    async def list_by_category(self, category: TicketCategory) -> List[OperatorWorkload]:
        stmt = (
            select(OperatorWorkloadModel)
            .join(CategoryExpertiseModel)
            .where(CategoryExpertiseModel.category == TicketCategory(category).value)
        )
        return await self._list(stmt)

    async def list_all(self) -> List[OperatorWorkload]:
        return await self._list(select(OperatorWorkloadModel))

    async def _list(self, stmt) -> List[OperatorWorkload]:
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return [self._to_entity(m) for m in result.scalars().unique().all()]

    @staticmethod
    def _to_entity(model: OperatorWorkloadModel) -> OperatorWorkload:
        expertise = {}
        for row in model.expertise:
            record = CategoryExpertise(category=row.category, experience_level=row.experience_level)
            expertise[record.category] = record

        return OperatorWorkload(
            operator_id=model.operator_id,
            last_activity_at=model.last_activity_at,
            active_ticket_count=model.active_ticket_count,
            total_ticket_count=model.total_ticket_count,
            is_available=model.is_available,
            last_assigned_at=model.last_assigned_at,
            expertise=expertise,
        )
