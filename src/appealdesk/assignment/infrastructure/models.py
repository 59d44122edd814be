"""
Assignment Infrastructure Models
================================

SQLAlchemy ORM models for operator workloads.

These are the database representations of the domain entities.
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, BigInteger, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from appealdesk.config import TicketCategory
from appealdesk.infrastructure.database import Base


class OperatorWorkloadModel(Base):
    """
    Database model for OperatorWorkload entity.

    Maps to the 'operator_workloads' table.
    """
    __tablename__ = "operator_workloads"

    operator_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)

    # Counters
    active_ticket_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_ticket_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_available: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, index=True)

    # Timestamps
    last_activity_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    last_assigned_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    expertise: Mapped[List["CategoryExpertiseModel"]] = relationship(
        back_populates="workload",
        cascade="all, delete-orphan",
        lazy="selectin",
    )


class CategoryExpertiseModel(Base):
    """
    Database model for CategoryExpertise.

    Maps to the 'operator_expertise' table; one row per (operator, category).
    """
    __tablename__ = "operator_expertise"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    operator_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("operator_workloads.operator_id", ondelete="CASCADE"), nullable=False
    )
    category: Mapped[TicketCategory] = mapped_column(String(50), nullable=False, index=True)
    experience_level: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    workload: Mapped[OperatorWorkloadModel] = relationship(back_populates="expertise")

    __table_args__ = (
        UniqueConstraint("operator_id", "category", name="uq_operator_expertise_category"),
    )
