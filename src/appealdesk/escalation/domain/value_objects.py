"""
Escalation Value Objects
========================
"""

from datetime import timedelta

from pydantic import BaseModel, Field


class EscalationPolicy(BaseModel):
    """
    When a ticket counts as overdue.

    Loaded from the ``escalation`` section of the policy YAML.
    """

    overdue_after_hours: float = Field(default=24.0, gt=0, description="Age after which an unanswered ticket is escalated")
    reason: str = Field(default="overdue", min_length=1, description="Reason recorded on escalated reassignments")

    model_config = {"frozen": True}

    @property
    def overdue_after(self) -> timedelta:
        return timedelta(hours=self.overdue_after_hours)
