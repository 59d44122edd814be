"""
Escalation Domain Layer
=======================
"""

from appealdesk.escalation.domain.value_objects import EscalationPolicy

__all__ = ["EscalationPolicy"]
