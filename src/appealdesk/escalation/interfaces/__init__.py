"""
Escalation Interfaces Layer
===========================
"""

from appealdesk.escalation.interfaces.controllers import escalation_router

__all__ = ["escalation_router"]
