"""
Escalation Application Layer
============================
"""

from appealdesk.escalation.application.services import EscalationSweeper

__all__ = ["EscalationSweeper"]
