"""
AppealDesk
==========

Ticket lifecycle, operator assignment, escalation and rate limiting.
"""

__version__ = "1.0.0"
