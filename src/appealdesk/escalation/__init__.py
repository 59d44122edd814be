"""
Escalation Module
=================

Bounded context for forcing stale tickets back through assignment.

Responsibilities:
- Find tickets left unanswered past the overdue threshold
- Reassign each one, tolerating individual failures
- Never overlap one sweep with another
"""

__version__ = "1.0.0"
