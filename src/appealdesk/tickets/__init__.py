"""
Tickets Module
==============

Bounded context for the ticket (appeal) lifecycle.

Responsibilities:
- Validate and open tickets submitted by requesters
- Drive the NEW -> IN_PROGRESS -> CLOSED state machine
- Keep the conversation history per ticket
- Move operator load in step with assignment changes
"""

__version__ = "1.0.0"
