"""
Shared Kernel Module
====================

This module contains shared infrastructure used across all bounded contexts
(tickets, assignment, escalation, ratelimit).

Architecture Pattern: Modular Monolith
- Each module is a bounded context
- Shared kernel contains only generic infrastructure

DO NOT add ticket or assignment business logic to the shared kernel.
"""

__version__ = "1.0.0"
