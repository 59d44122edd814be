"""
Assignment Interfaces Layer
===========================

FastAPI route handlers for operators.
"""

from appealdesk.assignment.interfaces.controllers import operators_router

__all__ = ["operators_router"]
