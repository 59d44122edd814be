"""
Assignment Module
=================

Bounded context for operator workload tracking and ticket routing.

Responsibilities:
- Track active and total ticket counts per operator
- Record operator availability and per-category expertise
- Score available operators and pick the best one for a ticket
"""

__version__ = "1.0.0"
