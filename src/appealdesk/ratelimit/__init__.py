"""
Rate Limiting Module
====================

Bounded context for per-(subject, action) sliding-window admission control.

Responsibilities:
- Hold the configurable policy table (max attempts per trailing window)
- Admit or deny attempts, evicting expired timestamps lazily
- Report remaining attempts and time until reset without consuming attempts
"""

__version__ = "1.0.0"
