"""
Shared API
==========

Middleware, exception handlers and dependency wiring shared by all routers.
"""
