"""
Infrastructure Layer
=====================

Low-level technical concerns:
- Logging setup
- Clock abstraction
- Per-key locking
- Policy file loading and hot-reload
- Background interval jobs
"""
