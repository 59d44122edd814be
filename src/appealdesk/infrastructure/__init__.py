"""
Infrastructure Layer
====================

Cross-context technical plumbing: database engine and session lifecycle.
"""
