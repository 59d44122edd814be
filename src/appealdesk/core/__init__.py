"""
Core Module
============

Shared core utilities and abstractions used across the application.

This module contains framework-agnostic code that defines the fundamental
building blocks of the system.
"""

from appealdesk.core.exceptions import (
    ApplicationException,
    DomainException,
    RepositoryException,
    ValidationException,
    ConflictException,
    ForbiddenException,
    ResourceNotFoundException,
    NoEligibleOperatorException,
    ConfigurationException,
)
from appealdesk.core.boundaries import storage_boundary

__all__ = [
    "ApplicationException",
    "DomainException",
    "RepositoryException",
    "ValidationException",
    "ConflictException",
    "ForbiddenException",
    "ResourceNotFoundException",
    "NoEligibleOperatorException",
    "ConfigurationException",
    "storage_boundary",
]
