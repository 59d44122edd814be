"""
Core Exceptions
================

Custom exceptions for the application following clean architecture principles.

Every failure a service operation can report is one of these types. They are
raised by the domain and application layers and translated to transport
responses at the interface boundary.
"""

from typing import Optional, Any


class ApplicationException(Exception):
    """Base exception for all application errors."""

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class DomainException(ApplicationException):
    """Base exception for domain logic violations."""


class RepositoryException(ApplicationException):
    """Storage failure surfaced to the caller. Never retried by the core."""


class ValidationException(DomainException):
    """Exception for malformed input (lengths, ranges, blank fields)."""


class ConflictException(DomainException):
    """Illegal state transition, e.g. acting on a closed ticket."""


class ForbiddenException(ApplicationException):
    """Acting user lacks the capability for the requested operation."""


class ResourceNotFoundException(ApplicationException):
    """Exception when a requested resource is not found."""

    def __init__(
        self,
        resource_type: str,
        resource_id: Optional[Any] = None,
        details: Optional[dict] = None
    ):
        self.resource_type = resource_type
        self.resource_id = resource_id
        message = f"{resource_type}"
        if resource_id is not None:
            message += f" with id '{resource_id}'"
        message += " not found"
        super().__init__(message, details)


class NoEligibleOperatorException(DomainException):
    """The assignment engine found no available operator."""

    def __init__(
        self,
        category: Any = None,
        priority: Any = None,
        details: Optional[dict] = None
    ):
        self.category = category
        self.priority = priority
        super().__init__(
            "No eligible operator available",
            details or {
                "category": getattr(category, "value", category),
                "priority": getattr(priority, "value", priority),
            }
        )


class ConfigurationException(ApplicationException):
    """Exception for configuration errors."""
