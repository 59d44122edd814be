"""
Operation Boundaries
====================

Translation of storage-layer failures into ``RepositoryException``.

Repository calls are wrapped at each service operation so that driver errors
(SQLAlchemy, asyncpg, ...) never leak past the application layer.
"""

import logging
from contextlib import contextmanager
from typing import Any, Iterator

from appealdesk.core.exceptions import ApplicationException, RepositoryException


@contextmanager
def storage_boundary(
    logger: logging.Logger,
    operation: str,
    **context: Any,
) -> Iterator[None]:
    """
    Wrap a repository call, re-raising foreign errors as RepositoryException.

    Usage:
        with storage_boundary(logger, "save_ticket", ticket_id=ticket.id):
            await self._tickets.save(ticket)

    Application exceptions pass through untouched. No retry is attempted.
    """
    try:
        yield
    except ApplicationException:
        raise
    except Exception as e:
        logger.error(
            f"Storage failure during {operation}",
            extra={
                "operation": operation,
                "error_type": type(e).__name__,
                "error": str(e),
                **context,
            },
        )
        raise RepositoryException(
            f"Storage failure during {operation}",
            {"operation": operation, **context},
        ) from e
