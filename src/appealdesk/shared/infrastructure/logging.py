"""
Structured Logging
==================

JSON logs on stdout, one object per line.

Every record carries the service name and environment; request-scoped
records also carry the correlation id set by ``CorrelationIDMiddleware``.
Domain context goes through ``extra``:

    from appealdesk.shared.infrastructure.logging import get_logger

    logger = get_logger(__name__)
    logger.info("Ticket assigned", extra={"ticket_id": 42, "operator_id": 7})
"""

import logging
import sys
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Iterator

from pythonjsonlogger import jsonlogger

NOISY_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "apscheduler", "watchdog")


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Adds ``timestamp``, ``service``, ``environment`` and ``correlation_id``."""

    def __init__(self, *args: Any, service: str = "appealdesk", environment: str = "unknown", **kwargs: Any):
        super().__init__(*args, **kwargs)
        self._service = service
        self._environment = environment

    def add_fields(
        self,
        log_record: dict[str, Any],
        record: logging.LogRecord,
        message_dict: dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)

        log_record.setdefault("timestamp", datetime.now(timezone.utc).isoformat())
        log_record["service"] = self._service
        log_record["environment"] = getattr(record, "environment", self._environment)

        correlation_id = getattr(record, "correlation_id", None)
        if correlation_id:
            log_record["correlation_id"] = correlation_id


def setup_logging(
    level: str = "INFO",
    environment: str = "development",
    service: str = "appealdesk",
) -> None:
    """
    Install the JSON handler on the root logger, replacing existing handlers.

    Args:
        level: Logging level name (DEBUG, INFO, WARNING, ERROR)
        environment: Environment name stamped on every record
        service: Service name stamped on every record
    """
    log_level = getattr(logging, level.upper())

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(log_level)
    handler.setFormatter(CustomJsonFormatter(
        fmt="%(asctime)s %(name)s %(levelname)s %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        service=service,
        environment=environment,
    ))

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()
    root_logger.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


@contextmanager
def log_latency(logger: logging.Logger, operation: str, **extra_context: Any) -> Iterator[None]:
    """
    Log how long the block took, and whether it raised.

    Usage:
        with log_latency(logger, "escalation_sweep"):
            escalated = await sweeper.run_once()
    """
    start = time.perf_counter()
    outcome = "error"
    try:
        yield
        outcome = "ok"
    finally:
        logger.info(
            f"{operation} completed",
            extra={
                "operation": operation,
                "outcome": outcome,
                "latency_ms": round((time.perf_counter() - start) * 1000, 2),
                **extra_context,
            },
        )
