"""
AppealDesk - Main Application
=============================

Ticket lifecycle and operator assignment service.

Modules:
- Tickets: open, assign, reply, reassign and close tickets
- Assignment: operator workloads, expertise and scoring
- Escalation: periodic reassignment of overdue tickets
- Rate limiting: sliding-window admission for user actions

Clean Architecture Layers:
- Interfaces: FastAPI controllers
- Application: Services and DTOs
- Domain: Entities and value objects
- Infrastructure: Database, scheduler, policy file watcher
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from appealdesk.config import Settings, settings as default_settings
from appealdesk.core import ApplicationException
from appealdesk.shared.api.dependencies import build_services
from appealdesk.shared.api.middleware import (
    CorrelationIDMiddleware,
    LoggingMiddleware,
    application_exception_handler,
    global_exception_handler,
)
from appealdesk.shared.infrastructure.clock import Clock, utc_now
from appealdesk.shared.infrastructure.logging import get_logger, log_latency, setup_logging
from appealdesk.shared.infrastructure.scheduler import JobScheduler
from appealdesk.tickets.application import IAuthorizationService

from appealdesk.assignment.interfaces import operators_router
from appealdesk.escalation.interfaces import escalation_router
from appealdesk.tickets.interfaces import tickets_router

logger = get_logger(__name__)

ESCALATION_JOB_ID = "ticket_escalation"
RATE_LIMIT_CLEANUP_JOB_ID = "rate_limit_cleanup"


def create_app(
    config: Optional[Settings] = None,
    authorization: Optional[IAuthorizationService] = None,
    clock: Clock = utc_now,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        config: Settings, defaults to environment-derived settings
        authorization: Role hook for ticket assignment, defaults to allow-all
        clock: Time source shared by every service
    """
    config = config or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator:
        """
        STARTUP:
        1. Setup structured logging
        2. Initialize database (postgres backend only)
        3. Wire services and load the policy file
        4. Start policy file watcher
        5. Start background jobs (escalation sweep, rate limit cleanup)

        SHUTDOWN: reverse order.
        """
        setup_logging(config.log_level, config.environment, config.app_name)
        logger.info("Starting AppealDesk", extra={
            "version": config.app_version,
            "environment": config.environment,
            "storage_backend": config.storage_backend,
        })

        if config.storage_backend == "postgres":
            from appealdesk.infrastructure.database import close_database, create_tables, init_database

            init_database(config)
            try:
                await create_tables()
            except Exception as e:
                logger.warning(
                    "Database not available - running in degraded mode",
                    extra={"error": str(e)}
                )

        services = build_services(config, authorization=authorization, clock=clock)
        app.state.services = services

        if config.watch_policy_config:
            services.policy.start_watching()

        scheduler = JobScheduler()
        if config.escalation_enabled:
            async def escalation_job() -> int:
                with log_latency(logger, "escalation_sweep"):
                    return await services.sweeper.run_once()

            scheduler.add_interval_job(
                ESCALATION_JOB_ID,
                escalation_job,
                config.escalation_interval_seconds,
                name="Ticket Escalation Sweep",
            )

        def rate_limit_cleanup_job() -> int:
            return services.rate_limiter.cleanup()

        scheduler.add_interval_job(
            RATE_LIMIT_CLEANUP_JOB_ID,
            rate_limit_cleanup_job,
            config.rate_limit_cleanup_interval_seconds,
            name="Rate Limit Window Cleanup",
        )
        await scheduler.start()
        app.state.scheduler = scheduler

        logger.info("AppealDesk started")

        yield

        logger.info("Shutting down AppealDesk")
        await scheduler.stop()
        services.policy.stop_watching()
        if config.storage_backend == "postgres":
            await close_database()
        logger.info("AppealDesk shutdown complete")

    app = FastAPI(
        title="AppealDesk API",
        description="Ticket lifecycle, operator assignment, escalation and rate limiting.",
        version=config.app_version,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan
    )
    app.state.settings = config

    # === Middleware ===
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(CorrelationIDMiddleware)
    app.add_exception_handler(ApplicationException, application_exception_handler)
    app.add_exception_handler(Exception, global_exception_handler)

    # === Module Routers ===
    app.include_router(tickets_router)
    app.include_router(operators_router)
    app.include_router(escalation_router)

    @app.get("/health", tags=["Health"])
    async def health_check(request: Request):
        """Health check for load balancers and orchestrators."""
        services = getattr(request.app.state, "services", None)
        scheduler = getattr(request.app.state, "scheduler", None)
        return {
            "status": "healthy" if services else "starting",
            "version": config.app_version,
            "environment": config.environment,
            "checks": {
                "storage_backend": config.storage_backend,
                "policy_watcher": "watching" if services and services.policy.is_watching else "static",
                "scheduler": "running" if scheduler and scheduler.is_running else "stopped",
                "scheduled_jobs": scheduler.job_ids if scheduler else [],
            }
        }

    @app.get("/", tags=["Root"])
    async def root():
        """API information."""
        return {
            "service": config.app_name,
            "version": config.app_version,
            "docs": "/docs",
            "health": "/health",
            "modules": {
                "tickets": "/tickets",
                "operators": "/operators",
                "escalations": "/escalations",
            }
        }

    return app


app = create_app()


# === Development Entry Point ===

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "appealdesk.main:app",
        host=default_settings.host,
        port=default_settings.port,
        reload=default_settings.environment == "development",
        log_level="info"
    )
