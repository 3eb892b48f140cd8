"""
IT Helpdesk - Main Application
==============================

Internal IT support ticketing service.

Modules:
- Tickets: submission, SLA tracking, comments, attachments, audit trail
- Accounts: session login, users, roles, CSV import
- System Settings: SMTP configuration and email templates
- Notifications: background email delivery
- Activity: API and client activity log

Clean Architecture Layers:
- Interfaces: FastAPI controllers
- Application: Services and DTOs
- Domain: Entities and value objects
- Infrastructure: Database, SMTP, file storage, schedulers
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.sessions import SessionMiddleware

# Configuration
from helpdesk.config import Settings, get_settings

# Infrastructure
from helpdesk.infrastructure.database import (
    close_database,
    create_tables,
    get_session_context,
    init_database,
)

# Accounts
from helpdesk.accounts.application import AuthService
from helpdesk.accounts.domain import PasswordHasher
from helpdesk.accounts.infrastructure import SQLAlchemyUserRepository
from helpdesk.accounts.interfaces import auth_router, users_router

# Activity
from helpdesk.activity.application.services import ActivityLogger
from helpdesk.activity.infrastructure.repositories import SQLAlchemyActivityLogRepository
from helpdesk.activity.interfaces.controllers import activity_router
from helpdesk.activity.interfaces.middleware import ActivityLogMiddleware

# Notifications
from helpdesk.notifications.application import NotificationService
from helpdesk.notifications.infrastructure import (
    NotificationDispatcher,
    SMTPEmailSender,
    StoredEmailSettingsProvider,
)

# Settings
from helpdesk.system_settings.interfaces import settings_router

# Tickets
from helpdesk.tickets.application import SLABreachMonitor
from helpdesk.tickets.infrastructure import (
    LocalAttachmentStorage,
    SLAConfigManager,
    SLAScheduler,
    SQLAlchemyTicketRepository,
)
from helpdesk.tickets.interfaces import attachments_router, tickets_router

# Shared
from helpdesk.shared.api.middleware import (
    CorrelationIDMiddleware,
    LoggingMiddleware,
    register_exception_handlers,
)
from helpdesk.shared.infrastructure.logging import get_logger, setup_logging

logger = get_logger(__name__)


def build_lifespan(settings: Settings):

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator:
        """
        Application lifespan manager.

        STARTUP:
        1. Setup structured logging
        2. Initialize database (and tables, when configured)
        3. Create the bootstrap admin
        4. Load and watch SLA configuration
        5. Start notification workers
        6. Start SLA breach scheduler

        SHUTDOWN (reverse order):
        1. Stop SLA scheduler
        2. Drain and stop notification workers
        3. Stop config watcher
        4. Close database connections
        """
        # === STARTUP ===
        setup_logging(settings.log_level, settings.environment)
        logger.info("Starting Helpdesk Service", extra={
            "version": settings.app_version,
            "environment": settings.environment
        })

        init_database(settings)
        if settings.create_tables_on_startup:
            logger.info("Creating database tables")
            await create_tables()

        password_hasher = PasswordHasher(rounds=settings.bcrypt_rounds)
        if settings.bootstrap_admin_enabled:
            async with get_session_context() as session:
                auth_service = AuthService(SQLAlchemyUserRepository(session), password_hasher)
                await auth_service.ensure_bootstrap_admin(settings)

        sla_config_manager = SLAConfigManager()
        sla_config_manager.load(settings.sla_config_path)
        sla_config_manager.start_watching()

        attachment_storage = LocalAttachmentStorage(settings.upload_dir)
        attachment_storage.ensure_directory()

        email_sender = SMTPEmailSender(
            timeout=settings.smtp_timeout_seconds,
            max_retries=settings.notification_max_retries,
            retry_base_seconds=settings.notification_retry_base_seconds,
        )
        notification_service = NotificationService(
            StoredEmailSettingsProvider(get_session_context),
            email_sender,
        )
        dispatcher = NotificationDispatcher(
            notification_service.handle,
            queue_size=settings.notification_queue_size,
            workers=settings.notification_workers,
            shutdown_timeout=settings.notification_shutdown_timeout,
        )
        await dispatcher.start()

        sla_scheduler: Optional[SLAScheduler] = None
        if settings.sla_monitor_enabled:
            monitor = SLABreachMonitor(get_session_context, SQLAlchemyTicketRepository, dispatcher)

            async def sla_breach_job():
                """Background SLA breach sweep."""
                try:
                    await monitor.evaluate()
                except Exception as e:
                    logger.error("SLA breach sweep failed", extra={"error": str(e)})

            sla_scheduler = SLAScheduler(interval_seconds=settings.sla_evaluation_interval)
            await sla_scheduler.start(sla_breach_job)

        # Store services in app state for dependency injection
        app.state.settings = settings
        app.state.password_hasher = password_hasher
        app.state.sla_config_manager = sla_config_manager
        app.state.attachment_storage = attachment_storage
        app.state.email_sender = email_sender
        app.state.notification_dispatcher = dispatcher
        app.state.sla_scheduler = sla_scheduler
        app.state.activity_logger = ActivityLogger(
            get_session_context,
            SQLAlchemyActivityLogRepository,
            enabled=settings.activity_logging_enabled,
        )

        logger.info("Helpdesk Service started successfully")

        yield  # Application runs here

        # === SHUTDOWN ===
        logger.info("Shutting down Helpdesk Service")

        if sla_scheduler:
            await sla_scheduler.stop()

        await dispatcher.stop()
        sla_config_manager.stop_watching()
        await close_database()

        logger.info("Helpdesk Service shutdown complete")

    return lifespan


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the FastAPI application for the given settings."""
    settings = settings or get_settings()

    app = FastAPI(
        title="IT Helpdesk API",
        description="""
    ## Internal IT Support Ticketing

    Employees submit tickets; agents work them against priority-based SLA
    deadlines; managers get a read-only view; admins manage users and settings.

    **SLA deadlines (default):** critical 1h, high 4h, medium 24h, low 72h.

    Authentication uses a signed session cookie set by `POST /api/auth/login`.
    """,
        version=settings.app_version,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=build_lifespan(settings),
    )
    app.state.settings = settings

    # === Middleware (last added runs first) ===
    app.add_middleware(ActivityLogMiddleware, prefix=settings.api_prefix)
    app.add_middleware(
        SessionMiddleware,
        secret_key=settings.session_secret,
        session_cookie=settings.session_cookie,
        max_age=settings.session_max_age_seconds,
        https_only=settings.session_https_only,
        same_site="lax",
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(CorrelationIDMiddleware)

    register_exception_handlers(app)

    # === Include Module Routers ===
    for router in (
        auth_router,
        users_router,
        tickets_router,
        attachments_router,
        settings_router,
        activity_router,
    ):
        app.include_router(router, prefix=settings.api_prefix)

    # === Health Check Endpoint ===

    @app.get("/health", tags=["Health"], responses={
        200: {
            "description": "Service is healthy",
            "content": {
                "application/json": {
                    "example": {
                        "status": "healthy",
                        "version": "1.0.0",
                        "environment": "development",
                        "checks": {
                            "database": "connected",
                            "sla_config": "loaded",
                            "sla_scheduler": "running",
                            "notifications": "running (0 pending)"
                        }
                    }
                }
            }
        }
    })
    async def health_check(request: Request):
        """Health check endpoint for load balancers and orchestrators."""
        from sqlalchemy import text

        state = request.app.state
        checks = {}
        try:
            async with get_session_context() as session:
                await session.execute(text("SELECT 1"))
            checks["database"] = "connected"
        except Exception as e:
            checks["database"] = f"error: {e}"

        checks["sla_config"] = "loaded" if getattr(state, "sla_config_manager", None) else "not_loaded"
        scheduler = getattr(state, "sla_scheduler", None)
        checks["sla_scheduler"] = "running" if scheduler and scheduler.is_running else "stopped"
        dispatcher = getattr(state, "notification_dispatcher", None)
        if dispatcher and dispatcher.is_running:
            checks["notifications"] = f"running ({dispatcher.pending} pending)"
        else:
            checks["notifications"] = "stopped"

        return {
            "status": "healthy" if checks["database"] == "connected" else "degraded",
            "version": settings.app_version,
            "environment": settings.environment,
            "checks": checks
        }

    @app.get("/", tags=["Root"])
    async def root():
        """Root endpoint with API information."""
        return {
            "service": "IT Helpdesk",
            "version": settings.app_version,
            "architecture": "Clean Architecture / Modular Monolith",
            "docs": "/docs",
            "health": "/health",
            "api_prefix": settings.api_prefix,
        }

    return app


app = create_app()


# === Development Entry Point ===

if __name__ == "__main__":
    import uvicorn

    _settings = get_settings()
    uvicorn.run(
        "helpdesk.main:app",
        host=_settings.host,
        port=_settings.port,
        reload=_settings.environment == "development",
        log_level=_settings.log_level.lower()
    )
