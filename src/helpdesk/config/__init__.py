"""
Configuration Module
====================

Application settings and configuration management using Pydantic.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator
from functools import lru_cache
from pathlib import Path
from typing import List, Optional


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Uses Pydantic for validation and type safety.
    """

    # ========== Application ==========
    app_name: str = Field(default="helpdesk", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    environment: str = Field(default="development", description="Environment name")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Root log level")
    api_prefix: str = Field(default="/api", description="Prefix for all REST routes")

    # ========== Server ==========
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port", ge=1, le=65535)

    # ========== Database ==========
    database_url: str = Field(
        default="postgresql+asyncpg://localhost:5432/helpdesk",
        description="Database connection URL (async driver)"
    )
    db_pool_size: int = Field(default=5, description="Database connection pool size", ge=1)
    db_max_overflow: int = Field(default=10, description="Max overflow connections", ge=0)
    create_tables_on_startup: bool = Field(
        default=True,
        description="Create missing tables at startup (use migrations in production)"
    )

    # ========== Sessions & Auth ==========
    session_secret: str = Field(
        default="change-me-helpdesk-session-secret",
        description="Secret used to sign the session cookie"
    )
    session_cookie: str = Field(default="helpdesk_session", description="Session cookie name")
    session_max_age_seconds: int = Field(
        default=24 * 60 * 60,
        description="Session cookie lifetime",
        ge=60
    )
    session_https_only: bool = Field(default=False, description="Mark the session cookie Secure")
    bcrypt_rounds: int = Field(default=12, description="bcrypt cost factor", ge=4, le=16)

    # ========== Bootstrap Admin ==========
    bootstrap_admin_enabled: bool = Field(default=True, description="Create the admin user if missing")
    bootstrap_admin_username: str = Field(default="admin")
    bootstrap_admin_password: str = Field(default="Admin@123")
    bootstrap_admin_employee_id: str = Field(default="EMP001")
    bootstrap_admin_name: str = Field(default="System Administrator")
    bootstrap_admin_email: str = Field(default="admin@company.com")

    # ========== SLA Configuration ==========
    sla_config_path: Path = Field(
        default=Path("sla_config.yaml"),
        description="Path to SLA configuration YAML file"
    )
    sla_monitor_enabled: bool = Field(
        default=True,
        description="Run the periodic SLA breach monitor"
    )
    sla_evaluation_interval: int = Field(
        default=60,
        description="Seconds between SLA breach sweeps",
        ge=10
    )

    # ========== Attachments ==========
    upload_dir: Path = Field(default=Path("uploads"), description="Directory for uploaded files")
    max_upload_bytes: int = Field(
        default=5 * 1024 * 1024,
        description="Maximum size of a single uploaded file",
        ge=1
    )
    allowed_upload_types: List[str] = Field(
        default=[
            "application/pdf",
            "image/png",
            "image/jpeg",
            "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        ],
        description="Accepted attachment MIME types"
    )

    # ========== Notifications ==========
    notification_queue_size: int = Field(default=100, description="Pending email jobs", ge=1)
    notification_workers: int = Field(default=2, description="Concurrent email workers", ge=1)
    notification_max_retries: int = Field(default=3, description="Attempts per email job", ge=1)
    notification_retry_base_seconds: float = Field(
        default=1.0,
        description="Base delay for exponential retry backoff",
        ge=0
    )
    notification_shutdown_timeout: float = Field(
        default=10.0,
        description="Seconds to wait for pending emails on shutdown",
        ge=0
    )
    smtp_timeout_seconds: float = Field(
        default=10.0,
        description="Timeout for SMTP connections",
        ge=0.1,
        le=120
    )

    # ========== Activity Log ==========
    activity_logging_enabled: bool = Field(default=True, description="Record API calls")

    # ========== CORS ==========
    cors_origins: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:5173"],
        description="Allowed CORS origins"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Ensure environment is one of allowed values."""
        allowed = {"development", "test", "staging", "production"}
        if v not in allowed:
            raise ValueError(f"environment must be one of {allowed}")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in allowed:
            raise ValueError(f"log_level must be one of {allowed}")
        return v.upper()


@lru_cache()
def get_settings() -> Settings:
    """Returns cached Settings instance."""
    return Settings()


# ========== Constants ==========

class Role(str):
    """User roles."""
    ADMIN = "admin"
    AGENT = "agent"
    MANAGER = "manager"
    EMPLOYEE = "employee"


class Priority(str):
    """Ticket priority levels."""
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class TicketStatus(str):
    """Ticket lifecycle statuses."""
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    ON_HOLD = "on_hold"
    RESOLVED = "resolved"
    CLOSED = "closed"


class SLAState(str):
    """SLA status states."""
    ON_TRACK = "on_track"
    AT_RISK = "at_risk"
    BREACHED = "breached"
    MET = "met"


class AuditAction(str):
    """Ticket audit log actions."""
    CREATED = "created"
    STATUS_CHANGED = "status_changed"
    PRIORITY_CHANGED = "priority_changed"
    ASSIGNMENT_CHANGED = "assignment_changed"
    COMMENT_ADDED = "comment_added"
    ATTACHMENT_ADDED = "attachment_added"


class ActivityAction(str):
    """Activity log actions."""
    API_CALL = "api_call"
    LOGIN = "login"
    LOGOUT = "logout"
    PAGE_VIEW = "page_view"
    CLICK = "click"
    FORM_SUBMIT = "form_submit"


# ========== Lists for validation ==========

VALID_ROLES = [Role.ADMIN, Role.AGENT, Role.MANAGER, Role.EMPLOYEE]
LEGACY_ROLE_ALIASES = {"user": Role.EMPLOYEE, "viewer": Role.MANAGER}
VALID_PRIORITIES = [
    Priority.CRITICAL, Priority.HIGH,
    Priority.MEDIUM, Priority.LOW
]
VALID_STATUSES = [
    TicketStatus.OPEN, TicketStatus.IN_PROGRESS, TicketStatus.ON_HOLD,
    TicketStatus.RESOLVED, TicketStatus.CLOSED
]
TERMINAL_STATUSES = [TicketStatus.RESOLVED, TicketStatus.CLOSED]
VALID_SLA_STATES = [SLAState.ON_TRACK, SLAState.AT_RISK, SLAState.BREACHED, SLAState.MET]
CLIENT_ACTIVITY_ACTIONS = [ActivityAction.PAGE_VIEW, ActivityAction.CLICK, ActivityAction.FORM_SUBMIT]
