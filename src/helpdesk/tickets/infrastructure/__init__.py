"""
Ticket Infrastructure Layer
===========================

Contains:
- Models: SQLAlchemy ORM models
- Repositories: Data access implementations
- External: SLA config watcher, scheduler, attachment storage
"""

from helpdesk.tickets.infrastructure.models import (
    AttachmentModel,
    AuditLogModel,
    CommentModel,
    TicketModel,
)
from helpdesk.tickets.infrastructure.repositories import (
    SQLAlchemyAttachmentRepository,
    SQLAlchemyAuditLogRepository,
    SQLAlchemyCommentRepository,
    SQLAlchemyTicketRepository,
)
from helpdesk.tickets.infrastructure.external import (
    ConfigFileHandler,
    LocalAttachmentStorage,
    SLAConfigManager,
    SLAScheduler,
)

__all__ = [
    # Models
    "AttachmentModel",
    "AuditLogModel",
    "CommentModel",
    "TicketModel",
    # Repositories
    "SQLAlchemyAttachmentRepository",
    "SQLAlchemyAuditLogRepository",
    "SQLAlchemyCommentRepository",
    "SQLAlchemyTicketRepository",
    # External
    "ConfigFileHandler",
    "LocalAttachmentStorage",
    "SLAConfigManager",
    "SLAScheduler",
]
