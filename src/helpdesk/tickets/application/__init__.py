"""
Ticket Application Layer
========================

Contains:
- Services: TicketService, SLABreachMonitor
- DTOs: Data Transfer Objects for API
- Interfaces: Repository and storage abstractions
"""

from helpdesk.tickets.application.dto import (
    CommentCreateRequest,
    TicketCreateRequest,
    TicketQuery,
    TicketUpdateRequest,
    UploadedFile,
    AttachmentResponse,
    AuditLogResponse,
    CommentResponse,
    SLAStatusResponse,
    TicketDetailResponse,
    TicketListResponse,
    TicketResponse,
    TicketStatsResponse,
)
from helpdesk.tickets.application.services import (
    AttachmentPolicy,
    SLABreachMonitor,
    TicketService,
    IAttachmentRepository,
    IAttachmentStorage,
    IAuditLogRepository,
    ICommentRepository,
    ISLAConfigProvider,
    ITicketRepository,
)

__all__ = [
    # DTOs
    "CommentCreateRequest",
    "TicketCreateRequest",
    "TicketQuery",
    "TicketUpdateRequest",
    "UploadedFile",
    "AttachmentResponse",
    "AuditLogResponse",
    "CommentResponse",
    "SLAStatusResponse",
    "TicketDetailResponse",
    "TicketListResponse",
    "TicketResponse",
    "TicketStatsResponse",
    # Services
    "AttachmentPolicy",
    "SLABreachMonitor",
    "TicketService",
    # Interfaces
    "IAttachmentRepository",
    "IAttachmentStorage",
    "IAuditLogRepository",
    "ICommentRepository",
    "ISLAConfigProvider",
    "ITicketRepository",
]
