"""
Ticket Controllers (API Routes)
===============================

FastAPI routes for tickets, comments, attachments and audit logs.

Controllers are thin - they delegate to application services. Each write
commits explicitly and only then releases queued notifications.
"""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, Query, Request, UploadFile, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import FileResponse
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk.accounts.domain import Principal
from helpdesk.accounts.infrastructure import SQLAlchemyUserRepository
from helpdesk.accounts.interfaces.dependencies import get_current_principal, require_admin
from helpdesk.infrastructure.database import get_session
from helpdesk.shared.infrastructure.logging import get_logger
from helpdesk.tickets.application import (
    AttachmentPolicy,
    AttachmentResponse,
    AuditLogResponse,
    CommentCreateRequest,
    CommentResponse,
    TicketCreateRequest,
    TicketDetailResponse,
    TicketListResponse,
    TicketQuery,
    TicketResponse,
    TicketService,
    TicketStatsResponse,
    TicketUpdateRequest,
    UploadedFile,
)
from helpdesk.tickets.infrastructure import (
    SQLAlchemyAttachmentRepository,
    SQLAlchemyAuditLogRepository,
    SQLAlchemyCommentRepository,
    SQLAlchemyTicketRepository,
)

logger = get_logger(__name__)
router = APIRouter(prefix="/tickets", tags=["Tickets"])
attachments_router = APIRouter(prefix="/attachments", tags=["Attachments"])


# ========== Example payloads for Swagger ==========

TICKET_RESPONSE_EXAMPLE = {
    "id": "123e4567-e89b-12d3-a456-426614174000",
    "ticketNumber": "TKT-042",
    "title": "Laptop does not boot",
    "description": "Black screen after the BIOS logo since this morning.",
    "category": "Hardware",
    "priority": "high",
    "status": "open",
    "employeeId": "EMP042",
    "employeeName": "Jane Doe",
    "employeeEmail": "jane.doe@company.com",
    "employeeMobile": "+1-555-0100",
    "employeeDepartment": "Finance",
    "assignedToId": None,
    "createdById": "0b6f6a8e-2d6c-4f57-9c53-2f9a8a1d7c11",
    "createdAt": "2024-01-15T10:00:00Z",
    "updatedAt": "2024-01-15T10:00:00Z",
    "resolvedAt": None,
    "slaDeadline": "2024-01-15T14:00:00Z",
    "sla": {
        "deadline": "2024-01-15T14:00:00Z",
        "remainingSeconds": 11520.0,
        "percentageElapsed": 20.0,
        "timeLeft": "3h 12m",
        "state": "on_track",
        "isBreached": False
    }
}


# ========== Dependencies ==========

async def get_ticket_service(
    request: Request,
    session: AsyncSession = Depends(get_session),
) -> TicketService:
    """Get ticket service instance."""
    state = request.app.state
    return TicketService(
        ticket_repository=SQLAlchemyTicketRepository(session),
        comment_repository=SQLAlchemyCommentRepository(session),
        attachment_repository=SQLAlchemyAttachmentRepository(session),
        audit_repository=SQLAlchemyAuditLogRepository(session),
        assignee_lookup=SQLAlchemyUserRepository(session),
        config_provider=state.sla_config_manager,
        storage=state.attachment_storage,
        attachment_policy=AttachmentPolicy(
            state.settings.allowed_upload_types,
            state.settings.max_upload_bytes,
        ),
        publisher=state.notification_dispatcher,
    )


def get_ticket_query(
    status_filter: Optional[str] = Query(None, alias="status"),
    priority: Optional[str] = Query(None),
    department: Optional[str] = Query(None),
    assigned_to_id: Optional[UUID] = Query(None, alias="assignedToId"),
    created_by_id: Optional[UUID] = Query(None, alias="createdById"),
    search: Optional[str] = Query(None),
    page: int = Query(1),
    limit: int = Query(20),
) -> TicketQuery:
    try:
        return TicketQuery(
            status=status_filter,
            priority=priority,
            department=department,
            assigned_to_id=assigned_to_id,
            created_by_id=created_by_id,
            search=search,
            page=page,
            limit=limit,
        )
    except ValidationError as e:
        raise RequestValidationError(e.errors())


def get_ticket_form(
    title: str = Form(...),
    description: str = Form(...),
    category: str = Form(...),
    priority: str = Form("medium"),
    employee_id: Optional[str] = Form(None, alias="employeeId"),
    employee_name: Optional[str] = Form(None, alias="employeeName"),
    employee_email: Optional[str] = Form(None, alias="employeeEmail"),
    employee_mobile: Optional[str] = Form(None, alias="employeeMobile"),
    employee_department: Optional[str] = Form(None, alias="employeeDepartment"),
) -> TicketCreateRequest:
    try:
        return TicketCreateRequest(
            title=title,
            description=description,
            category=category,
            priority=priority,
            employee_id=employee_id,
            employee_name=employee_name,
            employee_email=employee_email,
            employee_mobile=employee_mobile,
            employee_department=employee_department,
        )
    except ValidationError as e:
        raise RequestValidationError(e.errors())


async def read_uploads(request: Request, files: List[UploadFile]) -> List[UploadedFile]:
    """Read each upload, stopping one byte past the size limit."""
    limit = request.app.state.settings.max_upload_bytes
    uploads = []
    for upload in files:
        if not upload.filename:
            continue
        content = await upload.read(limit + 1)
        uploads.append(UploadedFile(
            original_name=upload.filename,
            content_type=upload.content_type or "application/octet-stream",
            content=content,
        ))
    return uploads


async def commit(session: AsyncSession, service: TicketService) -> None:
    try:
        await session.commit()
    except Exception:
        await service.after_rollback()
        raise
    await service.after_commit()


# ========== Tickets ==========

@router.get("", response_model=TicketListResponse, summary="List tickets")
async def list_tickets(
    query: TicketQuery = Depends(get_ticket_query),
    principal: Principal = Depends(get_current_principal),
    service: TicketService = Depends(get_ticket_service),
):
    return await service.list_tickets(principal, query)


@router.get("/stats", response_model=TicketStatsResponse, summary="Ticket counts and SLA breaches")
async def ticket_stats(
    principal: Principal = Depends(get_current_principal),
    service: TicketService = Depends(get_ticket_service),
):
    return await service.get_stats(principal)


@router.post(
    "",
    response_model=TicketResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Submit a ticket",
    description=(
        "Multipart or URL-encoded form. Requester fields default to the caller's "
        "profile. Up to 5 MB per attachment; PDF, PNG, JPEG and DOCX only."
    ),
    responses={201: {"content": {"application/json": {"example": TICKET_RESPONSE_EXAMPLE}}}},
)
async def create_ticket(
    request: Request,
    body: TicketCreateRequest = Depends(get_ticket_form),
    attachments: List[UploadFile] = File(default=[]),
    principal: Principal = Depends(get_current_principal),
    session: AsyncSession = Depends(get_session),
    service: TicketService = Depends(get_ticket_service),
):
    files = await read_uploads(request, attachments)
    try:
        ticket = await service.create_ticket(principal, body, files)
    except Exception:
        await service.after_rollback()
        raise
    await commit(session, service)
    return ticket


@router.get("/{ticket_id}", response_model=TicketDetailResponse, summary="Ticket with comments and attachments")
async def get_ticket(
    ticket_id: UUID,
    principal: Principal = Depends(get_current_principal),
    service: TicketService = Depends(get_ticket_service),
):
    return await service.get_ticket_detail(principal, ticket_id)


@router.patch("/{ticket_id}", response_model=TicketResponse, summary="Update a ticket")
async def update_ticket(
    ticket_id: UUID,
    body: TicketUpdateRequest,
    principal: Principal = Depends(get_current_principal),
    session: AsyncSession = Depends(get_session),
    service: TicketService = Depends(get_ticket_service),
):
    ticket = await service.update_ticket(principal, ticket_id, body)
    await commit(session, service)
    return ticket


@router.delete("/{ticket_id}", summary="Delete a ticket")
async def delete_ticket(
    ticket_id: UUID,
    principal: Principal = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
    service: TicketService = Depends(get_ticket_service),
):
    await service.delete_ticket(principal, ticket_id)
    await commit(session, service)
    return {"message": "Ticket deleted successfully"}


# ========== Comments, attachments, audit ==========

@router.post(
    "/{ticket_id}/comments",
    response_model=CommentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Comment on a ticket",
)
async def add_comment(
    ticket_id: UUID,
    body: CommentCreateRequest,
    principal: Principal = Depends(get_current_principal),
    session: AsyncSession = Depends(get_session),
    service: TicketService = Depends(get_ticket_service),
):
    comment = await service.add_comment(principal, ticket_id, body)
    await commit(session, service)
    return comment


@router.post(
    "/{ticket_id}/attachments",
    response_model=List[AttachmentResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Attach files to a ticket",
)
async def add_attachments(
    ticket_id: UUID,
    request: Request,
    attachments: List[UploadFile] = File(...),
    principal: Principal = Depends(get_current_principal),
    session: AsyncSession = Depends(get_session),
    service: TicketService = Depends(get_ticket_service),
):
    files = await read_uploads(request, attachments)
    try:
        saved = await service.add_attachments(principal, ticket_id, files)
    except Exception:
        await service.after_rollback()
        raise
    await commit(session, service)
    return saved


@router.get("/{ticket_id}/audit-logs", response_model=List[AuditLogResponse], summary="Ticket audit trail")
async def list_audit_logs(
    ticket_id: UUID,
    principal: Principal = Depends(get_current_principal),
    service: TicketService = Depends(get_ticket_service),
):
    return await service.list_audit_logs(principal, ticket_id)


@attachments_router.get("/{attachment_id}/download", summary="Download an attachment")
async def download_attachment(
    attachment_id: UUID,
    principal: Principal = Depends(get_current_principal),
    service: TicketService = Depends(get_ticket_service),
):
    attachment, path = await service.get_attachment_for_download(principal, attachment_id)
    return FileResponse(path, media_type=attachment.mime_type, filename=attachment.original_name)


tickets_router = router
