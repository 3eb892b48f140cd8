"""
Ticket Application Services
===========================

Application services orchestrate business logic and coordinate between
domain rules and repositories.

Following SOLID principles:
- Single Responsibility: TicketService handles requests, SLABreachMonitor the periodic sweep
- Dependency Inversion: Depend on abstractions (repositories), not concrete implementations
"""

import os
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, AsyncContextManager, Callable, Dict, List, Optional, Sequence, Tuple
from uuid import UUID

from helpdesk.accounts.domain import Principal
from helpdesk.config import AuditAction, TicketStatus
from helpdesk.core import (
    PermissionDeniedException,
    ResourceNotFoundException,
    ValidationException,
)
from helpdesk.notifications.application import INotificationPublisher
from helpdesk.notifications.domain import (
    CommentAddedEvent,
    NotificationEvent,
    SLABreachedEvent,
    TicketCreatedEvent,
    TicketSnapshot,
    TicketStatusChangedEvent,
)
from helpdesk.shared.infrastructure.logging import get_logger
from helpdesk.tickets.application.dto import (
    AttachmentResponse,
    AuditLogResponse,
    CommentCreateRequest,
    CommentResponse,
    TicketCreateRequest,
    TicketDetailResponse,
    TicketListResponse,
    TicketQuery,
    TicketResponse,
    TicketStatsResponse,
    TicketUpdateRequest,
    UploadedFile,
)
from helpdesk.tickets.domain import (
    SLACalculator,
    SLAConfig,
    SLAProgress,
    TicketLifecycle,
)

logger = get_logger(__name__)

AUDIT_ACTIONS = {
    "status": AuditAction.STATUS_CHANGED,
    "priority": AuditAction.PRIORITY_CHANGED,
    "assigned_to_id": AuditAction.ASSIGNMENT_CHANGED,
}


# ========== Repository Interfaces (Dependency Inversion) ==========

class ITicketRepository(ABC):
    """Interface for ticket data access."""

    @abstractmethod
    async def create(self, fields: Dict[str, Any]) -> Any:
        """Insert a ticket, allocating its sequence and ticket number."""

    @abstractmethod
    async def get_by_id(self, ticket_id: UUID) -> Optional[Any]:
        """Get ticket by primary key."""

    @abstractmethod
    async def get_for_update(self, ticket_id: UUID) -> Optional[Any]:
        """Get ticket by primary key, locking the row for this transaction."""

    @abstractmethod
    async def save(self, ticket: Any) -> Any:
        """Flush changes made to a loaded ticket."""

    @abstractmethod
    async def list(
        self,
        filters: dict,
        limit: int = 20,
        offset: int = 0
    ) -> Tuple[List[Any], int]:
        """Matching tickets newest first, plus the total match count."""

    @abstractmethod
    async def stats(self, now: datetime, created_by_id: Optional[UUID] = None) -> Dict[str, int]:
        """Counts per status and open tickets past their deadline."""

    @abstractmethod
    async def list_newly_breached(self, now: datetime) -> List[Any]:
        """Open tickets past their deadline with no breach notification yet."""

    @abstractmethod
    async def delete(self, ticket: Any) -> None:
        """Delete a ticket and, by cascade, its child records."""


class ICommentRepository(ABC):
    """Interface for comment data access."""

    @abstractmethod
    async def add(self, fields: Dict[str, Any]) -> Any:
        """Insert a comment."""

    @abstractmethod
    async def list_for_ticket(self, ticket_id: UUID, include_internal: bool) -> List[Tuple[Any, Optional[str]]]:
        """Comments oldest first, each paired with its author's name."""


class IAttachmentRepository(ABC):
    """Interface for attachment data access."""

    @abstractmethod
    async def add(self, fields: Dict[str, Any]) -> Any:
        """Insert attachment metadata."""

    @abstractmethod
    async def get_by_id(self, attachment_id: UUID) -> Optional[Any]:
        """Get attachment by primary key."""

    @abstractmethod
    async def list_for_ticket(self, ticket_id: UUID) -> List[Any]:
        """Attachments of one ticket, oldest first."""


class IAuditLogRepository(ABC):
    """Interface for ticket audit trail access."""

    @abstractmethod
    async def add(self, fields: Dict[str, Any]) -> Optional[Any]:
        """Append an entry; returns None when the write failed."""

    @abstractmethod
    async def list_for_ticket(self, ticket_id: UUID) -> List[Any]:
        """Entries of one ticket, newest first."""


class IAssigneeLookup(ABC):
    """Checks that an assignee exists."""

    @abstractmethod
    async def get_by_id(self, user_id: UUID) -> Optional[Any]:
        """Get user by primary key."""


class ISLAConfigProvider(ABC):
    """Interface for SLA configuration access."""

    @property
    @abstractmethod
    def config(self) -> SLAConfig:
        """Current SLA configuration."""


class IAttachmentStorage(ABC):
    """Interface for attachment file storage."""

    @abstractmethod
    async def save(self, content: bytes, original_name: str) -> str:
        """Store bytes under a new random name; returns that name."""

    @abstractmethod
    async def remove(self, filename: str) -> None:
        """Delete a stored file; missing files are ignored."""

    @abstractmethod
    def path_for(self, filename: str) -> Path:
        """Location of a stored file."""


# ========== Helpers ==========

def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _audit_value(value: Any) -> Optional[str]:
    return None if value is None else str(value)


class AttachmentPolicy:
    """Allowed upload MIME types and the per-file size limit."""

    def __init__(self, allowed_types: Sequence[str], max_bytes: int):
        self.allowed_types = set(allowed_types)
        self.max_bytes = max_bytes

    def validate(self, files: Sequence[UploadedFile]) -> None:
        for upload in files:
            if upload.content_type not in self.allowed_types:
                raise ValidationException(
                    f"File type not allowed: {upload.original_name}",
                    details={"errors": [{
                        "field": "attachments",
                        "message": "Only PDF, PNG, JPEG and DOCX files are allowed",
                    }]},
                )
            if upload.size > self.max_bytes:
                raise ValidationException(
                    f"File too large: {upload.original_name}",
                    details={"errors": [{
                        "field": "attachments",
                        "message": f"Files must not exceed {self.max_bytes // (1024 * 1024)} MB",
                    }]},
                )
            if upload.size == 0:
                raise ValidationException(f"File is empty: {upload.original_name}")


# ========== Application Services ==========

class TicketService:
    """
    Ticket use cases for one request.

    Notification events and file removals are buffered until the caller
    has committed the transaction and calls ``after_commit``.
    """

    def __init__(
        self,
        ticket_repository: ITicketRepository,
        comment_repository: ICommentRepository,
        attachment_repository: IAttachmentRepository,
        audit_repository: IAuditLogRepository,
        assignee_lookup: IAssigneeLookup,
        config_provider: ISLAConfigProvider,
        storage: IAttachmentStorage,
        attachment_policy: AttachmentPolicy,
        publisher: Optional[INotificationPublisher] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self._ticket_repo = ticket_repository
        self._comment_repo = comment_repository
        self._attachment_repo = attachment_repository
        self._audit_repo = audit_repository
        self._assignees = assignee_lookup
        self._config_provider = config_provider
        self._storage = storage
        self._attachment_policy = attachment_policy
        self._publisher = publisher
        self._clock = clock
        self._pending_events: List[NotificationEvent] = []
        self._pending_removals: List[str] = []
        self._written_files: List[str] = []

    # ---------- SLA ----------

    def sla_status(self, ticket: Any, now: Optional[datetime] = None) -> SLAProgress:
        """SLA progress of a ticket against its own window."""
        return SLACalculator.calculate_progress(
            created_at=ticket.created_at,
            deadline=ticket.sla_deadline,
            current_time=now or self._clock(),
            status=ticket.status,
            resolved_at=ticket.resolved_at,
            at_risk_threshold_percent=self._config_provider.config.at_risk_threshold_percent,
        )

    def _to_response(self, ticket: Any, now: Optional[datetime] = None) -> TicketResponse:
        return TicketResponse.from_model(ticket, self.sla_status(ticket, now))

    # ---------- Access ----------

    async def _get_visible(self, principal: Principal, ticket_id: UUID, for_update: bool = False) -> Any:
        if for_update:
            ticket = await self._ticket_repo.get_for_update(ticket_id)
        else:
            ticket = await self._ticket_repo.get_by_id(ticket_id)
        if ticket is None:
            raise ResourceNotFoundException("Ticket", str(ticket_id))
        if not principal.can_view_all_tickets and not principal.owns(ticket):
            raise PermissionDeniedException("You can only access your own tickets")
        return ticket

    @staticmethod
    def _ensure_can_write(principal: Principal) -> None:
        if principal.is_read_only:
            raise PermissionDeniedException("Managers have read-only access")

    # ---------- Tickets ----------

    async def create_ticket(
        self,
        principal: Principal,
        request: TicketCreateRequest,
        files: Sequence[UploadedFile] = (),
    ) -> TicketResponse:
        """
        Submit a new ticket.

        The SLA deadline is derived from the same clock reading as
        ``created_at``. Requester fields default to the caller's profile.
        """
        self._ensure_can_write(principal)
        self._attachment_policy.validate(files)

        now = self._clock()
        sla_hours = self._config_provider.config.get_sla_hours(request.priority)
        fields = {
            "title": request.title,
            "description": request.description,
            "category": request.category,
            "priority": request.priority,
            "status": TicketLifecycle.INITIAL_STATUS,
            "employee_id": request.employee_id or principal.employee_id,
            "employee_name": request.employee_name or principal.name,
            "employee_email": request.employee_email or principal.email,
            "employee_mobile": request.employee_mobile or principal.mobile,
            "employee_department": request.employee_department or principal.department,
            "created_by_id": principal.id,
            "created_at": now,
            "updated_at": now,
            "sla_deadline": SLACalculator.calculate_deadline(now, sla_hours),
        }

        ticket = await self._ticket_repo.create(fields)
        await self._audit(ticket.id, principal.id, AuditAction.CREATED, new_value=ticket.status)
        await self._store_attachments(principal, ticket, files)

        self._pending_events.append(TicketCreatedEvent(ticket=TicketSnapshot.from_ticket(ticket)))
        logger.info(
            "Ticket created",
            extra={
                "ticket_number": ticket.ticket_number,
                "priority": ticket.priority,
                "attachments": len(files),
            }
        )
        return self._to_response(ticket, now)

    async def get_ticket_detail(self, principal: Principal, ticket_id: UUID) -> TicketDetailResponse:
        ticket = await self._get_visible(principal, ticket_id)
        comments = await self._comment_repo.list_for_ticket(
            ticket.id, include_internal=not principal.is_employee
        )
        attachments = await self._attachment_repo.list_for_ticket(ticket.id)
        return TicketDetailResponse(
            ticket=self._to_response(ticket),
            comments=[_comment_response(comment, author) for comment, author in comments],
            attachments=[AttachmentResponse.model_validate(a) for a in attachments],
        )

    async def list_tickets(self, principal: Principal, query: TicketQuery) -> TicketListResponse:
        """Filtered, paginated ticket list; employees only see their own tickets."""
        filters = query.filters()
        if not principal.can_view_all_tickets:
            filters["created_by_id"] = principal.id

        rows, total = await self._ticket_repo.list(
            filters,
            limit=query.limit,
            offset=(query.page - 1) * query.limit,
        )
        now = self._clock()
        return TicketListResponse(
            tickets=[self._to_response(ticket, now) for ticket in rows],
            total=total,
            page=query.page,
            limit=query.limit,
        )

    async def update_ticket(
        self,
        principal: Principal,
        ticket_id: UUID,
        request: TicketUpdateRequest,
    ) -> TicketResponse:
        """
        Apply a partial update.

        The row is locked before the old values are read, so each real
        change is audited and notified exactly once.
        """
        self._ensure_can_write(principal)
        changes = request.changes()

        if "assigned_to_id" in changes:
            if principal.is_employee:
                raise PermissionDeniedException("Employees cannot change the assignee")
            assignee_id = changes["assigned_to_id"]
            if assignee_id is not None and await self._assignees.get_by_id(assignee_id) is None:
                raise ValidationException(
                    "Assigned user not found",
                    details={"errors": [{"field": "assignedToId", "message": "Assigned user not found"}]},
                )

        ticket = await self._get_visible(principal, ticket_id, for_update=True)
        now = self._clock()
        recorded = TicketLifecycle.apply_update(ticket, changes, now)
        await self._ticket_repo.save(ticket)

        for change in recorded:
            await self._audit(
                ticket.id,
                principal.id,
                AUDIT_ACTIONS[change.field],
                old_value=_audit_value(change.old_value),
                new_value=_audit_value(change.new_value),
            )

        transition = TicketLifecycle.status_transition(recorded)
        if transition is not None:
            self._pending_events.append(TicketStatusChangedEvent(
                ticket=TicketSnapshot.from_ticket(ticket),
                old_status=transition.old_status,
                new_status=transition.new_status,
                changed_by=principal.name,
            ))
            logger.info(
                "Ticket status changed",
                extra={
                    "ticket_number": ticket.ticket_number,
                    "old_status": transition.old_status,
                    "new_status": transition.new_status,
                }
            )

        return self._to_response(ticket, now)

    async def delete_ticket(self, principal: Principal, ticket_id: UUID) -> None:
        """Delete a ticket; its stored files are removed after commit."""
        ticket = await self._ticket_repo.get_by_id(ticket_id)
        if ticket is None:
            raise ResourceNotFoundException("Ticket", str(ticket_id))

        attachments = await self._attachment_repo.list_for_ticket(ticket.id)
        await self._ticket_repo.delete(ticket)
        self._pending_removals.extend(a.filename for a in attachments)
        logger.info(
            "Ticket deleted",
            extra={"ticket_number": ticket.ticket_number, "deleted_by": str(principal.id)}
        )

    # ---------- Comments ----------

    async def add_comment(
        self,
        principal: Principal,
        ticket_id: UUID,
        request: CommentCreateRequest,
    ) -> CommentResponse:
        """Add a comment; public comments notify the requester."""
        self._ensure_can_write(principal)
        if request.is_internal and principal.is_employee:
            raise PermissionDeniedException("Employees cannot post internal comments")

        ticket = await self._get_visible(principal, ticket_id)
        comment = await self._comment_repo.add({
            "ticket_id": ticket.id,
            "user_id": principal.id,
            "content": request.content,
            "is_internal": request.is_internal,
            "created_at": self._clock(),
        })
        await self._audit(ticket.id, principal.id, AuditAction.COMMENT_ADDED, new_value=request.content)

        if not request.is_internal:
            self._pending_events.append(CommentAddedEvent(
                ticket=TicketSnapshot.from_ticket(ticket),
                comment=request.content,
                author=principal.name,
            ))
        return _comment_response(comment, principal.name)

    # ---------- Attachments ----------

    async def add_attachments(
        self,
        principal: Principal,
        ticket_id: UUID,
        files: Sequence[UploadedFile],
    ) -> List[AttachmentResponse]:
        self._ensure_can_write(principal)
        if not files:
            raise ValidationException("No files uploaded")
        self._attachment_policy.validate(files)

        ticket = await self._get_visible(principal, ticket_id)
        saved = await self._store_attachments(principal, ticket, files)
        return [AttachmentResponse.model_validate(a) for a in saved]

    async def get_attachment_for_download(self, principal: Principal, attachment_id: UUID) -> Tuple[Any, Path]:
        """Attachment row and the path of its file."""
        attachment = await self._attachment_repo.get_by_id(attachment_id)
        if attachment is None:
            raise ResourceNotFoundException("Attachment", str(attachment_id))

        await self._get_visible(principal, attachment.ticket_id)

        path = self._storage.path_for(attachment.filename)
        if not path.is_file():
            logger.warning(
                "Attachment file missing",
                extra={"attachment_id": str(attachment_id), "filename": attachment.filename}
            )
            raise ResourceNotFoundException("Attachment file", str(attachment_id))
        return attachment, path

    async def _store_attachments(
        self,
        principal: Principal,
        ticket: Any,
        files: Sequence[UploadedFile],
    ) -> List[Any]:
        saved_names: List[str] = []
        rows = []
        try:
            for upload in files:
                filename = await self._storage.save(upload.content, upload.original_name)
                saved_names.append(filename)
                rows.append(await self._attachment_repo.add({
                    "ticket_id": ticket.id,
                    "filename": filename,
                    "original_name": os.path.basename(upload.original_name) or filename,
                    "mime_type": upload.content_type,
                    "size": upload.size,
                    "uploaded_by_id": principal.id,
                    "created_at": self._clock(),
                }))
        except Exception:
            for filename in saved_names:
                await self._storage.remove(filename)
            raise

        self._written_files.extend(saved_names)

        for row in rows:
            await self._audit(ticket.id, principal.id, AuditAction.ATTACHMENT_ADDED, new_value=row.original_name)
        return rows

    # ---------- Audit ----------

    async def list_audit_logs(self, principal: Principal, ticket_id: UUID) -> List[AuditLogResponse]:
        if principal.is_employee:
            raise PermissionDeniedException("Audit logs are not available to employees")
        ticket = await self._ticket_repo.get_by_id(ticket_id)
        if ticket is None:
            raise ResourceNotFoundException("Ticket", str(ticket_id))
        entries = await self._audit_repo.list_for_ticket(ticket.id)
        return [AuditLogResponse.model_validate(entry) for entry in entries]

    async def _audit(
        self,
        ticket_id: UUID,
        user_id: Optional[UUID],
        action: str,
        old_value: Optional[str] = None,
        new_value: Optional[str] = None,
    ) -> None:
        await self._audit_repo.add({
            "ticket_id": ticket_id,
            "user_id": user_id,
            "action": action,
            "old_value": old_value,
            "new_value": new_value,
            "created_at": self._clock(),
        })

    # ---------- Stats ----------

    async def get_stats(self, principal: Principal) -> TicketStatsResponse:
        created_by_id = None if principal.can_view_all_tickets else principal.id
        counts = await self._ticket_repo.stats(self._clock(), created_by_id=created_by_id)
        return TicketStatsResponse(
            total=counts.get("total", 0),
            open=counts.get(TicketStatus.OPEN, 0),
            in_progress=counts.get(TicketStatus.IN_PROGRESS, 0),
            on_hold=counts.get(TicketStatus.ON_HOLD, 0),
            resolved=counts.get(TicketStatus.RESOLVED, 0),
            closed=counts.get(TicketStatus.CLOSED, 0),
            sla_breaches=counts.get("sla_breaches", 0),
        )

    # ---------- Transaction boundaries ----------

    async def after_commit(self) -> None:
        """Publish buffered notifications and remove files of deleted tickets."""
        events, self._pending_events = self._pending_events, []
        removals, self._pending_removals = self._pending_removals, []
        self._written_files = []

        if self._publisher is not None:
            for event in events:
                self._publisher.submit(event)
        for filename in removals:
            await self._storage.remove(filename)

    async def after_rollback(self) -> None:
        """Drop buffered work and remove files written by the failed transaction."""
        self._pending_events = []
        self._pending_removals = []
        written, self._written_files = self._written_files, []
        for filename in written:
            await self._storage.remove(filename)


def _comment_response(comment: Any, author_name: Optional[str]) -> CommentResponse:
    response = CommentResponse.model_validate(comment)
    response.author_name = author_name
    return response


class SLABreachMonitor:
    """
    Periodic sweep for tickets that have passed their SLA deadline.

    Each ticket is announced once: it is stamped ``sla_breach_notified_at``
    and committed before its event is queued.
    """

    def __init__(
        self,
        session_factory: Callable[[], AsyncContextManager],
        repository_factory: Callable[[Any], ITicketRepository],
        publisher: INotificationPublisher,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self._session_factory = session_factory
        self._repository_factory = repository_factory
        self._publisher = publisher
        self._clock = clock

    async def evaluate(self) -> int:
        """
        Stamp and announce newly breached tickets.

        Returns:
            Number of breach events queued
        """
        now = self._clock()
        async with self._session_factory() as session:
            repository = self._repository_factory(session)
            tickets = await repository.list_newly_breached(now)
            for ticket in tickets:
                ticket.sla_breach_notified_at = now
            events = [SLABreachedEvent(ticket=TicketSnapshot.from_ticket(ticket)) for ticket in tickets]
            await session.commit()

        for event in events:
            self._publisher.submit(event)

        if events:
            logger.info("SLA breaches detected", extra={"count": len(events)})
        return len(events)
