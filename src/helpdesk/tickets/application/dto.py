"""
Ticket Application DTOs
=======================

Data Transfer Objects for the ticket API layer.

These Pydantic models handle serialization/deserialization and validation
for API requests and responses.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, List, Literal, Optional
from uuid import UUID

from pydantic import EmailStr, Field, field_validator

from helpdesk.shared.api.schema import HTTPSchemaModel
from helpdesk.tickets.domain import SLAProgress


# ========== Type Aliases for Literals ==========
PriorityStr = Literal["critical", "high", "medium", "low"]
TicketStatusStr = Literal["open", "in_progress", "on_hold", "resolved", "closed"]
SLAStateStr = Literal["on_track", "at_risk", "breached", "met"]

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


# ========== Request DTOs ==========

@dataclass
class UploadedFile:
    """File received with a request, already read into memory."""
    original_name: str
    content_type: str
    content: bytes

    @property
    def size(self) -> int:
        return len(self.content)


class TicketCreateRequest(HTTPSchemaModel):
    """
    New ticket as submitted by the form.

    Requester fields are optional and default to the submitting user's
    profile.
    """
    title: str = Field(..., min_length=1, max_length=500)
    description: str = Field(..., min_length=1)
    category: str = Field(..., min_length=1, max_length=100)
    priority: PriorityStr = Field(default="medium")
    employee_id: Optional[str] = Field(None, max_length=50)
    employee_name: Optional[str] = Field(None, max_length=255)
    employee_email: Optional[EmailStr] = None
    employee_mobile: Optional[str] = Field(None, max_length=50)
    employee_department: Optional[str] = Field(None, max_length=255)

    @field_validator("title", "description", "category")
    @classmethod
    def strip_required(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v

    @field_validator(
        "employee_id", "employee_name", "employee_email",
        "employee_mobile", "employee_department",
        mode="before",
    )
    @classmethod
    def blank_is_none(cls, v: Any) -> Any:
        if not isinstance(v, str):
            return v
        return v.strip() or None


class TicketUpdateRequest(HTTPSchemaModel):
    """
    Partial ticket update.

    Only fields present in the body are applied; ``assignedToId: null``
    unassigns the ticket.
    """
    title: Optional[str] = Field(None, min_length=1, max_length=500)
    description: Optional[str] = Field(None, min_length=1)
    category: Optional[str] = Field(None, min_length=1, max_length=100)
    priority: Optional[PriorityStr] = None
    status: Optional[TicketStatusStr] = None
    assigned_to_id: Optional[UUID] = None

    def changes(self) -> dict:
        """Fields explicitly set in the request, nulls dropped except for the assignee."""
        data = self.model_dump(exclude_unset=True)
        return {
            key: value for key, value in data.items()
            if value is not None or key == "assigned_to_id"
        }


class TicketQuery(HTTPSchemaModel):
    """Query parameters for the ticket list."""
    status: Optional[TicketStatusStr] = None
    priority: Optional[PriorityStr] = None
    department: Optional[str] = None
    assigned_to_id: Optional[UUID] = None
    created_by_id: Optional[UUID] = None
    search: Optional[str] = None
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE)

    def filters(self) -> dict:
        data = self.model_dump(exclude={"page", "limit"}, exclude_none=True)
        if "search" in data and not data["search"].strip():
            del data["search"]
        return data


class CommentCreateRequest(HTTPSchemaModel):
    content: str = Field(..., min_length=1)
    is_internal: bool = False

    @field_validator("content")
    @classmethod
    def strip_content(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v


# ========== Response DTOs ==========

class SLAStatusResponse(HTTPSchemaModel):
    """SLA progress of a ticket against its own window."""
    deadline: datetime = Field(..., description="SLA deadline")
    remaining_seconds: float = Field(..., description="Time remaining (0 when breached or finished)")
    percentage_elapsed: float = Field(..., description="Share of the SLA window used")
    time_left: str = Field(..., description='Human readable, e.g. "3h 12m"')
    state: SLAStateStr
    is_breached: bool

    @classmethod
    def from_progress(cls, progress: SLAProgress) -> "SLAStatusResponse":
        return cls(
            deadline=progress.deadline,
            remaining_seconds=progress.remaining_seconds,
            percentage_elapsed=progress.percentage_elapsed,
            time_left=progress.time_left,
            state=progress.state,
            is_breached=progress.is_breached,
        )


class TicketResponse(HTTPSchemaModel):
    id: UUID
    ticket_number: str
    title: str
    description: str
    category: str
    priority: PriorityStr
    status: TicketStatusStr
    employee_id: str
    employee_name: str
    employee_email: str
    employee_mobile: Optional[str] = None
    employee_department: Optional[str] = None
    assigned_to_id: Optional[UUID] = None
    created_by_id: UUID
    created_at: datetime
    updated_at: datetime
    resolved_at: Optional[datetime] = None
    sla_deadline: datetime
    sla: Optional[SLAStatusResponse] = None

    @classmethod
    def from_model(cls, ticket: Any, progress: Optional[SLAProgress] = None) -> "TicketResponse":
        response = cls.model_validate(ticket)
        if progress is not None:
            response.sla = SLAStatusResponse.from_progress(progress)
        return response


class CommentResponse(HTTPSchemaModel):
    id: UUID
    ticket_id: UUID
    user_id: UUID
    author_name: Optional[str] = None
    content: str
    is_internal: bool
    created_at: datetime


class AttachmentResponse(HTTPSchemaModel):
    id: UUID
    ticket_id: UUID
    filename: str
    original_name: str
    mime_type: str
    size: int
    uploaded_by_id: UUID
    created_at: datetime


class AuditLogResponse(HTTPSchemaModel):
    id: UUID
    ticket_id: UUID
    user_id: Optional[UUID] = None
    action: str
    old_value: Optional[str] = None
    new_value: Optional[str] = None
    created_at: datetime


class TicketDetailResponse(HTTPSchemaModel):
    ticket: TicketResponse
    comments: List[CommentResponse] = Field(default_factory=list)
    attachments: List[AttachmentResponse] = Field(default_factory=list)


class TicketListResponse(HTTPSchemaModel):
    tickets: List[TicketResponse]
    total: int = Field(..., description="Total number of tickets matching the filter")
    page: int
    limit: int


class TicketStatsResponse(HTTPSchemaModel):
    total: int
    open: int
    in_progress: int
    on_hold: int
    resolved: int
    closed: int
    sla_breaches: int
