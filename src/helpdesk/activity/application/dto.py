"""
Activity Application DTOs
=========================
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional
from uuid import UUID

from pydantic import Field

from helpdesk.shared.api.schema import HTTPSchemaModel

ClientActionStr = Literal["page_view", "click", "form_submit"]


@dataclass
class ActivityEntry:
    """One activity record as produced by middleware or controllers."""
    action: str
    user_id: Optional[UUID] = None
    resource: Optional[str] = None
    resource_id: Optional[str] = None
    method: Optional[str] = None
    endpoint: Optional[str] = None
    user_agent: Optional[str] = None
    ip_address: Optional[str] = None
    correlation_id: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)
    success: bool = True
    error_message: Optional[str] = None
    duration_ms: Optional[int] = None


class ClientActivityRequest(HTTPSchemaModel):
    """Page views and clicks reported by the web client."""
    action: ClientActionStr
    resource: Optional[str] = Field(None, max_length=100)
    resource_id: Optional[str] = Field(None, max_length=100)
    details: Dict[str, Any] = Field(default_factory=dict)


class ActivityLogResponse(HTTPSchemaModel):
    id: UUID
    user_id: Optional[UUID] = None
    action: str
    resource: Optional[str] = None
    resource_id: Optional[str] = None
    method: Optional[str] = None
    endpoint: Optional[str] = None
    user_agent: Optional[str] = None
    ip_address: Optional[str] = None
    correlation_id: Optional[str] = None
    details: Optional[Dict[str, Any]] = None
    success: bool
    error_message: Optional[str] = None
    duration_ms: Optional[int] = None
    created_at: datetime


class ActivityLogListResponse(HTTPSchemaModel):
    logs: List[ActivityLogResponse]
    total: int
    page: int
    limit: int
