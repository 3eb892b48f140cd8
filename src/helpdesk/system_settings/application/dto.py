"""
System Settings DTOs
====================
"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import EmailStr, Field, field_validator

from helpdesk.shared.api.schema import HTTPSchemaModel


class SettingUpsertRequest(HTTPSchemaModel):
    key: str = Field(..., min_length=1, max_length=100)
    value: Optional[str] = None
    category: str = Field(default="general", min_length=1, max_length=50)
    description: Optional[str] = None

    @field_validator("key")
    @classmethod
    def strip_key(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v


class SettingValueRequest(HTTPSchemaModel):
    value: str = Field(..., min_length=1)


class BulkSettingsRequest(HTTPSchemaModel):
    settings: List[SettingUpsertRequest]


class SMTPOverrides(HTTPSchemaModel):
    """Unsaved SMTP values from the settings form, used for a test send."""
    smtp_host: Optional[str] = None
    smtp_port: Optional[str] = None
    smtp_username: Optional[str] = None
    smtp_password: Optional[str] = None
    sender_name: Optional[str] = None
    sender_email: Optional[str] = None
    it_team_email: Optional[str] = None

    @field_validator("smtp_port", mode="before")
    @classmethod
    def port_as_text(cls, v):
        return None if v is None else str(v)


class SendTestEmailRequest(HTTPSchemaModel):
    email: EmailStr
    settings: Optional[SMTPOverrides] = None


class SettingResponse(HTTPSchemaModel):
    id: UUID
    key: str
    value: Optional[str]
    category: str
    description: Optional[str]
    updated_at: datetime
