"""
Accounts Application DTOs
=========================

Request/response schemas for authentication and user administration.
The password hash never leaves the service: responses carry only the
safe profile fields.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import EmailStr, Field, field_validator

from helpdesk.accounts.domain import normalize_role
from helpdesk.shared.api.schema import HTTPSchemaModel

MIN_PASSWORD_LENGTH = 6
# bcrypt only hashes the first 72 bytes and refuses anything longer
MAX_PASSWORD_BYTES = 72


def _validate_password(value: Optional[str]) -> Optional[str]:
    if value is not None and len(value.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValueError(f"must be at most {MAX_PASSWORD_BYTES} bytes")
    return value


# ========== Request DTOs ==========

class LoginRequest(HTTPSchemaModel):
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class UserCreateRequest(HTTPSchemaModel):
    """New user. ``username`` defaults to the employee ID."""
    employee_id: str = Field(..., min_length=1, max_length=50)
    username: Optional[str] = Field(None, max_length=100)
    password: str = Field(..., min_length=MIN_PASSWORD_LENGTH)
    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    mobile: Optional[str] = Field(None, max_length=50)
    department: Optional[str] = Field(None, max_length=255)
    designation: Optional[str] = Field(None, max_length=255)
    role: str = Field(default="employee")

    @field_validator("employee_id", "name")
    @classmethod
    def strip_required(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v

    @field_validator("username")
    @classmethod
    def blank_username_is_none(cls, v: Optional[str]) -> Optional[str]:
        if v is None or not v.strip():
            return None
        return v.strip()

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        return _validate_password(v)

    @field_validator("role", mode="before")
    @classmethod
    def validate_role(cls, v: Any) -> str:
        return normalize_role(v)


class UserUpdateRequest(HTTPSchemaModel):
    """Partial user update; a new password is re-hashed."""
    employee_id: Optional[str] = Field(None, min_length=1, max_length=50)
    username: Optional[str] = Field(None, min_length=1, max_length=100)
    password: Optional[str] = Field(None, min_length=MIN_PASSWORD_LENGTH)
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    email: Optional[EmailStr] = None
    mobile: Optional[str] = Field(None, max_length=50)
    department: Optional[str] = Field(None, max_length=255)
    designation: Optional[str] = Field(None, max_length=255)
    role: Optional[str] = None

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: Optional[str]) -> Optional[str]:
        return _validate_password(v)

    @field_validator("role", mode="before")
    @classmethod
    def validate_role(cls, v: Any) -> Optional[str]:
        if v is None:
            return None
        return normalize_role(v)


class PasswordResetRequest(HTTPSchemaModel):
    password: str = Field(..., min_length=MIN_PASSWORD_LENGTH)

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        return _validate_password(v)


class BulkUserCreateRequest(HTTPSchemaModel):
    """Rows are validated one by one so a bad row does not reject the batch."""
    users: List[Dict[str, Any]] = Field(..., min_length=1)


class BulkUserDeleteRequest(HTTPSchemaModel):
    employee_ids: List[str] = Field(..., min_length=1)


# ========== Response DTOs ==========

class UserResponse(HTTPSchemaModel):
    id: UUID
    employee_id: str
    username: str
    name: str
    email: str
    mobile: Optional[str] = None
    department: Optional[str] = None
    designation: Optional[str] = None
    role: str
    created_at: Optional[datetime] = None


class AuthResponse(HTTPSchemaModel):
    user: UserResponse


class BulkUserError(HTTPSchemaModel):
    index: int
    data: Dict[str, Any]
    error: str


class BulkUserCreateResponse(HTTPSchemaModel):
    message: str
    results: List[UserResponse] = Field(default_factory=list)
    errors: List[BulkUserError] = Field(default_factory=list)


class BulkUserDeleteFailure(HTTPSchemaModel):
    employee_id: str
    error: str


class BulkUserDeleteResponse(HTTPSchemaModel):
    deleted: List[str] = Field(default_factory=list)
    not_found: List[str] = Field(default_factory=list)
    failed: List[BulkUserDeleteFailure] = Field(default_factory=list)
