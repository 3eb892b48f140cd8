"""
Accounts Application Layer
==========================

Contains:
- Services: UserService, AuthService
- DTOs: request/response schemas
- CSV import helpers for bulk user creation
"""

from helpdesk.accounts.application.dto import (
    LoginRequest,
    UserCreateRequest,
    UserUpdateRequest,
    PasswordResetRequest,
    BulkUserCreateRequest,
    BulkUserDeleteRequest,
    UserResponse,
    AuthResponse,
    BulkUserCreateResponse,
    BulkUserDeleteResponse,
)
from helpdesk.accounts.application.services import (
    UserService,
    AuthService,
    IUserRepository,
)

__all__ = [
    # DTOs
    "LoginRequest",
    "UserCreateRequest",
    "UserUpdateRequest",
    "PasswordResetRequest",
    "BulkUserCreateRequest",
    "BulkUserDeleteRequest",
    "UserResponse",
    "AuthResponse",
    "BulkUserCreateResponse",
    "BulkUserDeleteResponse",
    # Services
    "UserService",
    "AuthService",
    # Repository Interfaces
    "IUserRepository",
]
