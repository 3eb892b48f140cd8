"""
Accounts Controllers (API Routes)
=================================

Session login/logout and admin user management.

Controllers are thin - they delegate to application services.
"""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, File, Request, Response, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk.accounts.application import (
    AuthResponse,
    AuthService,
    BulkUserCreateRequest,
    BulkUserCreateResponse,
    BulkUserDeleteRequest,
    BulkUserDeleteResponse,
    LoginRequest,
    PasswordResetRequest,
    UserCreateRequest,
    UserResponse,
    UserService,
    UserUpdateRequest,
)
from helpdesk.accounts.application.csv_import import build_template_csv, parse_users_csv
from helpdesk.accounts.domain import PasswordHasher, Principal
from helpdesk.accounts.infrastructure import SQLAlchemyUserRepository
from helpdesk.accounts.interfaces.dependencies import (
    SESSION_USER_KEY,
    get_current_principal,
    get_password_hasher,
    require_admin,
)
from helpdesk.activity.application.dto import ActivityEntry
from helpdesk.activity.interfaces.middleware import client_ip
from helpdesk.config import ActivityAction
from helpdesk.core import AuthenticationException, ValidationException
from helpdesk.infrastructure.database import get_session
from helpdesk.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

auth_router = APIRouter(prefix="/auth", tags=["Authentication"])
users_router = APIRouter(prefix="/users", tags=["Users"])

MAX_CSV_BYTES = 1024 * 1024


# ========== Example payloads for Swagger ==========

USER_RESPONSE_EXAMPLE = {
    "id": "123e4567-e89b-12d3-a456-426614174000",
    "employeeId": "EMP042",
    "username": "jdoe",
    "name": "Jane Doe",
    "email": "jane.doe@company.com",
    "mobile": "+1-555-0100",
    "department": "Finance",
    "designation": "Accountant",
    "role": "employee",
    "createdAt": "2024-01-15T10:00:00Z"
}


# ========== Dependencies ==========

async def get_user_service(
    session: AsyncSession = Depends(get_session),
    hasher: PasswordHasher = Depends(get_password_hasher),
) -> UserService:
    """Get user service instance."""
    return UserService(SQLAlchemyUserRepository(session), hasher)


async def get_auth_service(
    session: AsyncSession = Depends(get_session),
    hasher: PasswordHasher = Depends(get_password_hasher),
) -> AuthService:
    """Get auth service instance."""
    return AuthService(SQLAlchemyUserRepository(session), hasher)


async def _record_auth_event(request: Request, entry: ActivityEntry) -> None:
    entry.method = request.method
    entry.endpoint = request.url.path
    entry.user_agent = request.headers.get("User-Agent")
    entry.ip_address = client_ip(request)
    entry.correlation_id = getattr(request.state, "correlation_id", None)
    await request.app.state.activity_logger.record(entry)


# ========== Authentication ==========

@auth_router.post(
    "/login",
    response_model=AuthResponse,
    summary="Log in with username and password",
    responses={
        200: {"content": {"application/json": {"example": {"user": USER_RESPONSE_EXAMPLE}}}},
        401: {"description": "Invalid username or password"},
    }
)
async def login(
    body: LoginRequest,
    request: Request,
    service: AuthService = Depends(get_auth_service),
):
    try:
        user = await service.authenticate(body.username, body.password)
    except AuthenticationException as e:
        await _record_auth_event(request, ActivityEntry(
            action=ActivityAction.LOGIN,
            resource="auth",
            details={"username": body.username},
            success=False,
            error_message=e.message,
        ))
        logger.info("Login failed", extra={"username": body.username})
        raise

    # Fresh session on every login
    request.session.clear()
    request.session[SESSION_USER_KEY] = str(user.id)

    await _record_auth_event(request, ActivityEntry(
        action=ActivityAction.LOGIN,
        user_id=user.id,
        resource="auth",
    ))
    logger.info("Login succeeded", extra={"user_id": str(user.id)})
    return AuthResponse(user=UserResponse.model_validate(user))


@auth_router.post("/logout", summary="End the current session")
async def logout(request: Request):
    raw_user_id = request.session.get(SESSION_USER_KEY)
    request.session.clear()

    user_id = None
    if raw_user_id:
        try:
            user_id = UUID(raw_user_id)
        except ValueError:
            user_id = None
    await _record_auth_event(request, ActivityEntry(
        action=ActivityAction.LOGOUT,
        user_id=user_id,
        resource="auth",
    ))
    return {"message": "Logged out successfully"}


@auth_router.get("/me", response_model=AuthResponse, summary="Current user")
async def me(
    principal: Principal = Depends(get_current_principal),
    service: UserService = Depends(get_user_service),
):
    user = await service.get_user(principal.id)
    return AuthResponse(user=UserResponse.model_validate(user))


# ========== User Management (admin) ==========

@users_router.get("", response_model=List[UserResponse], summary="List users")
async def list_users(
    principal: Principal = Depends(require_admin),
    service: UserService = Depends(get_user_service),
):
    return await service.list_users()


@users_router.post(
    "",
    response_model=UserResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a user",
)
async def create_user(
    body: UserCreateRequest,
    principal: Principal = Depends(require_admin),
    service: UserService = Depends(get_user_service),
    session: AsyncSession = Depends(get_session),
):
    result = await service.create_user(body)
    await session.commit()
    return result


@users_router.post(
    "/bulk",
    response_model=BulkUserCreateResponse,
    summary="Create many users",
    description="Each row is validated independently; failed rows are returned in `errors` with their index.",
)
async def bulk_create_users(
    body: BulkUserCreateRequest,
    principal: Principal = Depends(require_admin),
    service: UserService = Depends(get_user_service),
    session: AsyncSession = Depends(get_session),
):
    result = await service.bulk_create(body.users)
    await session.commit()
    return result


@users_router.delete("/bulk", response_model=BulkUserDeleteResponse, summary="Delete users by employee ID")
async def bulk_delete_users(
    body: BulkUserDeleteRequest,
    principal: Principal = Depends(require_admin),
    service: UserService = Depends(get_user_service),
    session: AsyncSession = Depends(get_session),
):
    result = await service.bulk_delete(principal, body.employee_ids)
    await session.commit()
    return result


@users_router.post("/import", response_model=BulkUserCreateResponse, summary="Import users from CSV")
async def import_users(
    file: UploadFile = File(...),
    principal: Principal = Depends(require_admin),
    service: UserService = Depends(get_user_service),
    session: AsyncSession = Depends(get_session),
):
    content = await file.read(MAX_CSV_BYTES + 1)
    if len(content) > MAX_CSV_BYTES:
        raise ValidationException("CSV file is too large")
    rows = parse_users_csv(content)
    if not rows:
        raise ValidationException("CSV file has no user rows")
    result = await service.bulk_create(rows)
    await session.commit()
    return result


@users_router.get("/import-template", summary="Download the CSV import template")
async def import_template(principal: Principal = Depends(require_admin)):
    return Response(
        content=build_template_csv(),
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="users_template.csv"'},
    )


@users_router.get("/{user_id}", response_model=UserResponse, summary="Get a user")
async def get_user(
    user_id: UUID,
    principal: Principal = Depends(require_admin),
    service: UserService = Depends(get_user_service),
):
    return await service.get_user(user_id)


@users_router.put("/{user_id}", response_model=UserResponse, summary="Update a user")
async def update_user(
    user_id: UUID,
    body: UserUpdateRequest,
    principal: Principal = Depends(require_admin),
    service: UserService = Depends(get_user_service),
    session: AsyncSession = Depends(get_session),
):
    result = await service.update_user(user_id, body)
    await session.commit()
    return result


@users_router.put("/{user_id}/reset-password", summary="Reset a user's password")
async def reset_password(
    user_id: UUID,
    body: PasswordResetRequest,
    principal: Principal = Depends(require_admin),
    service: UserService = Depends(get_user_service),
    session: AsyncSession = Depends(get_session),
):
    await service.reset_password(user_id, body.password)
    await session.commit()
    return {"message": "Password reset successfully"}


@users_router.delete("/{user_id}", summary="Delete a user")
async def delete_user(
    user_id: UUID,
    principal: Principal = Depends(require_admin),
    service: UserService = Depends(get_user_service),
    session: AsyncSession = Depends(get_session),
):
    await service.delete_user(principal, user_id)
    await session.commit()
    return {"message": "User deleted successfully"}
