"""
Accounts Application Services
=============================

User administration and credential checks.

Services depend on the IUserRepository abstraction; the SQLAlchemy
implementation lives in the infrastructure layer.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import ValidationError

from helpdesk.accounts.application.dto import (
    BulkUserCreateResponse,
    BulkUserDeleteFailure,
    BulkUserDeleteResponse,
    BulkUserError,
    UserCreateRequest,
    UserResponse,
    UserUpdateRequest,
)
from helpdesk.accounts.domain import PasswordHasher, Principal
from helpdesk.config import Role, Settings
from helpdesk.core import (
    AuthenticationException,
    ResourceNotFoundException,
    ValidationException,
)
from helpdesk.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


# ========== Repository Interfaces (Dependency Inversion) ==========

class IUserRepository(ABC):
    """Interface for user data access."""

    @abstractmethod
    async def get_by_id(self, user_id: UUID) -> Optional[Any]:
        """Get user by primary key."""

    @abstractmethod
    async def get_by_username(self, username: str) -> Optional[Any]:
        """Get user by login name."""

    @abstractmethod
    async def get_by_employee_id(self, employee_id: str) -> Optional[Any]:
        """Get user by employee ID."""

    @abstractmethod
    async def list_all(self) -> List[Any]:
        """All users ordered by name."""

    @abstractmethod
    async def create(self, fields: Dict[str, Any]) -> Any:
        """Insert a user; ``fields`` already carries the password hash."""

    @abstractmethod
    async def update(self, user: Any, changes: Dict[str, Any]) -> Any:
        """Apply changes to a loaded user."""

    @abstractmethod
    async def delete(self, user: Any) -> None:
        """Delete a user row."""

    @abstractmethod
    async def has_ticket_history(self, user_id: UUID) -> bool:
        """Whether the user created tickets, comments or attachments."""

    @abstractmethod
    async def unassign_tickets(self, user_id: UUID) -> int:
        """Clear the assignee on tickets assigned to the user."""


# ========== Application Services ==========

class UserService:
    """User administration (admin only at the HTTP layer)."""

    def __init__(self, user_repository: IUserRepository, hasher: PasswordHasher):
        self._user_repo = user_repository
        self._hasher = hasher

    async def list_users(self) -> List[Any]:
        return await self._user_repo.list_all()

    async def get_user(self, user_id: UUID) -> Any:
        user = await self._user_repo.get_by_id(user_id)
        if user is None:
            raise ResourceNotFoundException("User", str(user_id))
        return user

    async def create_user(self, request: UserCreateRequest) -> Any:
        username = request.username or request.employee_id
        await self._ensure_unique(employee_id=request.employee_id, username=username)

        fields = request.model_dump(exclude={"password", "username"})
        fields["username"] = username
        fields["password_hash"] = self._hasher.hash(request.password)

        user = await self._user_repo.create(fields)
        logger.info(
            "User created",
            extra={"user_id": str(user.id), "employee_id": user.employee_id, "role": user.role}
        )
        return user

    async def update_user(self, user_id: UUID, request: UserUpdateRequest) -> Any:
        user = await self.get_user(user_id)
        changes = request.model_dump(exclude_unset=True, exclude={"password"})
        changes = {key: value for key, value in changes.items() if value is not None}

        await self._ensure_unique(
            employee_id=changes.get("employee_id"),
            username=changes.get("username"),
            exclude_id=user.id,
        )

        # Only re-hash when a new password was actually supplied
        if request.password:
            changes["password_hash"] = self._hasher.hash(request.password)

        return await self._user_repo.update(user, changes)

    async def reset_password(self, user_id: UUID, password: str) -> Any:
        user = await self.get_user(user_id)
        updated = await self._user_repo.update(user, {"password_hash": self._hasher.hash(password)})
        logger.info("Password reset", extra={"user_id": str(user_id)})
        return updated

    async def delete_user(self, principal: Principal, user_id: UUID) -> None:
        user = await self.get_user(user_id)
        await self._delete(principal, user)

    async def bulk_create(self, rows: List[Dict[str, Any]]) -> BulkUserCreateResponse:
        """
        Create users row by row.

        Invalid or duplicate rows are reported in ``errors`` with their index
        and never abort the rest of the batch.
        """
        results: List[UserResponse] = []
        errors: List[BulkUserError] = []

        for index, row in enumerate(rows):
            safe_row = {key: value for key, value in row.items() if "password" not in key.lower()}
            try:
                request = UserCreateRequest.model_validate(row)
                user = await self.create_user(request)
            except ValidationError as e:
                errors.append(BulkUserError(index=index, data=safe_row, error=_format_validation_error(e)))
                continue
            except ValidationException as e:
                errors.append(BulkUserError(index=index, data=safe_row, error=e.message))
                continue
            results.append(UserResponse.model_validate(user))

        logger.info(
            "Bulk user import finished",
            extra={"created": len(results), "failed": len(errors)}
        )
        return BulkUserCreateResponse(
            message=f"Created {len(results)} user(s), {len(errors)} failed",
            results=results,
            errors=errors,
        )

    async def bulk_delete(self, principal: Principal, employee_ids: List[str]) -> BulkUserDeleteResponse:
        response = BulkUserDeleteResponse()
        for employee_id in employee_ids:
            user = await self._user_repo.get_by_employee_id(employee_id)
            if user is None:
                response.not_found.append(employee_id)
                continue
            try:
                await self._delete(principal, user)
            except ValidationException as e:
                response.failed.append(BulkUserDeleteFailure(employee_id=employee_id, error=e.message))
                continue
            response.deleted.append(employee_id)
        return response

    async def _delete(self, principal: Principal, user: Any) -> None:
        if user.id == principal.id:
            raise ValidationException("You cannot delete your own account")
        if await self._user_repo.has_ticket_history(user.id):
            raise ValidationException(
                "User has tickets, comments or attachments and cannot be deleted"
            )

        unassigned = await self._user_repo.unassign_tickets(user.id)
        await self._user_repo.delete(user)
        logger.info(
            "User deleted",
            extra={"user_id": str(user.id), "unassigned_tickets": unassigned}
        )

    async def _ensure_unique(
        self,
        employee_id: Optional[str] = None,
        username: Optional[str] = None,
        exclude_id: Optional[UUID] = None,
    ) -> None:
        errors = []
        if employee_id:
            existing = await self._user_repo.get_by_employee_id(employee_id)
            if existing is not None and existing.id != exclude_id:
                errors.append({"field": "employeeId", "message": "Employee ID already exists"})
        if username:
            existing = await self._user_repo.get_by_username(username)
            if existing is not None and existing.id != exclude_id:
                errors.append({"field": "username", "message": "Username already exists"})
        if errors:
            raise ValidationException(
                "; ".join(error["message"] for error in errors),
                details={"errors": errors}
            )


class AuthService:
    """Credential verification and admin bootstrap."""

    def __init__(self, user_repository: IUserRepository, hasher: PasswordHasher):
        self._user_repo = user_repository
        self._hasher = hasher

    async def authenticate(self, username: str, password: str) -> Any:
        """
        Verify credentials.

        Raises:
            AuthenticationException: Unknown user or wrong password (same
                message for both)
        """
        user = await self._user_repo.get_by_username(username)
        if user is None or not self._hasher.verify(password, user.password_hash):
            raise AuthenticationException("Invalid username or password")
        return user

    async def ensure_bootstrap_admin(self, settings: Settings) -> Optional[Any]:
        """Create the configured admin account when it does not exist yet."""
        existing = await self._user_repo.get_by_username(settings.bootstrap_admin_username)
        if existing is not None:
            return None

        user = await self._user_repo.create({
            "employee_id": settings.bootstrap_admin_employee_id,
            "username": settings.bootstrap_admin_username,
            "password_hash": self._hasher.hash(settings.bootstrap_admin_password),
            "name": settings.bootstrap_admin_name,
            "email": settings.bootstrap_admin_email,
            "department": "IT",
            "designation": "Administrator",
            "role": Role.ADMIN,
        })
        logger.info("Bootstrap admin created", extra={"username": user.username})
        return user


def _format_validation_error(error: ValidationError) -> str:
    messages = []
    for item in error.errors():
        field = ".".join(str(part) for part in item.get("loc", ()))
        messages.append(f"{field}: {item.get('msg')}" if field else item.get("msg", "invalid"))
    return "; ".join(messages)
