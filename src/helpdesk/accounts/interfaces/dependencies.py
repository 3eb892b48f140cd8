"""
Authentication Dependencies
===========================

FastAPI dependencies that turn the signed session cookie into a
request-scoped Principal and enforce role requirements.
"""

from typing import Callable
from uuid import UUID

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk.accounts.domain import PasswordHasher, Principal
from helpdesk.accounts.infrastructure import SQLAlchemyUserRepository
from helpdesk.config import Role
from helpdesk.core import AuthenticationException, PermissionDeniedException
from helpdesk.infrastructure.database import get_session

SESSION_USER_KEY = "user_id"


def get_password_hasher(request: Request) -> PasswordHasher:
    return request.app.state.password_hasher


async def get_current_principal(
    request: Request,
    session: AsyncSession = Depends(get_session),
) -> Principal:
    """
    Resolve the authenticated user for this request.

    The user row is reloaded on every request so role changes and
    deletions take effect immediately.
    """
    raw_user_id = request.session.get(SESSION_USER_KEY)
    if not raw_user_id:
        raise AuthenticationException()

    try:
        user_id = UUID(raw_user_id)
    except (TypeError, ValueError):
        request.session.clear()
        raise AuthenticationException("Session is no longer valid")

    user = await SQLAlchemyUserRepository(session).get_by_id(user_id)
    if user is None:
        request.session.clear()
        raise AuthenticationException("Session is no longer valid")

    principal = Principal.from_user(user)
    request.state.principal = principal
    return principal


def require_roles(*roles: str) -> Callable:
    """Dependency factory: the principal must hold one of ``roles``."""

    async def dependency(principal: Principal = Depends(get_current_principal)) -> Principal:
        if principal.role not in roles:
            raise PermissionDeniedException()
        return principal

    return dependency


require_admin = require_roles(Role.ADMIN)
