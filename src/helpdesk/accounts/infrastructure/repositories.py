"""
Accounts Infrastructure Repositories
====================================

SQLAlchemy implementation of the user repository.
"""

from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy import exists, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk.accounts.application.services import IUserRepository
from helpdesk.accounts.infrastructure.models import UserModel
from helpdesk.core import ValidationException


class SQLAlchemyUserRepository(IUserRepository):
    """Handles persistence of users using async SQLAlchemy."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def get_by_id(self, user_id: UUID) -> Optional[UserModel]:
        return await self._session.get(UserModel, user_id)

    async def get_by_username(self, username: str) -> Optional[UserModel]:
        stmt = select(UserModel).where(UserModel.username == username)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_employee_id(self, employee_id: str) -> Optional[UserModel]:
        stmt = select(UserModel).where(UserModel.employee_id == employee_id)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_all(self) -> List[UserModel]:
        stmt = select(UserModel).order_by(UserModel.name.asc())
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def create(self, fields: Dict[str, Any]) -> UserModel:
        model = UserModel(**fields)
        try:
            async with self._session.begin_nested():
                self._session.add(model)
        except IntegrityError:
            # Lost a race with a concurrent insert of the same identifiers
            raise ValidationException("Username or employee ID already exists")
        return model

    async def update(self, user: UserModel, changes: Dict[str, Any]) -> UserModel:
        for key, value in changes.items():
            setattr(user, key, value)
        try:
            async with self._session.begin_nested():
                await self._session.flush()
        except IntegrityError:
            raise ValidationException("Username or employee ID already exists")
        return user

    async def delete(self, user: UserModel) -> None:
        await self._session.delete(user)
        await self._session.flush()

    async def has_ticket_history(self, user_id: UUID) -> bool:
        from helpdesk.tickets.infrastructure.models import (
            AttachmentModel, CommentModel, TicketModel
        )

        stmt = select(
            or_(
                exists().where(TicketModel.created_by_id == user_id),
                exists().where(CommentModel.user_id == user_id),
                exists().where(AttachmentModel.uploaded_by_id == user_id),
            )
        )
        result = await self._session.execute(stmt)
        return bool(result.scalar())

    async def unassign_tickets(self, user_id: UUID) -> int:
        from helpdesk.tickets.infrastructure.models import TicketModel

        stmt = (
            update(TicketModel)
            .where(TicketModel.assigned_to_id == user_id)
            .values(assigned_to_id=None)
        )
        result = await self._session.execute(stmt)
        return result.rowcount or 0
