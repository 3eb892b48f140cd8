"""
Ticket Infrastructure Repositories
==================================

Concrete implementations of repository interfaces using SQLAlchemy.

This layer contains the data access logic - how we store and retrieve
tickets and their child records.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import and_, case, func, or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk.accounts.infrastructure.models import UserModel
from helpdesk.config import TERMINAL_STATUSES, VALID_STATUSES
from helpdesk.core import RepositoryException
from helpdesk.shared.infrastructure.logging import get_logger
from helpdesk.tickets.application.services import (
    IAttachmentRepository,
    IAuditLogRepository,
    ICommentRepository,
    ITicketRepository,
)
from helpdesk.tickets.domain import TicketNumber
from helpdesk.tickets.infrastructure.models import (
    AttachmentModel,
    AuditLogModel,
    CommentModel,
    TicketModel,
)

logger = get_logger(__name__)

MAX_NUMBER_ATTEMPTS = 5

SEARCH_COLUMNS = (
    TicketModel.title,
    TicketModel.description,
    TicketModel.ticket_number,
    TicketModel.employee_name,
)


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class SQLAlchemyTicketRepository(ITicketRepository):
    """
    SQLAlchemy implementation of ticket repository.

    Ticket numbers come from a unique ``sequence`` column: the next value
    is read, inserted inside a SAVEPOINT, and re-read if another request
    claimed it first.
    """

    def __init__(self, session: AsyncSession):
        self._session = session

    async def _next_sequence(self) -> int:
        result = await self._session.execute(select(func.max(TicketModel.sequence)))
        return (result.scalar() or 0) + 1

    async def create(self, fields: Dict[str, Any]) -> TicketModel:
        """Create new ticket."""
        for attempt in range(MAX_NUMBER_ATTEMPTS):
            sequence = await self._next_sequence()
            model = TicketModel(
                sequence=sequence,
                ticket_number=TicketNumber.format(sequence),
                **fields
            )
            try:
                async with self._session.begin_nested():
                    self._session.add(model)
                return model
            except IntegrityError:
                logger.warning(
                    "Ticket number taken, retrying",
                    extra={"sequence": sequence, "attempt": attempt + 1}
                )

        raise RepositoryException(
            f"Could not allocate a ticket number after {MAX_NUMBER_ATTEMPTS} attempts"
        )

    async def get_by_id(self, ticket_id: UUID) -> Optional[TicketModel]:
        """Get ticket by internal ID."""
        return await self._session.get(TicketModel, ticket_id)

    async def get_for_update(self, ticket_id: UUID) -> Optional[TicketModel]:
        stmt = (
            select(TicketModel)
            .where(TicketModel.id == ticket_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def save(self, ticket: TicketModel) -> TicketModel:
        await self._session.flush()
        return ticket

    def _conditions(self, filters: dict) -> List[Any]:
        conditions = []
        for key in ("status", "priority", "assigned_to_id", "created_by_id"):
            if key in filters:
                conditions.append(getattr(TicketModel, key) == filters[key])

        if "department" in filters:
            conditions.append(TicketModel.employee_department == filters["department"])

        if filters.get("search"):
            pattern = f"%{_escape_like(filters['search'].strip())}%"
            conditions.append(or_(*(
                column.ilike(pattern, escape="\\") for column in SEARCH_COLUMNS
            )))
        return conditions

    async def list(
        self,
        filters: dict,
        limit: int = 20,
        offset: int = 0
    ) -> Tuple[List[TicketModel], int]:
        """List tickets with filters, newest first."""
        conditions = self._conditions(filters)

        count_stmt = select(func.count()).select_from(TicketModel)
        stmt = select(TicketModel)
        if conditions:
            count_stmt = count_stmt.where(and_(*conditions))
            stmt = stmt.where(and_(*conditions))

        total = (await self._session.execute(count_stmt)).scalar_one()

        stmt = stmt.order_by(TicketModel.created_at.desc(), TicketModel.sequence.desc())
        stmt = stmt.limit(limit).offset(offset)
        result = await self._session.execute(stmt)
        return list(result.scalars().all()), total

    async def stats(self, now: datetime, created_by_id: Optional[UUID] = None) -> Dict[str, int]:
        columns = [func.count(TicketModel.id).label("total")]
        for status in VALID_STATUSES:
            columns.append(func.sum(case((TicketModel.status == status, 1), else_=0)).label(status))
        columns.append(func.sum(case(
            (and_(TicketModel.sla_deadline < now, TicketModel.status.not_in(TERMINAL_STATUSES)), 1),
            else_=0,
        )).label("sla_breaches"))

        stmt = select(*columns)
        if created_by_id is not None:
            stmt = stmt.where(TicketModel.created_by_id == created_by_id)

        row = (await self._session.execute(stmt)).mappings().one()
        return {key: int(value or 0) for key, value in row.items()}

    async def list_newly_breached(self, now: datetime) -> List[TicketModel]:
        stmt = (
            select(TicketModel)
            .where(
                TicketModel.sla_deadline < now,
                TicketModel.status.not_in(TERMINAL_STATUSES),
                TicketModel.sla_breach_notified_at.is_(None),
            )
            .order_by(TicketModel.sla_deadline.asc())
            .with_for_update(skip_locked=True)
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def delete(self, ticket: TicketModel) -> None:
        await self._session.delete(ticket)
        await self._session.flush()


class SQLAlchemyCommentRepository(ICommentRepository):
    """Comments are append-only."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def add(self, fields: Dict[str, Any]) -> CommentModel:
        model = CommentModel(**fields)
        self._session.add(model)
        await self._session.flush()
        return model

    async def list_for_ticket(
        self, ticket_id: UUID, include_internal: bool
    ) -> List[Tuple[CommentModel, Optional[str]]]:
        stmt = (
            select(CommentModel, UserModel.name)
            .outerjoin(UserModel, UserModel.id == CommentModel.user_id)
            .where(CommentModel.ticket_id == ticket_id)
            .order_by(CommentModel.created_at.asc())
        )
        if not include_internal:
            stmt = stmt.where(CommentModel.is_internal.is_(False))
        result = await self._session.execute(stmt)
        return [(comment, name) for comment, name in result.all()]


class SQLAlchemyAttachmentRepository(IAttachmentRepository):

    def __init__(self, session: AsyncSession):
        self._session = session

    async def add(self, fields: Dict[str, Any]) -> AttachmentModel:
        model = AttachmentModel(**fields)
        self._session.add(model)
        await self._session.flush()
        return model

    async def get_by_id(self, attachment_id: UUID) -> Optional[AttachmentModel]:
        return await self._session.get(AttachmentModel, attachment_id)

    async def list_for_ticket(self, ticket_id: UUID) -> List[AttachmentModel]:
        stmt = (
            select(AttachmentModel)
            .where(AttachmentModel.ticket_id == ticket_id)
            .order_by(AttachmentModel.created_at.asc())
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())


class SQLAlchemyAuditLogRepository(IAuditLogRepository):
    """
    Audit writes are best-effort.

    Each entry goes in its own SAVEPOINT; a failed write is logged and
    rolled back without affecting the surrounding ticket change.
    """

    def __init__(self, session: AsyncSession):
        self._session = session

    async def add(self, fields: Dict[str, Any]) -> Optional[AuditLogModel]:
        model = AuditLogModel(**fields)
        try:
            async with self._session.begin_nested():
                self._session.add(model)
        except SQLAlchemyError as e:
            logger.error(
                "Audit log write failed",
                extra={"ticket_id": str(fields.get("ticket_id")), "action": fields.get("action"), "error": str(e)}
            )
            return None
        return model

    async def list_for_ticket(self, ticket_id: UUID) -> List[AuditLogModel]:
        stmt = (
            select(AuditLogModel)
            .where(AuditLogModel.ticket_id == ticket_id)
            .order_by(AuditLogModel.created_at.desc())
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())
