"""
Activity Infrastructure Repositories
====================================
"""

from typing import Any, Dict, List, Tuple

from sqlalchemy import and_, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk.activity.application.services import IActivityLogRepository
from helpdesk.activity.infrastructure.models import ActivityLogModel


class SQLAlchemyActivityLogRepository(IActivityLogRepository):
    """Append-only persistence for activity entries."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def add(self, fields: Dict[str, Any]) -> ActivityLogModel:
        model = ActivityLogModel(**fields)
        self._session.add(model)
        await self._session.flush()
        return model

    async def list(
        self,
        filters: dict,
        limit: int = 50,
        offset: int = 0
    ) -> Tuple[List[ActivityLogModel], int]:
        conditions = []
        if "user_id" in filters:
            conditions.append(ActivityLogModel.user_id == filters["user_id"])
        if "action" in filters:
            conditions.append(ActivityLogModel.action == filters["action"])

        count_stmt = select(func.count()).select_from(ActivityLogModel)
        stmt = select(ActivityLogModel)
        if conditions:
            count_stmt = count_stmt.where(and_(*conditions))
            stmt = stmt.where(and_(*conditions))

        total = (await self._session.execute(count_stmt)).scalar_one()

        stmt = stmt.order_by(ActivityLogModel.created_at.desc()).limit(limit).offset(offset)
        result = await self._session.execute(stmt)
        return list(result.scalars().all()), total
