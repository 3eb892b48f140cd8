"""
System Settings Repositories
============================

Upserts use the dialect's ``INSERT ... ON CONFLICT (key) DO UPDATE``.
"""

from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk.core import ConfigurationException
from helpdesk.infrastructure.database import utcnow
from helpdesk.system_settings.application.services import ISettingRepository
from helpdesk.system_settings.infrastructure.models import SettingModel

UPSERT_DIALECTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


class SQLAlchemySettingRepository(ISettingRepository):
    """Handles persistence of settings using async SQLAlchemy."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def list(self, category: Optional[str] = None) -> List[SettingModel]:
        stmt = select(SettingModel).order_by(SettingModel.key.asc())
        if category:
            stmt = stmt.where(SettingModel.category == category)
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def get(self, key: str) -> Optional[SettingModel]:
        stmt = (
            select(SettingModel)
            .where(SettingModel.key == key)
            .execution_options(populate_existing=True)
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def upsert(self, fields: Dict[str, Any]) -> SettingModel:
        dialect = self._session.get_bind().dialect.name
        insert = UPSERT_DIALECTS.get(dialect)
        if insert is None:
            raise ConfigurationException(f"Settings upsert is not supported on {dialect}")

        now = utcnow()
        stmt = insert(SettingModel).values(**fields, updated_at=now)
        stmt = stmt.on_conflict_do_update(
            index_elements=[SettingModel.key],
            set_={
                "value": stmt.excluded.value,
                "category": stmt.excluded.category,
                "description": stmt.excluded.description,
                "updated_at": now,
            },
        )
        await self._session.execute(stmt)
        return await self.get(fields["key"])

    async def update_value(self, key: str, value: str) -> Optional[SettingModel]:
        setting = await self.get(key)
        if setting is None:
            return None
        setting.value = value
        setting.updated_at = utcnow()
        await self._session.flush()
        return setting
