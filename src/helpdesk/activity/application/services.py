"""
Activity Application Services
=============================

Best-effort recording and admin listing of user activity.
"""

import json
from abc import ABC, abstractmethod
from typing import Any, AsyncContextManager, Callable, Dict, List, Optional, Tuple
from uuid import UUID

from helpdesk.activity.application.dto import (
    ActivityEntry,
    ActivityLogListResponse,
    ActivityLogResponse,
)
from helpdesk.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


# ========== Repository Interfaces (Dependency Inversion) ==========

class IActivityLogRepository(ABC):
    """Interface for activity log data access."""

    @abstractmethod
    async def add(self, fields: Dict[str, Any]) -> Any:
        """Append one entry."""

    @abstractmethod
    async def list(
        self,
        filters: dict,
        limit: int = 50,
        offset: int = 0
    ) -> Tuple[List[Any], int]:
        """Entries newest first plus the total matching count."""


def entry_to_fields(entry: ActivityEntry) -> Dict[str, Any]:
    return {
        "user_id": entry.user_id,
        "action": entry.action,
        "resource": entry.resource,
        "resource_id": entry.resource_id,
        "method": entry.method,
        "endpoint": entry.endpoint[:500] if entry.endpoint else None,
        "user_agent": entry.user_agent[:500] if entry.user_agent else None,
        "ip_address": entry.ip_address,
        "correlation_id": entry.correlation_id,
        "details": json.dumps(entry.details, default=str) if entry.details else None,
        "success": entry.success,
        "error_message": entry.error_message,
        "duration_ms": entry.duration_ms,
    }


# ========== Application Services ==========

class ActivityLogger:
    """
    Writes activity entries in their own short transaction.

    Recording never fails the caller: errors are logged and dropped.
    """

    def __init__(
        self,
        session_factory: Callable[[], AsyncContextManager],
        repository_factory: Callable[[Any], IActivityLogRepository],
        enabled: bool = True,
    ):
        self._session_factory = session_factory
        self._repository_factory = repository_factory
        self.enabled = enabled

    async def record(self, entry: ActivityEntry) -> bool:
        if not self.enabled:
            return False
        try:
            async with self._session_factory() as session:
                await self._repository_factory(session).add(entry_to_fields(entry))
        except Exception as e:
            logger.warning(
                "Failed to record activity",
                extra={"action": entry.action, "endpoint": entry.endpoint, "error": str(e)}
            )
            return False
        return True


class ActivityLogService:
    """Request-scoped access to the activity log."""

    def __init__(self, repository: IActivityLogRepository):
        self._repo = repository

    async def add(self, entry: ActivityEntry) -> Any:
        return await self._repo.add(entry_to_fields(entry))

    async def list_logs(
        self,
        user_id: Optional[UUID] = None,
        action: Optional[str] = None,
        page: int = 1,
        limit: int = 50,
    ) -> ActivityLogListResponse:
        filters = {}
        if user_id is not None:
            filters["user_id"] = user_id
        if action:
            filters["action"] = action

        rows, total = await self._repo.list(filters, limit=limit, offset=(page - 1) * limit)
        return ActivityLogListResponse(
            logs=[_to_response(row) for row in rows],
            total=total,
            page=page,
            limit=limit,
        )


def _to_response(row: Any) -> ActivityLogResponse:
    details = None
    if row.details:
        try:
            details = json.loads(row.details)
        except ValueError:
            details = {"raw": row.details}
    return ActivityLogResponse(
        id=row.id,
        user_id=row.user_id,
        action=row.action,
        resource=row.resource,
        resource_id=row.resource_id,
        method=row.method,
        endpoint=row.endpoint,
        user_agent=row.user_agent,
        ip_address=row.ip_address,
        correlation_id=row.correlation_id,
        details=details,
        success=row.success,
        error_message=row.error_message,
        duration_ms=row.duration_ms,
        created_at=row.created_at,
    )
