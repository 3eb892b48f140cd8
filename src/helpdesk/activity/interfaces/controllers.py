"""
Activity Controllers (API Routes)
=================================

Admin listing of activity entries and client-side event capture.
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk.accounts.domain import Principal
from helpdesk.accounts.interfaces.dependencies import get_current_principal, require_admin
from helpdesk.activity.application.dto import (
    ActivityEntry,
    ActivityLogListResponse,
    ClientActivityRequest,
)
from helpdesk.activity.application.services import ActivityLogService
from helpdesk.activity.infrastructure.repositories import SQLAlchemyActivityLogRepository
from helpdesk.activity.interfaces.middleware import client_ip
from helpdesk.infrastructure.database import get_session

router = APIRouter(prefix="/activity-logs", tags=["Activity"])


# ========== Dependencies ==========

async def get_activity_service(
    session: AsyncSession = Depends(get_session)
) -> ActivityLogService:
    return ActivityLogService(SQLAlchemyActivityLogRepository(session))


# ========== Route Handlers ==========

@router.get("", response_model=ActivityLogListResponse, summary="List activity entries")
async def list_activity_logs(
    user_id: Optional[UUID] = Query(None, alias="userId"),
    action: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    principal: Principal = Depends(require_admin),
    service: ActivityLogService = Depends(get_activity_service),
):
    return await service.list_logs(user_id=user_id, action=action, page=page, limit=limit)


@router.post("", status_code=status.HTTP_201_CREATED, summary="Record a client-side event")
async def record_client_activity(
    body: ClientActivityRequest,
    request: Request,
    principal: Principal = Depends(get_current_principal),
    service: ActivityLogService = Depends(get_activity_service),
    session: AsyncSession = Depends(get_session),
):
    entry = await service.add(ActivityEntry(
        action=body.action,
        user_id=principal.id,
        resource=body.resource,
        resource_id=body.resource_id,
        method=request.method,
        endpoint=request.url.path,
        user_agent=request.headers.get("User-Agent"),
        ip_address=client_ip(request),
        correlation_id=getattr(request.state, "correlation_id", None),
        details=body.details,
    ))
    await session.commit()
    return {"id": str(entry.id)}


# Export router for inclusion in main app
activity_router = router
