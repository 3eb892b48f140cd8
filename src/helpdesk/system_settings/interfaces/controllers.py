"""
System Settings Controllers (API Routes)
========================================

Admin-only key/value settings and the SMTP test email.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk.accounts.domain import Principal
from helpdesk.accounts.interfaces.dependencies import require_admin
from helpdesk.infrastructure.database import get_session, get_session_context
from helpdesk.notifications.infrastructure import StoredEmailSettingsProvider
from helpdesk.system_settings.application import (
    BulkSettingsRequest,
    SendTestEmailRequest,
    SettingResponse,
    SettingService,
    SettingUpsertRequest,
    SettingValueRequest,
    SMTPCheckService,
)
from helpdesk.system_settings.infrastructure import SQLAlchemySettingRepository

router = APIRouter(prefix="/settings", tags=["Settings"])


# ========== Dependencies ==========

async def get_setting_service(session: AsyncSession = Depends(get_session)) -> SettingService:
    """Get setting service instance."""
    return SettingService(SQLAlchemySettingRepository(session))


def get_smtp_check_service(request: Request) -> SMTPCheckService:
    return SMTPCheckService(
        StoredEmailSettingsProvider(get_session_context),
        request.app.state.email_sender,
    )


# ========== Routes ==========

@router.get("", response_model=List[SettingResponse], summary="List settings")
async def list_settings(
    category: Optional[str] = Query(None, description="Filter by category, e.g. 'email'"),
    principal: Principal = Depends(require_admin),
    service: SettingService = Depends(get_setting_service),
):
    return await service.list_settings(category)


@router.post(
    "",
    response_model=SettingResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create or overwrite a setting",
)
async def upsert_setting(
    body: SettingUpsertRequest,
    principal: Principal = Depends(require_admin),
    service: SettingService = Depends(get_setting_service),
    session: AsyncSession = Depends(get_session),
):
    result = await service.upsert(body)
    await session.commit()
    return result


@router.post(
    "/bulk",
    response_model=List[SettingResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Create or overwrite several settings",
)
async def bulk_upsert_settings(
    body: BulkSettingsRequest,
    principal: Principal = Depends(require_admin),
    service: SettingService = Depends(get_setting_service),
    session: AsyncSession = Depends(get_session),
):
    result = await service.bulk_upsert(body.settings)
    await session.commit()
    return result


@router.post("/test-email", summary="Send a test email")
async def send_test_email(
    body: SendTestEmailRequest,
    principal: Principal = Depends(require_admin),
    service: SMTPCheckService = Depends(get_smtp_check_service),
):
    await service.send(body)
    return {"message": "Test email sent successfully"}


@router.get("/{key}", response_model=SettingResponse, summary="Get a setting")
async def get_setting(
    key: str,
    principal: Principal = Depends(require_admin),
    service: SettingService = Depends(get_setting_service),
):
    return await service.get_setting(key)


@router.put("/{key}", response_model=SettingResponse, summary="Change a setting's value")
async def update_setting(
    key: str,
    body: SettingValueRequest,
    principal: Principal = Depends(require_admin),
    service: SettingService = Depends(get_setting_service),
    session: AsyncSession = Depends(get_session),
):
    result = await service.update_value(key, body.value)
    await session.commit()
    return result


settings_router = router
