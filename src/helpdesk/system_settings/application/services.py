"""
System Settings Application Services
====================================
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from helpdesk.core import ResourceNotFoundException, ValidationException
from helpdesk.notifications.application import IEmailSender, IEmailSettingsProvider
from helpdesk.notifications.domain import EmailSettings, build_test_message
from helpdesk.shared.infrastructure.logging import get_logger
from helpdesk.system_settings.application.dto import (
    SettingUpsertRequest,
    SettingResponse,
    SendTestEmailRequest,
)

logger = get_logger(__name__)


# ========== Repository Interfaces (Dependency Inversion) ==========

class ISettingRepository(ABC):
    """Interface for settings data access."""

    @abstractmethod
    async def list(self, category: Optional[str] = None) -> List[Any]:
        """Settings ordered by key, optionally within one category."""

    @abstractmethod
    async def get(self, key: str) -> Optional[Any]:
        """Get setting by key."""

    @abstractmethod
    async def upsert(self, fields: Dict[str, Any]) -> Any:
        """Insert or overwrite the setting with ``fields['key']``."""

    @abstractmethod
    async def update_value(self, key: str, value: str) -> Optional[Any]:
        """Change the value of an existing setting."""


# ========== Application Services ==========

class SettingService:
    """Admin management of key/value settings."""

    def __init__(self, repository: ISettingRepository):
        self._repository = repository

    async def list_settings(self, category: Optional[str] = None) -> List[SettingResponse]:
        rows = await self._repository.list(category)
        return [SettingResponse.model_validate(row) for row in rows]

    async def get_setting(self, key: str) -> SettingResponse:
        row = await self._repository.get(key)
        if row is None:
            raise ResourceNotFoundException("Setting", key)
        return SettingResponse.model_validate(row)

    async def upsert(self, request: SettingUpsertRequest) -> SettingResponse:
        row = await self._repository.upsert(request.model_dump())
        logger.info("Setting saved", extra={"key": request.key, "category": request.category})
        return SettingResponse.model_validate(row)

    async def bulk_upsert(self, requests: List[SettingUpsertRequest]) -> List[SettingResponse]:
        return [await self.upsert(request) for request in requests]

    async def update_value(self, key: str, value: str) -> SettingResponse:
        row = await self._repository.update_value(key, value)
        if row is None:
            raise ResourceNotFoundException("Setting", key)
        logger.info("Setting updated", extra={"key": key})
        return SettingResponse.model_validate(row)


class SMTPCheckService:
    """Sends a one-off email to verify SMTP configuration."""

    def __init__(self, settings_provider: IEmailSettingsProvider, sender: IEmailSender):
        self._settings_provider = settings_provider
        self._sender = sender

    async def send(self, request: SendTestEmailRequest) -> None:
        if request.settings is not None:
            values = request.settings.model_dump(exclude_none=True)
            values["email_notifications_enabled"] = "true"
            email_settings = EmailSettings.from_mapping(values)
        else:
            email_settings = await self._settings_provider.load()

        if not email_settings.is_complete:
            raise ValidationException(
                "SMTP configuration incomplete: host, username and password are required"
            )

        await self._sender.send_now(email_settings, build_test_message(request.email, email_settings))
        logger.info("Test email sent", extra={"recipient": request.email})
