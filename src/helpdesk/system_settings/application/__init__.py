"""
System Settings Application Layer
=================================
"""

from helpdesk.system_settings.application.dto import (
    BulkSettingsRequest,
    SettingResponse,
    SettingUpsertRequest,
    SettingValueRequest,
    SMTPOverrides,
    SendTestEmailRequest,
)
from helpdesk.system_settings.application.services import (
    ISettingRepository,
    SettingService,
    SMTPCheckService,
)

__all__ = [
    "BulkSettingsRequest",
    "SettingResponse",
    "SettingUpsertRequest",
    "SettingValueRequest",
    "SMTPOverrides",
    "SendTestEmailRequest",
    "ISettingRepository",
    "SettingService",
    "SMTPCheckService",
]
