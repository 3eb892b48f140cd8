"""
System Settings Infrastructure Layer
====================================
"""

from helpdesk.system_settings.infrastructure.models import SettingModel
from helpdesk.system_settings.infrastructure.repositories import SQLAlchemySettingRepository

__all__ = ["SettingModel", "SQLAlchemySettingRepository"]
