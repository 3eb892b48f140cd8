"""
System Settings Interfaces Layer
================================
"""

from helpdesk.system_settings.interfaces.controllers import settings_router

__all__ = ["settings_router"]
