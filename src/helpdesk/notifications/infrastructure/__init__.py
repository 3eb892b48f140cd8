"""
Notifications Infrastructure Layer
==================================

Contains:
- SMTPEmailSender with CircuitBreaker
- NotificationDispatcher (bounded queue + workers)
- StoredEmailSettingsProvider
"""

from helpdesk.notifications.infrastructure.external import (
    CircuitBreaker,
    CircuitState,
    NotificationDispatcher,
    SMTPEmailSender,
    StoredEmailSettingsProvider,
)

__all__ = [
    "CircuitBreaker",
    "CircuitState",
    "NotificationDispatcher",
    "SMTPEmailSender",
    "StoredEmailSettingsProvider",
]
