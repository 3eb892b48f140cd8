"""
Notifications Application Layer
===============================

Contains:
- NotificationService: event -> rendered emails -> sender
- Interfaces for the publisher, sender and settings provider
"""

from helpdesk.notifications.application.services import (
    IEmailSender,
    IEmailSettingsProvider,
    INotificationPublisher,
    NotificationService,
)

__all__ = [
    "IEmailSender",
    "IEmailSettingsProvider",
    "INotificationPublisher",
    "NotificationService",
]
