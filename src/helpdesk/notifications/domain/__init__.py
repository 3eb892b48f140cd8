"""
Notifications Domain Layer
==========================

Contains:
- Events: ticket created / status changed / comment added / SLA breached
- Templates: placeholder interpolation, HTML conversion, recipient rules
- EmailSettings value object
"""

from helpdesk.notifications.domain.events import (
    CommentAddedEvent,
    NotificationEvent,
    SLABreachedEvent,
    TicketCreatedEvent,
    TicketSnapshot,
    TicketStatusChangedEvent,
)
from helpdesk.notifications.domain.templates import (
    DEFAULT_TEMPLATES,
    EMAIL_SETTINGS_CATEGORY,
    EmailMessage,
    EmailSettings,
    build_messages,
    build_test_message,
    interpolate,
    to_html,
)

__all__ = [
    # Events
    "CommentAddedEvent",
    "NotificationEvent",
    "SLABreachedEvent",
    "TicketCreatedEvent",
    "TicketSnapshot",
    "TicketStatusChangedEvent",
    # Templates
    "DEFAULT_TEMPLATES",
    "EMAIL_SETTINGS_CATEGORY",
    "EmailMessage",
    "EmailSettings",
    "build_messages",
    "build_test_message",
    "interpolate",
    "to_html",
]
