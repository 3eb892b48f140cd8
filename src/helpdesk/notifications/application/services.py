"""
Notification Application Services
=================================

Turns ticket events into emails. Runs on the background dispatcher,
never inside an HTTP request.
"""

from abc import ABC, abstractmethod

from helpdesk.notifications.domain import (
    EmailMessage,
    EmailSettings,
    NotificationEvent,
    build_messages,
)
from helpdesk.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


# ========== Interfaces (Dependency Inversion) ==========

class INotificationPublisher(ABC):
    """Accepts events for asynchronous delivery."""

    @abstractmethod
    def submit(self, event: NotificationEvent) -> bool:
        """Queue an event; returns False if it was rejected."""


class IEmailSender(ABC):
    """Delivers a rendered email."""

    @abstractmethod
    async def send(self, settings: EmailSettings, message: EmailMessage) -> bool:
        """Deliver with retries; returns False once attempts are exhausted."""

    @abstractmethod
    async def send_now(self, settings: EmailSettings, message: EmailMessage) -> None:
        """Single attempt that raises EmailDeliveryException on failure."""


class IEmailSettingsProvider(ABC):
    """Reads current SMTP settings and templates."""

    @abstractmethod
    async def load(self) -> EmailSettings:
        """Current email settings."""


# ========== Application Services ==========

class NotificationService:
    """Renders an event and hands each email to the sender."""

    def __init__(self, settings_provider: IEmailSettingsProvider, sender: IEmailSender):
        self._settings_provider = settings_provider
        self._sender = sender

    async def handle(self, event: NotificationEvent) -> int:
        """
        Deliver the emails for one event.

        Returns:
            Number of emails sent
        """
        settings = await self._settings_provider.load()
        if not settings.enabled:
            logger.debug("Email notifications disabled", extra={"kind": event.kind})
            return 0
        if not settings.is_complete:
            logger.info(
                "SMTP not configured, skipping notification",
                extra={"kind": event.kind, "ticket_number": event.ticket.ticket_number}
            )
            return 0

        sent = 0
        for message in build_messages(event, settings):
            if await self._sender.send(settings, message):
                sent += 1
        logger.info(
            "Notification processed",
            extra={"kind": event.kind, "ticket_number": event.ticket.ticket_number, "sent": sent}
        )
        return sent
