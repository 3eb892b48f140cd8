"""
Unit tests for email rendering and delivery.
"""

import asyncio
import smtplib
from datetime import datetime, timezone

import pytest

from helpdesk.core import EmailDeliveryException
from helpdesk.notifications.application import IEmailSender, IEmailSettingsProvider, NotificationService
from helpdesk.notifications.domain import (
    CommentAddedEvent,
    EmailMessage,
    EmailSettings,
    SLABreachedEvent,
    TicketCreatedEvent,
    TicketSnapshot,
    TicketStatusChangedEvent,
    build_messages,
    build_test_message,
    interpolate,
    to_html,
)
from helpdesk.notifications.infrastructure import (
    CircuitBreaker,
    CircuitState,
    NotificationDispatcher,
    SMTPEmailSender,
)

SMTP_VALUES = {
    "smtp_host": "smtp.company.local",
    "smtp_port": "587",
    "smtp_username": "helpdesk",
    "smtp_password": "secret",
    "sender_name": "IT Support Team",
    "sender_email": "helpdesk@company.com",
    "it_team_email": "it-team@company.com",
}


def make_snapshot(**overrides) -> TicketSnapshot:
    values = dict(
        ticket_number="TKT-007",
        title="VPN drops every hour",
        description="Connection resets at :00",
        category="Network",
        priority="high",
        status="in_progress",
        employee_name="Jane Doe",
        employee_email="jane.doe@company.com",
        employee_department="Finance",
        created_at=datetime(2024, 1, 15, 10, 0, tzinfo=timezone.utc),
        sla_deadline=datetime(2024, 1, 15, 14, 0, tzinfo=timezone.utc),
    )
    values.update(overrides)
    return TicketSnapshot(**values)


class RecordingSender(IEmailSender):

    def __init__(self):
        self.sent = []

    async def send(self, settings, message):
        self.sent.append(message)
        return True

    async def send_now(self, settings, message):
        self.sent.append(message)


class StaticSettingsProvider(IEmailSettingsProvider):

    def __init__(self, values):
        self.values = values

    async def load(self):
        return EmailSettings.from_mapping(self.values)


@pytest.mark.unit
class TestTemplates:

    def test_interpolate_leaves_unknown_placeholders(self):
        assert interpolate("#{ticketNumber} by {nobody}", {"ticketNumber": "TKT-001"}) == "#TKT-001 by {nobody}"

    def test_to_html_paragraphs_and_breaks(self):
        assert to_html("Hello <b>\nline two\n\nNext") == "<p>Hello &lt;b&gt;<br>line two</p><p>Next</p>"

    def test_settings_defaults(self):
        settings = EmailSettings.from_mapping({"smtp_port": "not-a-number"})

        assert settings.port == 587
        assert settings.enabled
        assert not settings.is_complete
        assert settings.sender_name == "IT Support Team"

    def test_created_event_goes_to_requester_and_it_team(self):
        settings = EmailSettings.from_mapping(SMTP_VALUES)

        messages = build_messages(TicketCreatedEvent(ticket=make_snapshot()), settings)

        assert [message.to for message in messages] == ["jane.doe@company.com", "it-team@company.com"]
        assert messages[0].subject == "New Support Ticket Created - #TKT-007"
        assert messages[1].subject.startswith("[IT NOTIFICATION] ")
        assert messages[1].text.startswith("IT Team Notification:")

    def test_status_change_uses_humanized_statuses(self):
        settings = EmailSettings.from_mapping(SMTP_VALUES)
        event = TicketStatusChangedEvent(
            ticket=make_snapshot(status="resolved"),
            old_status="in_progress",
            new_status="resolved",
            changed_by="Alex Agent",
        )

        messages = build_messages(event, settings)

        assert len(messages) == 1
        assert messages[0].subject == "Ticket #TKT-007 Status Updated - Resolved"
        assert "Previous Status: In Progress" in messages[0].text
        assert "Updated By: Alex Agent" in messages[0].text

    def test_stored_template_overrides_default(self):
        values = dict(SMTP_VALUES, comment_added_subject="Reply on {ticketNumber}: {commentAuthor}")
        settings = EmailSettings.from_mapping(values)
        event = CommentAddedEvent(ticket=make_snapshot(), comment="Please reboot", author="Alex Agent")

        messages = build_messages(event, settings)

        assert messages[0].subject == "Reply on TKT-007: Alex Agent"
        assert "Please reboot" in messages[0].text

    def test_breach_goes_to_it_team_only(self):
        settings = EmailSettings.from_mapping(SMTP_VALUES)

        messages = build_messages(SLABreachedEvent(ticket=make_snapshot()), settings)

        assert [message.to for message in messages] == ["it-team@company.com"]

    def test_breach_without_it_team_sends_nothing(self):
        values = dict(SMTP_VALUES, it_team_email="")
        settings = EmailSettings.from_mapping(values)

        assert build_messages(SLABreachedEvent(ticket=make_snapshot()), settings) == []

    def test_test_message_mentions_configuration(self):
        settings = EmailSettings.from_mapping(SMTP_VALUES)

        message = build_test_message("ops@company.com", settings)

        assert message.to == "ops@company.com"
        assert "SMTP Host: smtp.company.local" in message.text


@pytest.mark.unit
class TestNotificationService:

    async def test_sends_every_rendered_message(self):
        sender = RecordingSender()
        service = NotificationService(StaticSettingsProvider(SMTP_VALUES), sender)

        sent = await service.handle(TicketCreatedEvent(ticket=make_snapshot()))

        assert sent == 2
        assert len(sender.sent) == 2

    async def test_disabled_notifications_send_nothing(self):
        sender = RecordingSender()
        values = dict(SMTP_VALUES, email_notifications_enabled="false")
        service = NotificationService(StaticSettingsProvider(values), sender)

        assert await service.handle(TicketCreatedEvent(ticket=make_snapshot())) == 0
        assert sender.sent == []

    async def test_incomplete_smtp_settings_send_nothing(self):
        sender = RecordingSender()
        service = NotificationService(StaticSettingsProvider({"smtp_host": "smtp.company.local"}), sender)

        assert await service.handle(TicketCreatedEvent(ticket=make_snapshot())) == 0
        assert sender.sent == []


@pytest.mark.unit
class TestCircuitBreaker:

    def test_opens_after_threshold(self):
        breaker = CircuitBreaker(failure_threshold=2, recovery_timeout=60)

        breaker.record_failure()
        assert breaker.allow_request()
        breaker.record_failure()

        assert breaker.state == CircuitState.OPEN
        assert not breaker.allow_request()

    def test_half_open_after_recovery_timeout(self):
        breaker = CircuitBreaker(failure_threshold=1, recovery_timeout=0)

        breaker.record_failure()

        assert breaker.state == CircuitState.HALF_OPEN
        breaker.record_success()
        assert breaker.state == CircuitState.CLOSED


@pytest.mark.unit
class TestSMTPEmailSender:

    @pytest.fixture
    def message(self):
        return EmailMessage(to="jane.doe@company.com", subject="Hi", text="Body", html="<p>Body</p>")

    @pytest.fixture
    def settings(self):
        return EmailSettings.from_mapping(SMTP_VALUES)

    def test_mime_has_plain_and_html_parts(self, settings, message):
        mime = SMTPEmailSender()._build_mime(settings, message)

        assert mime["From"] == "IT Support Team <helpdesk@company.com>"
        assert mime["To"] == "jane.doe@company.com"
        assert [part.get_content_type() for part in mime.get_payload()] == ["text/plain", "text/html"]

    async def test_retries_until_delivered(self, monkeypatch, settings, message):
        sender = SMTPEmailSender(max_retries=3, retry_base_seconds=0)
        attempts = []

        def flaky_deliver(settings, message):
            attempts.append(message.to)
            if len(attempts) < 3:
                raise smtplib.SMTPServerDisconnected("connection lost")

        monkeypatch.setattr(sender, "_deliver", flaky_deliver)

        assert await sender.send(settings, message) is True
        assert len(attempts) == 3

    async def test_gives_up_and_opens_circuit(self, monkeypatch, settings, message):
        breaker = CircuitBreaker(failure_threshold=1, recovery_timeout=60)
        sender = SMTPEmailSender(max_retries=2, retry_base_seconds=0, circuit_breaker=breaker)
        attempts = []

        def failing_deliver(settings, message):
            attempts.append(message.to)
            raise ConnectionRefusedError("no server")

        monkeypatch.setattr(sender, "_deliver", failing_deliver)

        assert await sender.send(settings, message) is False
        assert len(attempts) == 2
        assert breaker.state == CircuitState.OPEN

        assert await sender.send(settings, message) is False
        assert len(attempts) == 2

    async def test_send_now_surfaces_errors(self, monkeypatch, settings, message):
        sender = SMTPEmailSender()

        def failing_deliver(settings, message):
            raise smtplib.SMTPAuthenticationError(535, b"bad credentials")

        monkeypatch.setattr(sender, "_deliver", failing_deliver)

        with pytest.raises(EmailDeliveryException):
            await sender.send_now(settings, message)


@pytest.mark.unit
class TestNotificationDispatcher:

    async def test_handles_submitted_events(self):
        handled = []

        async def handler(event):
            handled.append(event.ticket.ticket_number)

        dispatcher = NotificationDispatcher(handler, queue_size=10, workers=2)
        await dispatcher.start()
        assert dispatcher.submit(TicketCreatedEvent(ticket=make_snapshot(ticket_number="TKT-001")))
        assert dispatcher.submit(TicketCreatedEvent(ticket=make_snapshot(ticket_number="TKT-002")))
        await dispatcher.join()
        await dispatcher.stop()

        assert sorted(handled) == ["TKT-001", "TKT-002"]
        assert not dispatcher.is_running

    async def test_handler_errors_do_not_stop_workers(self):
        handled = []

        async def handler(event):
            if event.ticket.ticket_number == "TKT-001":
                raise RuntimeError("boom")
            handled.append(event.ticket.ticket_number)

        dispatcher = NotificationDispatcher(handler, workers=1)
        await dispatcher.start()
        dispatcher.submit(TicketCreatedEvent(ticket=make_snapshot(ticket_number="TKT-001")))
        dispatcher.submit(TicketCreatedEvent(ticket=make_snapshot(ticket_number="TKT-002")))
        await dispatcher.join()
        await dispatcher.stop()

        assert handled == ["TKT-002"]

    async def test_full_queue_drops_events(self):
        release = asyncio.Event()

        async def handler(event):
            await release.wait()

        dispatcher = NotificationDispatcher(handler, queue_size=1, workers=1)
        await dispatcher.start()

        assert dispatcher.submit(TicketCreatedEvent(ticket=make_snapshot()))
        assert not dispatcher.submit(TicketCreatedEvent(ticket=make_snapshot()))

        release.set()
        await dispatcher.stop()

    def test_submit_before_start_is_rejected(self):
        async def handler(event):
            return None

        dispatcher = NotificationDispatcher(handler)

        assert not dispatcher.submit(TicketCreatedEvent(ticket=make_snapshot()))
