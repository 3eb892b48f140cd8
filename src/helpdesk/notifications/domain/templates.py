"""
Email Templates
===============

Subject/body templates with ``{field}`` placeholders, the SMTP settings
value object, and the rules deciding who receives which email.
"""

import html
import re
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional

from helpdesk.notifications.domain.events import NotificationEvent

PLACEHOLDER = re.compile(r"\{(\w+)\}")
IT_NOTIFICATION_PREFIX = "[IT NOTIFICATION]"
EMAIL_SETTINGS_CATEGORY = "email"

DEFAULT_TEMPLATES: Dict[str, Dict[str, str]] = {
    "ticket_created": {
        "subject": "New Support Ticket Created - #{ticketNumber}",
        "body": (
            "Dear {employeeName},\n\n"
            "Your support ticket has been successfully created.\n\n"
            "Ticket Details:\n"
            "- Ticket Number: {ticketNumber}\n"
            "- Title: {title}\n"
            "- Priority: {priority}\n"
            "- Status: {status}\n"
            "- SLA Deadline: {slaDeadline}\n\n"
            "We will review your ticket and respond as soon as possible.\n\n"
            "Best regards,\n"
            "IT Support Team"
        ),
    },
    "ticket_updated": {
        "subject": "Ticket #{ticketNumber} Status Updated - {newStatus}",
        "body": (
            "Dear {employeeName},\n\n"
            "The status of your support ticket has changed.\n\n"
            "- Ticket Number: {ticketNumber}\n"
            "- Title: {title}\n"
            "- Previous Status: {oldStatus}\n"
            "- New Status: {newStatus}\n"
            "- Updated By: {updatedBy}\n\n"
            "Best regards,\n"
            "IT Support Team"
        ),
    },
    "comment_added": {
        "subject": "New Comment on Ticket #{ticketNumber}",
        "body": (
            "Dear {employeeName},\n\n"
            "{commentAuthor} commented on your ticket {ticketNumber} ({title}):\n\n"
            "{comment}\n\n"
            "Best regards,\n"
            "IT Support Team"
        ),
    },
    "sla_breached": {
        "subject": "SLA Breached - #{ticketNumber} ({priority})",
        "body": (
            "Ticket {ticketNumber} has passed its SLA deadline.\n\n"
            "- Title: {title}\n"
            "- Priority: {priority}\n"
            "- Status: {status}\n"
            "- Requester: {employeeName} ({department})\n"
            "- Created: {createdAt}\n"
            "- SLA Deadline: {slaDeadline}"
        ),
    },
}


def interpolate(template: str, fields: Mapping[str, str]) -> str:
    """Replace ``{key}`` with its value; unknown or empty keys are left as-is."""
    return PLACEHOLDER.sub(lambda match: fields.get(match.group(1)) or match.group(0), template)


def to_html(text: str) -> str:
    """Paragraphs on blank lines, ``<br>`` on single newlines."""
    escaped = html.escape(text)
    paragraphs = [part.replace("\n", "<br>") for part in escaped.split("\n\n") if part]
    return "".join(f"<p>{paragraph}</p>" for paragraph in paragraphs)


@dataclass(frozen=True)
class EmailMessage:
    to: str
    subject: str
    text: str
    html: str


@dataclass(frozen=True)
class EmailSettings:
    """SMTP settings as stored in the ``email`` settings category."""
    enabled: bool
    host: Optional[str]
    port: int
    username: Optional[str]
    password: Optional[str]
    sender_name: str
    sender_email: Optional[str]
    it_team_email: Optional[str]
    templates: Dict[str, str]

    @classmethod
    def from_mapping(cls, values: Mapping[str, Optional[str]]) -> "EmailSettings":
        try:
            port = int(values.get("smtp_port") or 587)
        except ValueError:
            port = 587
        templates = {
            key: value for key, value in values.items()
            if value and (key.endswith("_subject") or key.endswith("_body"))
        }
        return cls(
            enabled=str(values.get("email_notifications_enabled", "true")).lower() == "true",
            host=values.get("smtp_host") or None,
            port=port,
            username=values.get("smtp_username") or None,
            password=values.get("smtp_password") or None,
            sender_name=values.get("sender_name") or "IT Support Team",
            sender_email=values.get("sender_email") or None,
            it_team_email=values.get("it_team_email") or None,
            templates=templates,
        )

    @property
    def is_complete(self) -> bool:
        return bool(self.host and self.username and self.password)

    @property
    def from_address(self) -> str:
        return self.sender_email or self.username or ""

    def template(self, kind: str, part: str) -> str:
        return self.templates.get(f"{kind}_{part}") or DEFAULT_TEMPLATES[kind][part]


def build_messages(event: NotificationEvent, settings: EmailSettings) -> List[EmailMessage]:
    """
    Render the emails an event produces.

    The requester hears about creation, status changes and public
    comments; the IT team gets a copy of new tickets and SLA breaches.
    """
    fields = event.template_fields()
    subject = interpolate(settings.template(event.kind, "subject"), fields)
    body = interpolate(settings.template(event.kind, "body"), fields)

    messages = []
    if event.kind != "sla_breached":
        messages.append(EmailMessage(
            to=event.ticket.employee_email,
            subject=subject,
            text=body,
            html=to_html(body),
        ))

    if settings.it_team_email and event.kind in ("ticket_created", "sla_breached"):
        it_body = f"IT Team Notification:\n\n{body}"
        messages.append(EmailMessage(
            to=settings.it_team_email,
            subject=f"{IT_NOTIFICATION_PREFIX} {subject}",
            text=it_body,
            html=to_html(it_body),
        ))

    return messages


def build_test_message(to: str, settings: EmailSettings) -> EmailMessage:
    text = (
        "This is a test email from your IT Support ticketing system.\n\n"
        "If you received this email, your SMTP configuration is working correctly!\n\n"
        "Configuration details:\n"
        f"- SMTP Host: {settings.host}\n"
        f"- SMTP Port: {settings.port}\n"
        f"- Sender: {settings.sender_name} <{settings.from_address}>\n\n"
        "Best regards,\n"
        f"{settings.sender_name}"
    )
    return EmailMessage(
        to=to,
        subject="IT Support System - Test Email Configuration",
        text=text,
        html=to_html(text),
    )
