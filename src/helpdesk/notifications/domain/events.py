"""
Notification Events
===================

Immutable descriptions of what happened to a ticket, captured at commit
time so background workers never touch request-scoped ORM objects.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class TicketSnapshot:
    """Ticket fields needed to render an email."""
    ticket_number: str
    title: str
    description: str
    category: str
    priority: str
    status: str
    employee_name: str
    employee_email: str
    employee_department: Optional[str]
    created_at: datetime
    sla_deadline: datetime

    @classmethod
    def from_ticket(cls, ticket: Any) -> "TicketSnapshot":
        return cls(
            ticket_number=ticket.ticket_number,
            title=ticket.title,
            description=ticket.description,
            category=ticket.category,
            priority=ticket.priority,
            status=ticket.status,
            employee_name=ticket.employee_name,
            employee_email=ticket.employee_email,
            employee_department=ticket.employee_department,
            created_at=ticket.created_at,
            sla_deadline=ticket.sla_deadline,
        )

    def template_fields(self) -> Dict[str, str]:
        """Placeholder values, keyed the way templates reference them."""
        return {
            "ticketNumber": self.ticket_number,
            "title": self.title,
            "description": self.description,
            "category": self.category,
            "priority": self.priority.title(),
            "status": _humanize(self.status),
            "employeeName": self.employee_name,
            "employeeEmail": self.employee_email,
            "department": self.employee_department or "",
            "createdAt": self.created_at.strftime("%Y-%m-%d %H:%M UTC"),
            "slaDeadline": self.sla_deadline.strftime("%Y-%m-%d %H:%M UTC"),
        }


def _humanize(value: str) -> str:
    return value.replace("_", " ").title()


@dataclass(frozen=True)
class NotificationEvent:
    """Base class; ``kind`` selects the template pair."""
    ticket: TicketSnapshot
    kind: str = field(init=False, default="")

    def template_fields(self) -> Dict[str, str]:
        return self.ticket.template_fields()


@dataclass(frozen=True)
class TicketCreatedEvent(NotificationEvent):
    kind: str = field(init=False, default="ticket_created")


@dataclass(frozen=True)
class TicketStatusChangedEvent(NotificationEvent):
    old_status: str = ""
    new_status: str = ""
    changed_by: str = ""
    kind: str = field(init=False, default="ticket_updated")

    def template_fields(self) -> Dict[str, str]:
        fields = super().template_fields()
        fields.update(
            oldStatus=_humanize(self.old_status),
            newStatus=_humanize(self.new_status),
            updatedBy=self.changed_by,
        )
        return fields


@dataclass(frozen=True)
class CommentAddedEvent(NotificationEvent):
    comment: str = ""
    author: str = ""
    kind: str = field(init=False, default="comment_added")

    def template_fields(self) -> Dict[str, str]:
        fields = super().template_fields()
        fields.update(comment=self.comment, commentAuthor=self.author)
        return fields


@dataclass(frozen=True)
class SLABreachedEvent(NotificationEvent):
    kind: str = field(init=False, default="sla_breached")
