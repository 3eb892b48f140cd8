"""
Ticket Domain Entities
======================

Lifecycle rules applied to a ticket, independent of how it is stored.

The functions operate on any object exposing the ticket attributes
(the ORM model in production, simple namespaces in tests).
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from helpdesk.config import TERMINAL_STATUSES, TicketStatus
from helpdesk.tickets.domain.value_objects import FieldChange, StatusTransition

UPDATABLE_FIELDS = ("title", "description", "category", "priority", "status", "assigned_to_id")

# Fields whose changes are written to the audit trail
TRACKED_FIELDS = ("status", "priority", "assigned_to_id")


class TicketLifecycle:
    """
    Ticket state rules.

    Any status may move to any other; closed tickets reopen through the
    same update path.
    """

    INITIAL_STATUS = TicketStatus.OPEN

    @staticmethod
    def apply_update(ticket: Any, changes: Dict[str, Any], now: datetime) -> List[FieldChange]:
        """
        Apply a partial update in place.

        ``updated_at`` is always refreshed; an incoming resolved/closed
        status stamps ``resolved_at``; other statuses leave it untouched.

        Returns:
            Tracked fields whose value actually changed
        """
        recorded = []
        for field in UPDATABLE_FIELDS:
            if field not in changes:
                continue
            old_value = getattr(ticket, field)
            new_value = changes[field]
            setattr(ticket, field, new_value)
            if field in TRACKED_FIELDS and old_value != new_value:
                recorded.append(FieldChange(field=field, old_value=old_value, new_value=new_value))

        if changes.get("status") in TERMINAL_STATUSES:
            ticket.resolved_at = now
        ticket.updated_at = now

        return recorded

    @staticmethod
    def status_transition(changes: List[FieldChange]) -> Optional[StatusTransition]:
        for change in changes:
            if change.field == "status":
                return StatusTransition(old_status=change.old_value, new_status=change.new_value)
        return None
